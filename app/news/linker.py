"""
Entity linker.

Turns the entity buckets of an AI output into news -> entity links:
resolve each extracted name against its kind's table, create the entity
when it does not exist yet, then link it to the news item.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.entity_types import EntityKind
from app.core.errors import CRMError, EntityLinkingError, NotFoundError
from app.core.news_models import AIOutput, AIOutputStatus
from app.entities.creator import EntityCreator
from app.entities.resolver import EntityResolver
from app.news.links import NewsLinkStore

logger = logging.getLogger(__name__)

# AI output bucket -> canonical kind
BUCKET_KINDS: Dict[str, EntityKind] = {
    "general_partners": EntityKind.GP,
    "funds": EntityKind.FUND,
    "portfolio_companies": EntityKind.PORTFOLIO_COMPANY,
    "limited_partners": EntityKind.LP,
    "service_providers": EntityKind.SERVICE_PROVIDER,
}

MIN_NAME_LENGTH = 2


@dataclass
class LinkSummary:
    """What one linking run did."""
    ai_output_id: str
    news_id: Optional[str] = None
    extracted: int = 0
    matched: int = 0
    created: int = 0
    linked: int = 0
    entity_ids: List[str] = field(default_factory=list)


def extract_candidates(output_json: Optional[dict]) -> List[Tuple[EntityKind, str]]:
    """
    Flatten AI entity buckets into (kind, name) pairs.

    Names are trimmed, names shorter than two characters dropped, and
    duplicates within a kind removed case-insensitively (first spelling
    wins).
    """
    entities = (output_json or {}).get("entities") or {}
    if not isinstance(entities, dict):
        return []

    seen = set()
    candidates = []
    for bucket, kind in BUCKET_KINDS.items():
        names = entities.get(bucket) or []
        if not isinstance(names, list):
            continue
        for raw_name in names:
            name = str(raw_name or "").strip()
            if len(name) < MIN_NAME_LENGTH:
                continue
            key = (kind, name.lower())
            if key in seen:
                continue
            seen.add(key)
            candidates.append((kind, name))
    return candidates


class EntityLinker:
    """
    Links the entities named in an AI output to its news item.

    Usage:
        linker = EntityLinker(session_factory, resolver, creator, link_store)
        summary = await linker.link_from_ai(ai_output_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        resolver: EntityResolver,
        creator: EntityCreator,
        link_store: NewsLinkStore,
    ):
        self.session_factory = session_factory
        self.resolver = resolver
        self.creator = creator
        self.link_store = link_store

    async def link_from_ai(self, ai_output_id: str) -> LinkSummary:
        """
        Raises:
            NotFoundError: No AI_DONE output with this id
            EntityLinkingError: An extracted entity could not be matched, created or linked
        """
        summary = LinkSummary(ai_output_id=ai_output_id)

        db = self.session_factory()
        try:
            ai_output = (
                db.query(AIOutput)
                .filter(AIOutput.id == ai_output_id, AIOutput.status == AIOutputStatus.AI_DONE)
                .first()
            )
            if ai_output is None:
                raise NotFoundError("ai_output_not_found", resource_id=ai_output_id)

            tenant_id = ai_output.org_id
            news_id = ai_output.source_id
            created_by = ai_output.created_by
            summary.news_id = news_id

            candidates = extract_candidates(ai_output.output_json)
            summary.extracted = len(candidates)

            for kind, name in candidates:
                try:
                    entity = self.resolver.find_by_name(db, tenant_id, kind, name)
                    if entity is not None:
                        summary.matched += 1
                        match_type = "exact"
                    else:
                        entity = self.creator.create_in(db, tenant_id, kind, name, created_by)
                        db.commit()
                        summary.created += 1
                        match_type = "created"

                    # Validates the reference through the resolver before writing
                    await self.link_store.add_link(
                        tenant_id, news_id, entity.kind, entity.id, created_by, match_type
                    )
                except CRMError:
                    raise
                except Exception as e:
                    raise EntityLinkingError(f"Could not link {kind.value} '{name}': {e}") from e
                summary.linked += 1
                summary.entity_ids.append(entity.id)

            ai_output = db.get(AIOutput, ai_output_id)
            ai_output.status = AIOutputStatus.LINKED
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(
            f"Linked AI output {ai_output_id} (news={summary.news_id}): "
            f"{summary.extracted} extracted, {summary.matched} matched, "
            f"{summary.created} created, {summary.linked} linked"
        )
        return summary

"""
Entity Link Store.

Associates news items with resolved CRM entities. A link is only written
when the entity resolves to a real row in the same organization as the
news item; links are stored with the canonical kind whatever alias the
caller used.
"""
import logging
from typing import Any, Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.entity_types import ResolvedEntity
from app.core.errors import AccessDeniedError, NotFoundError
from app.core.news_models import News, NewsEntityLink
from app.entities.resolver import EntityResolver

logger = logging.getLogger(__name__)


class NewsLinkStore:
    """
    Tenant-scoped CRUD over news_entity_links.

    Usage:
        store = NewsLinkStore(session_factory, resolver)
        link = await store.add_link(org_id, news_id, "PE", gp_id, user_id)
    """

    def __init__(self, session_factory: Callable[[], Session], resolver: EntityResolver):
        self.session_factory = session_factory
        self.resolver = resolver

    async def add_link(
        self,
        tenant_id: str,
        news_id: str,
        raw_type: Any,
        entity_id: str,
        created_by: Optional[str] = None,
        match_type: str = "manual",
    ) -> NewsEntityLink:
        """
        Link an entity to a news item.

        Idempotent: linking the same entity twice returns the existing link.

        Raises:
            NotFoundError: News item missing or owned by another organization
            AccessDeniedError: Entity missing or owned by another organization
        """
        entity = await self.resolver.require(tenant_id, raw_type, entity_id)

        db = self.session_factory()
        try:
            return self.add_resolved(db, tenant_id, news_id, entity, created_by, match_type)
        finally:
            db.close()

    def add_resolved(
        self,
        db: Session,
        tenant_id: str,
        news_id: str,
        entity: ResolvedEntity,
        created_by: Optional[str] = None,
        match_type: str = "manual",
    ) -> NewsEntityLink:
        """Write a link for an already-resolved entity (commits)."""
        self._require_news(db, tenant_id, news_id)

        existing = self._find(db, news_id, entity)
        if existing is not None:
            return existing

        link = NewsEntityLink(
            news_id=news_id,
            org_id=tenant_id,
            entity_type=entity.kind.value,
            entity_id=entity.id,
            match_type=match_type,
            created_by=created_by,
        )
        db.add(link)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same link
            db.rollback()
            existing = self._find(db, news_id, entity)
            if existing is None:
                raise
            return existing

        db.refresh(link)
        logger.info(f"Linked news {news_id} -> {entity.kind.value}:{entity.id} ({match_type})")
        return link

    def list_links(self, tenant_id: str, news_id: str) -> List[NewsEntityLink]:
        """
        Raises:
            NotFoundError: News item missing or owned by another organization
        """
        db = self.session_factory()
        try:
            self._require_news(db, tenant_id, news_id)
            return (
                db.query(NewsEntityLink)
                .filter(NewsEntityLink.news_id == news_id, NewsEntityLink.org_id == tenant_id)
                .order_by(NewsEntityLink.created_at.asc())
                .all()
            )
        finally:
            db.close()

    def remove_link(self, tenant_id: str, news_id: str, link_id: str) -> None:
        """
        Raises:
            AccessDeniedError: Link missing or owned by another organization
        """
        db = self.session_factory()
        try:
            deleted = (
                db.query(NewsEntityLink)
                .filter(
                    NewsEntityLink.id == link_id,
                    NewsEntityLink.news_id == news_id,
                    NewsEntityLink.org_id == tenant_id,
                )
                .delete(synchronize_session=False)
            )
            if not deleted:
                db.rollback()
                raise AccessDeniedError("Entity link not found or access denied", resource_id=link_id)
            db.commit()
            logger.info(f"Removed entity link {link_id} from news {news_id}")
        finally:
            db.close()

    @staticmethod
    def _require_news(db: Session, tenant_id: str, news_id: str) -> None:
        exists = (
            db.query(News.id)
            .filter(News.id == news_id, News.org_id == tenant_id)
            .first()
        )
        if exists is None:
            raise NotFoundError("News not found", resource_id=news_id)

    @staticmethod
    def _find(db: Session, news_id: str, entity: ResolvedEntity) -> Optional[NewsEntityLink]:
        return (
            db.query(NewsEntityLink)
            .filter(
                NewsEntityLink.news_id == news_id,
                NewsEntityLink.entity_type == entity.kind.value,
                NewsEntityLink.entity_id == entity.id,
            )
            .first()
        )

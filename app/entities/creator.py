"""
Entity creation dispatcher.

Lets the news-linking flow create an entity on the fly when an extracted
name does not match an existing record. Dispatches to the right table and
fills the kind-specific mandatory defaults.
"""
import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.core.entity_types import EntityKind, ResolvedEntity, TypeNormalizer
from app.core.errors import ValidationError
from app.entities.tables import ENTITY_TABLES

logger = logging.getLogger(__name__)


class EntityCreator:
    """
    Creates entity rows with kind-specific defaults.

    Defaults:
    - GP: firm_type "PE"
    - LP: firm_type "Pension Fund"
    - Fund: fund_type "Buyout"
    - Portfolio company: company_type "Private"
    - Service provider: provider_type "Advisory"
    - Contact: name split into first/last at the first whitespace
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        normalizer: Optional[TypeNormalizer] = None,
    ):
        self.session_factory = session_factory
        self.normalizer = normalizer or TypeNormalizer()

    def kind_for(self, raw_kind: Any) -> EntityKind:
        """
        Raises:
            ValidationError: kind is not a supported entity kind
        """
        kind = self.normalizer.normalize(raw_kind)
        if kind is None:
            raise ValidationError(
                f"Unsupported entity type: {raw_kind}",
                invalid_params={"entity_type": str(raw_kind)},
            )
        return kind

    def create(
        self, tenant_id: str, raw_kind: Any, name: str, created_by: Optional[str] = None
    ) -> ResolvedEntity:
        """Create an entity in its own transaction."""
        db = self.session_factory()
        try:
            entity = self.create_in(db, tenant_id, raw_kind, name, created_by)
            db.commit()
            return entity
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_in(
        self,
        db: Session,
        tenant_id: str,
        raw_kind: Any,
        name: str,
        created_by: Optional[str] = None,
    ) -> ResolvedEntity:
        """
        Add an entity row to the caller's session (flushed, not committed).

        Raises:
            ValidationError: unsupported kind, blank name or missing tenant
        """
        kind = self.kind_for(raw_kind)
        if not tenant_id:
            raise ValidationError("Organization is required", invalid_params={"org_id": "missing"})
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Entity name is required", invalid_params={"name": "blank"})

        table = ENTITY_TABLES[kind]
        row = table.build(tenant_id, clean_name, created_by)
        db.add(row)
        db.flush()

        logger.info(f"Created {kind.value} entity {row.id} '{clean_name}' (org={tenant_id})")
        return ResolvedEntity(id=row.id, name=table.display_name(row), kind=kind)

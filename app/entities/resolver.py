"""
Entity Resolver.

Turns a loosely-typed reference `(tenant, raw type, id)` into a normalized
`ResolvedEntity` or None (not found).

Resolution stages:
1. Normalize the raw type; when it maps to a canonical kind, probe only
   that kind's table.
2. Legacy discriminators ("firm", "fund") probe their pre-migration table.
3. Fan-out: probe every entity table concurrently and take the first hit
   in fixed kind order (GP, LP, Fund, Company, Contact, Service Provider).

Every probe is scoped by org_id, so an id that exists under another tenant
is indistinguishable from a missing one. Storage errors never escape:
callers that merely validate a reference get None instead of a crash.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.entity_types import (
    DEFAULT_LEGACY_TYPES,
    EntityKind,
    KIND_ORDER,
    ResolvedEntity,
    TypeNormalizer,
)
from app.core.errors import AccessDeniedError
from app.entities.tables import ENTITY_TABLES, LEGACY_TABLES, EntityTable

logger = logging.getLogger(__name__)


class EntityResolver:
    """
    Tenant-scoped lookup of polymorphic entity references.

    Usage:
        resolver = EntityResolver(get_session_factory())
        entity = await resolver.resolve(org_id, "PE", gp_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        normalizer: Optional[TypeNormalizer] = None,
        legacy_types: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            session_factory: Callable returning a new Session; each probe
                opens its own so probes can run concurrently
            normalizer: Alias table wrapper (defaults to the built-in aliases)
            legacy_types: Raw discriminator -> legacy table name
        """
        self.session_factory = session_factory
        self.normalizer = normalizer or TypeNormalizer()
        self.legacy_types = dict(DEFAULT_LEGACY_TYPES if legacy_types is None else legacy_types)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def resolve(
        self, tenant_id: str, raw_type: Any, entity_id: str
    ) -> Optional[ResolvedEntity]:
        """
        Resolve a reference to a normalized entity.

        Returns:
            ResolvedEntity, or None when no same-tenant row exists
        """
        if not tenant_id or not entity_id:
            return None

        try:
            kind = self.normalizer.normalize(raw_type)
            if kind is not None:
                found = await self._probe_async(ENTITY_TABLES[kind], tenant_id, entity_id)
                if found:
                    return found

            legacy_table = self.legacy_types.get(raw_type) if isinstance(raw_type, str) else None
            if legacy_table and legacy_table in LEGACY_TABLES:
                found = await self._probe_async(LEGACY_TABLES[legacy_table], tenant_id, entity_id)
                if found:
                    return found

            return await self._fan_out(tenant_id, entity_id, skip=kind)

        except Exception as e:
            logger.warning(
                f"Entity resolution failed for {raw_type}:{entity_id} "
                f"(org={tenant_id}): {e}"
            )
            return None

    async def require(
        self, tenant_id: str, raw_type: Any, entity_id: str
    ) -> ResolvedEntity:
        """
        Resolve or raise.

        Raises:
            AccessDeniedError: Entity missing or owned by another tenant
        """
        entity = await self.resolve(tenant_id, raw_type, entity_id)
        if entity is None:
            raise AccessDeniedError("Entity not found or access denied", resource_id=entity_id)
        return entity

    def find_by_name(
        self, db: Session, tenant_id: str, kind: EntityKind, name: str
    ) -> Optional[ResolvedEntity]:
        """
        Case-insensitive exact name match within one kind's table.

        Uses the caller's session so a lookup can share a transaction with
        a follow-up insert.
        """
        table = ENTITY_TABLES[kind]
        row = (
            db.query(table.model)
            .filter(table.model.org_id == tenant_id, table.exact_name_filter(name))
            .order_by(table.model.created_at.asc())
            .first()
        )
        if row is None:
            return None
        return ResolvedEntity(id=row.id, name=table.display_name(row), kind=table.kind)

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------

    def _probe(self, table: EntityTable, tenant_id: str, entity_id: str) -> Optional[ResolvedEntity]:
        """Look up one row by id within one tenant (blocking)."""
        db = self.session_factory()
        try:
            row = (
                db.query(table.model)
                .filter(table.model.id == entity_id, table.model.org_id == tenant_id)
                .first()
            )
            if row is None:
                return None
            return ResolvedEntity(id=row.id, name=table.display_name(row), kind=table.kind)
        finally:
            db.close()

    async def _probe_async(
        self, table: EntityTable, tenant_id: str, entity_id: str
    ) -> Optional[ResolvedEntity]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._probe, table, tenant_id, entity_id)

    async def _fan_out(
        self, tenant_id: str, entity_id: str, skip: Optional[EntityKind] = None
    ) -> Optional[ResolvedEntity]:
        """
        Probe every entity table concurrently; first hit in KIND_ORDER wins.

        `skip` is a table the caller already probed without a hit.
        """
        results: List[Optional[ResolvedEntity]] = await asyncio.gather(
            *(
                self._probe_async(ENTITY_TABLES[kind], tenant_id, entity_id)
                for kind in KIND_ORDER
                if kind != skip
            )
        )
        for result in results:
            if result is not None:
                return result
        return None

    def describe(self) -> Dict[str, Any]:
        """Alias and legacy configuration, for diagnostics."""
        return {
            "aliases": {alias: kind.value for alias, kind in self.normalizer.aliases.items()},
            "legacy_types": dict(self.legacy_types),
        }

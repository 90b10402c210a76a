"""
Cross-table entity search.

One case-insensitive substring query per entity table, run concurrently,
each capped at a per-table limit. Results are concatenated in fixed kind
order (GP, LP, Fund, Company, Contact, Service Provider) with no global
re-ranking or de-duplication: the same name under two kinds is two
different entities.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app.core.entity_types import KIND_ORDER, ResolvedEntity
from app.entities.tables import ENTITY_TABLES, EntityTable

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT_PER_TABLE = 5


class EntitySearch:
    """
    Tenant-scoped fuzzy search across all entity tables.

    Usage:
        search = EntitySearch(get_session_factory())
        results = await search.search(org_id, "Acme")
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        limit_per_table: int = DEFAULT_LIMIT_PER_TABLE,
    ):
        self.session_factory = session_factory
        self.limit_per_table = limit_per_table

    async def search(self, tenant_id: str, query: Optional[str]) -> List[ResolvedEntity]:
        """
        Search every entity table for names containing `query`.

        Queries shorter than two characters return [] without touching
        storage. A table whose query fails contributes no results.
        """
        if not tenant_id or not query or len(query) < MIN_QUERY_LENGTH:
            return []

        loop = asyncio.get_running_loop()
        per_table = await asyncio.gather(
            *(
                loop.run_in_executor(None, self._search_table, ENTITY_TABLES[kind], tenant_id, query)
                for kind in KIND_ORDER
            )
        )

        results: List[ResolvedEntity] = []
        for rows in per_table:
            results.extend(rows)
        return results

    def _search_table(self, table: EntityTable, tenant_id: str, query: str) -> List[ResolvedEntity]:
        db = None
        try:
            db = self.session_factory()
            rows = (
                db.query(table.model)
                .filter(table.model.org_id == tenant_id, table.search_filter(query))
                .order_by(*table.order_by())
                .limit(self.limit_per_table)
                .all()
            )
            return [
                ResolvedEntity(id=row.id, name=table.display_name(row), kind=table.kind)
                for row in rows
            ]
        except Exception as e:
            logger.warning(f"Entity search failed on {table.model.__tablename__}: {e}")
            return []
        finally:
            if db is not None:
                db.close()

"""
Per-kind table descriptors.

Each canonical kind lives in its own table with its own name column(s).
The descriptors below hide those differences from the resolver, search
and creation dispatcher: how to derive a display name, how to match a
search term, how to match an exact name, and which defaults a newly
created row needs.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type

from sqlalchemy import func, or_

from app.core.entity_types import EntityKind
from app.core.models import (
    Base,
    Contact,
    Fund,
    GeneralPartner,
    LegacyFirm,
    LegacyFund,
    LimitedPartner,
    PortfolioCompany,
    ServiceProvider,
)

UNKNOWN_NAME = "Unknown"


def contact_display_name(first_name: Optional[str], last_name: Optional[str],
                         company_name: Optional[str] = None) -> str:
    """'First Last (Company)', falling back to 'Unknown' for a blank name."""
    full_name = f"{first_name or ''} {last_name or ''}".strip() or UNKNOWN_NAME
    if company_name:
        return f"{full_name} ({company_name})"
    return full_name


def split_contact_name(name: str) -> Tuple[str, str]:
    """Split on the first run of whitespace into (first, last)."""
    parts = name.strip().split(None, 1)
    if not parts:
        return name, ""
    first = parts[0]
    last = parts[1] if len(parts) > 1 else ""
    return first, last


def _contains(column, term: str):
    """Case-insensitive substring match with wildcards taken literally."""
    return func.lower(column).contains(term.lower(), autoescape=True)


@dataclass(frozen=True)
class EntityTable:
    """How one entity kind is stored."""
    kind: EntityKind
    model: Type[Base]
    name_column: str
    defaults: Dict[str, Any] = field(default_factory=dict)

    def column(self, name: Optional[str] = None):
        return getattr(self.model, name or self.name_column)

    def display_name(self, row: Any) -> str:
        return getattr(row, self.name_column, None) or UNKNOWN_NAME

    def search_filter(self, term: str):
        return _contains(self.column(), term)

    def order_by(self):
        return (self.column(),)

    def exact_name_filter(self, name: str):
        return func.lower(self.column()) == name.lower()

    def build(self, org_id: str, name: str, created_by: Optional[str]) -> Base:
        values = dict(self.defaults)
        values[self.name_column] = name
        return self.model(org_id=org_id, created_by=created_by, **values)


class ContactTable(EntityTable):
    """Contacts have no single name column."""

    def display_name(self, row: Any) -> str:
        return contact_display_name(row.first_name, row.last_name, row.company_name)

    def search_filter(self, term: str):
        return or_(
            _contains(self.model.first_name, term),
            _contains(self.model.last_name, term),
        )

    def order_by(self):
        return (self.model.last_name, self.model.first_name)

    def exact_name_filter(self, name: str):
        full_name = func.trim(
            func.coalesce(self.model.first_name, "")
            + " "
            + func.coalesce(self.model.last_name, "")
        )
        return func.lower(full_name) == name.strip().lower()

    def build(self, org_id: str, name: str, created_by: Optional[str]) -> Base:
        first_name, last_name = split_contact_name(name)
        return self.model(
            org_id=org_id,
            first_name=first_name,
            last_name=last_name,
            created_by=created_by,
        )


ENTITY_TABLES: Dict[EntityKind, EntityTable] = {
    EntityKind.GP: EntityTable(
        EntityKind.GP, GeneralPartner, "gp_name", {"firm_type": "PE"},
    ),
    EntityKind.LP: EntityTable(
        EntityKind.LP, LimitedPartner, "lp_name", {"firm_type": "Pension Fund"},
    ),
    EntityKind.FUND: EntityTable(
        EntityKind.FUND, Fund, "fund_name", {"fund_type": "Buyout"},
    ),
    EntityKind.PORTFOLIO_COMPANY: EntityTable(
        EntityKind.PORTFOLIO_COMPANY, PortfolioCompany, "company_name",
        {"company_type": "Private"},
    ),
    EntityKind.SERVICE_PROVIDER: EntityTable(
        EntityKind.SERVICE_PROVIDER, ServiceProvider, "provider_name",
        {"provider_type": "Advisory"},
    ),
    EntityKind.CONTACT: ContactTable(EntityKind.CONTACT, Contact, "first_name"),
}

# Legacy table name -> descriptor; rows report the canonical kind they became
LEGACY_TABLES: Dict[str, EntityTable] = {
    "firms": EntityTable(EntityKind.GP, LegacyFirm, "name"),
    "funds": EntityTable(EntityKind.FUND, LegacyFund, "name"),
}

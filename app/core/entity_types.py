"""
Canonical entity kinds and the type normalizer.

CRM rows arrive tagged with loose, domain-specific discriminators
("PE", "Buyout", "Pension Fund", ...). Everything downstream works on the
six canonical kinds below; the normalizer is the only place that knows the
legacy vocabulary.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class EntityKind(str, Enum):
    """Canonical discriminant for polymorphic entity references."""
    GP = "gp"
    LP = "lp"
    FUND = "fund"
    PORTFOLIO_COMPANY = "portfolio_company"
    SERVICE_PROVIDER = "service_provider"
    CONTACT = "contact"


# Fixed probe / result order used by resolution fan-out and search
KIND_ORDER = (
    EntityKind.GP,
    EntityKind.LP,
    EntityKind.FUND,
    EntityKind.PORTFOLIO_COMPANY,
    EntityKind.CONTACT,
    EntityKind.SERVICE_PROVIDER,
)


def _aliases(kind: EntityKind, *names: str) -> Dict[str, EntityKind]:
    return {name: kind for name in names}


DEFAULT_ALIASES: Dict[str, EntityKind] = {
    **_aliases(EntityKind.GP, "gp", "PE", "VC", "Hedge Fund", "Private Debt"),
    **_aliases(
        EntityKind.LP,
        "lp", "Pension Fund", "Endowment", "Family Office",
        "Sovereign Wealth Fund", "Fund of Funds", "Insurance Company",
        "Foundation",
    ),
    **_aliases(
        EntityKind.FUND,
        "fund", "Buyout", "Growth Equity", "Venture Capital", "Real Estate",
        "Infrastructure", "Credit", "Secondaries",
    ),
    **_aliases(
        EntityKind.PORTFOLIO_COMPANY,
        "company", "portfolio_company", "Private", "Public", "Subsidiary",
    ),
    **_aliases(
        EntityKind.SERVICE_PROVIDER,
        "service_provider", "Advisory", "Legal", "Placement Agent",
    ),
    **_aliases(EntityKind.CONTACT, "contact", "person"),
}

# Discriminators from the pre-migration schema -> legacy table name
DEFAULT_LEGACY_TYPES: Dict[str, str] = {
    "firm": "firms",
    "fund": "funds",
}


class TypeNormalizer:
    """
    Maps a raw discriminator string to a canonical EntityKind.

    Case-sensitive exact lookup over a fixed alias table; anything else is
    unknown (None) and left for the resolver to probe.
    """

    def __init__(self, aliases: Optional[Mapping[str, EntityKind]] = None):
        self._aliases = dict(DEFAULT_ALIASES if aliases is None else aliases)

    @property
    def aliases(self) -> Dict[str, EntityKind]:
        return dict(self._aliases)

    def normalize(self, raw_type: Any) -> Optional[EntityKind]:
        if isinstance(raw_type, EntityKind):
            return raw_type
        if not isinstance(raw_type, str):
            return None
        return self._aliases.get(raw_type)


@dataclass(frozen=True)
class ResolvedEntity:
    """Normalized {id, name, kind} view of an entity row (also a search hit)."""
    id: str
    name: str
    kind: EntityKind

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

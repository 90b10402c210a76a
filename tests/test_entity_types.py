"""
Unit tests for app/core/entity_types.py and app/entities/tables.py

Covers alias normalization, kind ordering and contact name handling.
All tests are fully offline (no DB, no network).
"""
import pytest

from app.core.entity_types import (
    DEFAULT_ALIASES,
    EntityKind,
    KIND_ORDER,
    ResolvedEntity,
    TypeNormalizer,
)
from app.entities.tables import (
    ENTITY_TABLES,
    contact_display_name,
    split_contact_name,
)


@pytest.mark.unit
class TestTypeNormalizer:

    @pytest.mark.parametrize("raw,expected", [
        ("PE", EntityKind.GP),
        ("VC", EntityKind.GP),
        ("Hedge Fund", EntityKind.GP),
        ("Pension Fund", EntityKind.LP),
        ("Family Office", EntityKind.LP),
        ("Buyout", EntityKind.FUND),
        ("Secondaries", EntityKind.FUND),
        ("company", EntityKind.PORTFOLIO_COMPANY),
        ("Subsidiary", EntityKind.PORTFOLIO_COMPANY),
        ("Placement Agent", EntityKind.SERVICE_PROVIDER),
        ("person", EntityKind.CONTACT),
    ])
    def test_known_aliases(self, raw, expected):
        assert TypeNormalizer().normalize(raw) == expected

    def test_canonical_names_map_to_themselves(self):
        normalizer = TypeNormalizer()
        for kind in EntityKind:
            assert normalizer.normalize(kind.value) == kind

    def test_enum_passes_through(self):
        assert TypeNormalizer().normalize(EntityKind.LP) == EntityKind.LP

    def test_lookup_is_case_sensitive(self):
        normalizer = TypeNormalizer()
        assert normalizer.normalize("pe") is None
        assert normalizer.normalize("BUYOUT") is None

    @pytest.mark.parametrize("raw", [None, "", "firm", "unknown", 42])
    def test_unknown_is_none(self, raw):
        assert TypeNormalizer().normalize(raw) is None

    def test_custom_alias_table(self):
        normalizer = TypeNormalizer(aliases={"Manager": EntityKind.GP})
        assert normalizer.normalize("Manager") == EntityKind.GP
        assert normalizer.normalize("PE") is None

    def test_aliases_property_is_a_copy(self):
        normalizer = TypeNormalizer()
        normalizer.aliases["Anything"] = EntityKind.GP
        assert normalizer.normalize("Anything") is None
        assert "Anything" not in DEFAULT_ALIASES


@pytest.mark.unit
class TestKindOrder:

    def test_fixed_order(self):
        assert KIND_ORDER == (
            EntityKind.GP,
            EntityKind.LP,
            EntityKind.FUND,
            EntityKind.PORTFOLIO_COMPANY,
            EntityKind.CONTACT,
            EntityKind.SERVICE_PROVIDER,
        )

    def test_every_kind_has_a_table(self):
        assert set(ENTITY_TABLES) == set(EntityKind)


@pytest.mark.unit
class TestContactNames:

    def test_display_name_with_company(self):
        assert contact_display_name("Jane", "Doe", "Acme") == "Jane Doe (Acme)"

    def test_display_name_without_company(self):
        assert contact_display_name("Jane", "Doe") == "Jane Doe"

    def test_display_name_blank_is_unknown(self):
        assert contact_display_name(None, None) == "Unknown"
        assert contact_display_name("", "", "Acme") == "Unknown (Acme)"

    def test_display_name_single_part(self):
        assert contact_display_name("Cher", None) == "Cher"

    def test_split_on_first_whitespace(self):
        assert split_contact_name("Mary Ann Smith") == ("Mary", "Ann Smith")

    def test_split_single_word(self):
        assert split_contact_name("Madonna") == ("Madonna", "")


@pytest.mark.unit
def test_resolved_entity_to_dict():
    entity = ResolvedEntity(id="abc", name="Acme", kind=EntityKind.GP)
    assert entity.to_dict() == {"id": "abc", "name": "Acme", "kind": "gp"}

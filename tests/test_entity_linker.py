"""
Unit tests for app/news/linker.py
"""
import pytest
from unittest.mock import AsyncMock, patch

from app.core.entity_types import EntityKind
from app.core.errors import EntityLinkingError, NotFoundError
from app.core.models import Fund, GeneralPartner, LimitedPartner
from app.core.news_models import AIOutput, AIOutputStatus, NewsEntityLink
from app.entities.creator import EntityCreator
from app.entities.resolver import EntityResolver
from app.news.linker import EntityLinker, extract_candidates
from app.news.links import NewsLinkStore
from tests.conftest import ORG_A, ORG_B, USER_A


@pytest.fixture
def linker(session_factory):
    resolver = EntityResolver(session_factory)
    return EntityLinker(
        session_factory,
        resolver,
        EntityCreator(session_factory),
        NewsLinkStore(session_factory, resolver),
    )


@pytest.fixture
def make_ai_output(test_db):
    def _make(news_id, entities, org_id=ORG_A, status=AIOutputStatus.AI_DONE):
        record = AIOutput(
            org_id=org_id,
            source_type="news",
            source_id=news_id,
            output_json={"deal_detected": True, "entities": entities},
            status=status,
            created_by=USER_A,
        )
        test_db.add(record)
        test_db.commit()
        return record.id
    return _make


@pytest.mark.unit
class TestExtractCandidates:

    def test_maps_buckets_to_kinds(self):
        candidates = extract_candidates({"entities": {
            "general_partners": ["Acme"],
            "funds": ["Acme Fund I"],
            "portfolio_companies": ["Widget Co"],
            "limited_partners": ["CalPERS"],
            "service_providers": ["Kirkland"],
        }})
        assert candidates == [
            (EntityKind.GP, "Acme"),
            (EntityKind.FUND, "Acme Fund I"),
            (EntityKind.PORTFOLIO_COMPANY, "Widget Co"),
            (EntityKind.LP, "CalPERS"),
            (EntityKind.SERVICE_PROVIDER, "Kirkland"),
        ]

    def test_trims_drops_short_and_dedupes(self):
        candidates = extract_candidates({"entities": {
            "general_partners": ["  Acme  ", "acme", "X", "", None, "ACME"],
        }})
        assert candidates == [(EntityKind.GP, "Acme")]

    def test_same_name_in_two_buckets_kept(self):
        candidates = extract_candidates({"entities": {
            "general_partners": ["Horizon"],
            "funds": ["Horizon"],
        }})
        assert len(candidates) == 2

    @pytest.mark.parametrize("output", [None, {}, {"entities": None}, {"entities": []}])
    def test_missing_entities(self, output):
        assert extract_candidates(output) == []


@pytest.mark.unit
class TestLinkFromAI:

    @pytest.mark.asyncio
    async def test_matches_existing_and_creates_missing(
        self, linker, make_news, make_ai_output, sample_entities, test_db
    ):
        news_id = make_news()
        ai_output_id = make_ai_output(news_id, {
            "general_partners": ["acme capital partners"],
            "funds": ["Brand New Fund I"],
            "limited_partners": ["CalPERS"],
        })

        summary = await linker.link_from_ai(ai_output_id)

        assert summary.news_id == news_id
        assert summary.extracted == 3
        assert summary.matched == 1
        assert summary.created == 2
        assert summary.linked == 3
        assert sample_entities["gp"] in summary.entity_ids

        fund = test_db.query(Fund).filter(Fund.fund_name == "Brand New Fund I").one()
        assert fund.org_id == ORG_A
        assert fund.fund_type == "Buyout"
        assert fund.created_by == USER_A
        assert test_db.query(LimitedPartner).filter(LimitedPartner.lp_name == "CalPERS").count() == 1

        links = test_db.query(NewsEntityLink).filter(NewsEntityLink.news_id == news_id).all()
        assert {(link.entity_type, link.match_type) for link in links} == {
            ("gp", "exact"), ("fund", "created"), ("lp", "created"),
        }

    @pytest.mark.asyncio
    async def test_marks_output_linked(self, linker, make_news, make_ai_output, test_db):
        news_id = make_news()
        ai_output_id = make_ai_output(news_id, {"general_partners": ["Acme"]})

        await linker.link_from_ai(ai_output_id)

        assert test_db.get(AIOutput, ai_output_id).status == AIOutputStatus.LINKED

    @pytest.mark.asyncio
    async def test_already_linked_output_not_found(self, linker, make_news, make_ai_output):
        news_id = make_news()
        ai_output_id = make_ai_output(news_id, {}, status=AIOutputStatus.LINKED)

        with pytest.raises(NotFoundError):
            await linker.link_from_ai(ai_output_id)

    @pytest.mark.asyncio
    async def test_other_tenant_entities_never_matched(
        self, linker, make_news, make_ai_output, sample_entities, test_db
    ):
        news_id = make_news()
        # "Acme Holdings" exists only in ORG_B
        ai_output_id = make_ai_output(news_id, {"general_partners": ["Acme Holdings"]})

        summary = await linker.link_from_ai(ai_output_id)

        assert summary.matched == 0
        assert summary.created == 1
        assert sample_entities["foreign_gp"] not in summary.entity_ids
        assert test_db.query(GeneralPartner).filter(
            GeneralPartner.gp_name == "Acme Holdings", GeneralPartner.org_id == ORG_A
        ).count() == 1

    @pytest.mark.asyncio
    async def test_rerun_does_not_duplicate(self, linker, make_news, make_ai_output, test_db):
        news_id = make_news()
        entities = {"general_partners": ["Summit Partners"]}

        await linker.link_from_ai(make_ai_output(news_id, entities))
        summary = await linker.link_from_ai(make_ai_output(news_id, entities))

        assert summary.matched == 1
        assert summary.created == 0
        assert test_db.query(GeneralPartner).count() == 1
        assert test_db.query(NewsEntityLink).count() == 1

    @pytest.mark.asyncio
    async def test_link_failure_wrapped(self, linker, make_news, make_ai_output):
        news_id = make_news()
        ai_output_id = make_ai_output(news_id, {"general_partners": ["Acme"]})

        with patch.object(
            linker.link_store, "add_link", new=AsyncMock(side_effect=RuntimeError("db down"))
        ):
            with pytest.raises(EntityLinkingError):
                await linker.link_from_ai(ai_output_id)

    @pytest.mark.asyncio
    async def test_output_for_foreign_news_not_linked(self, linker, make_news, make_ai_output):
        news_id = make_news(org_id=ORG_B)
        ai_output_id = make_ai_output(news_id, {"general_partners": ["Acme"]}, org_id=ORG_A)

        with pytest.raises(NotFoundError):
            await linker.link_from_ai(ai_output_id)

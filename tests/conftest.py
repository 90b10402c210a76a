"""
Pytest configuration and shared fixtures.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.models import (
    Base, GeneralPartner, LimitedPartner, Fund, PortfolioCompany,
    ServiceProvider, Contact, LegacyFirm, LegacyFund,
)
from app.core.news_models import AnnotationTask, LabelProject, News, NewsProcessingStatus
from app.core.config import reset_settings

ORG_A = "11111111-1111-1111-1111-111111111111"
ORG_B = "22222222-2222-2222-2222-222222222222"
USER_A = "aaaaaaaa-0000-0000-0000-000000000001"


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "LOG_LEVEL",
        "ENTITY_SEARCH_LIMIT_PER_TABLE",
        "NEWS_SCHEDULER_ENABLED",
        "NEWS_NEW_INTERVAL_SECONDS",
        "NEWS_NEW_BATCH_SIZE",
        "NEWS_RETRY_INTERVAL_SECONDS",
        "NEWS_RETRY_BATCH_SIZE",
        "NEWS_WORKER_COUNT",
        "NEWS_QUEUE_SIZE",
        "NEWS_MAX_ATTEMPTS",
        "NEWS_RETRY_BASE_MINUTES",
        "NEWS_RETRY_MAX_MINUTES",
        "NEWS_RETRY_MULTIPLIER",
        "LLM_PROVIDER",
        "LLM_MODEL",
        "LLM_MAX_TOKENS",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    File-backed SQLite database, fresh for each test.

    A file (not :memory:) so that probes running in executor threads see
    the same data through their own connections.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'crm.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    """A session on the per-test database."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session(test_db):
    """
    Alias for test_db fixture.
    """
    yield test_db


# =============================================================================
# CRM Entity Fixtures
# =============================================================================

@pytest.fixture
def sample_entities(test_db):
    """
    One entity of each kind in ORG_A, plus a GP in ORG_B.

    Returns a dict of name -> row id.
    """
    rows = {
        "gp": GeneralPartner(org_id=ORG_A, gp_name="Acme Capital Partners", firm_type="PE"),
        "lp": LimitedPartner(org_id=ORG_A, lp_name="Teachers Pension Plan", firm_type="Pension Fund"),
        "fund": Fund(org_id=ORG_A, fund_name="Acme Capital Fund IV", fund_type="Buyout"),
        "company": PortfolioCompany(org_id=ORG_A, company_name="Widget Robotics", company_type="Private"),
        "provider": ServiceProvider(org_id=ORG_A, provider_name="Kirk & Ellis LLP", provider_type="Legal"),
        "contact": Contact(org_id=ORG_A, first_name="Jane", last_name="Doe", company_name="Acme Capital Partners"),
        "foreign_gp": GeneralPartner(org_id=ORG_B, gp_name="Acme Holdings", firm_type="VC"),
    }
    test_db.add_all(rows.values())
    test_db.commit()
    return {key: row.id for key, row in rows.items()}


@pytest.fixture
def legacy_entities(test_db):
    """Rows in the pre-migration firms/funds tables for ORG_A."""
    firm = LegacyFirm(org_id=ORG_A, name="Old Firm LLC")
    fund = LegacyFund(org_id=ORG_A, name="Old Fund I")
    test_db.add_all([firm, fund])
    test_db.commit()
    return {"firm": firm.id, "fund": fund.id}


# =============================================================================
# News Fixtures
# =============================================================================

@pytest.fixture
def news_task(test_db):
    """An ORG_A news project with one annotation task."""
    project = LabelProject(org_id=ORG_A, name="Deal News", label_type="text", project_category="news")
    test_db.add(project)
    test_db.flush()
    task = AnnotationTask(
        project_id=project.id,
        status="pending",
        task_metadata={
            "headline": "Acme raises $50M",
            "source_name": "TechCrunch",
            "publish_date": "2024-05-01",
            "url": "https://techcrunch.com/acme-raises-50m",
            "raw_text": "Acme Capital Partners closed Acme Capital Fund IV at $50M.",
        },
    )
    test_db.add(task)
    test_db.commit()
    return task.id


@pytest.fixture
def make_news(test_db):
    """Factory for news rows: make_news(status=..., org_id=..., **fields)."""
    def _make(status=NewsProcessingStatus.NEW, org_id=ORG_A, **fields):
        fields.setdefault("headline", "Acme raises $50M")
        fields.setdefault("source_name", "TechCrunch")
        fields.setdefault("raw_text", "Acme Capital Partners closed a $50M round.")
        news = News(org_id=org_id, processing_status=status, **fields)
        test_db.add(news)
        test_db.commit()
        return news.id
    return _make

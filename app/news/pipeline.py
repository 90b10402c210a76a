"""
Wiring for the news intelligence components.

Builds every collaborator from settings once, so the API layer and the
scheduler share the same resolver, link store and processor.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import MissingLLMAPIKeyError, Settings, get_settings
from app.core.database import get_session_factory
from app.core.entity_types import TypeNormalizer
from app.core.llm_client import LLMClient
from app.core.retry_service import RetryPolicy
from app.entities.creator import EntityCreator
from app.entities.resolver import EntityResolver
from app.entities.search import EntitySearch
from app.jobs.news_scheduler import NewsScheduler, NewsSchedulerConfig
from app.news.ai_generation import AIGenerator
from app.news.linker import EntityLinker
from app.news.links import NewsLinkStore
from app.news.processor import NewsProcessor

logger = logging.getLogger(__name__)


@dataclass
class NewsPipeline:
    session_factory: Callable[[], Session]
    llm_client: LLMClient
    retry_policy: RetryPolicy
    resolver: EntityResolver
    search: EntitySearch
    creator: EntityCreator
    link_store: NewsLinkStore
    generator: AIGenerator
    linker: EntityLinker
    processor: NewsProcessor
    scheduler: NewsScheduler

    @property
    def ai_enabled(self) -> bool:
        return self.llm_client.is_available


def build_llm_client(settings: Settings) -> LLMClient:
    """LLM client for the configured provider; unavailable when no key is set."""
    try:
        api_key = settings.require_llm_api_key()
    except MissingLLMAPIKeyError:
        api_key = None
    return LLMClient(
        provider=settings.llm_provider,
        api_key=api_key,
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
    )


def build_pipeline(
    session_factory: Optional[Callable[[], Session]] = None,
    settings: Optional[Settings] = None,
    llm_client: Optional[LLMClient] = None,
) -> NewsPipeline:
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()
    llm_client = llm_client or build_llm_client(settings)

    normalizer = TypeNormalizer()
    retry_policy = RetryPolicy.from_settings(settings)

    resolver = EntityResolver(session_factory, normalizer=normalizer)
    search = EntitySearch(session_factory, limit_per_table=settings.entity_search_limit_per_table)
    creator = EntityCreator(session_factory, normalizer=normalizer)
    link_store = NewsLinkStore(session_factory, resolver)
    generator = AIGenerator(session_factory, llm_client)
    linker = EntityLinker(session_factory, resolver, creator, link_store)
    processor = NewsProcessor(session_factory, generator, linker, retry_policy=retry_policy)
    scheduler = NewsScheduler(
        session_factory,
        processor,
        config=NewsSchedulerConfig.from_settings(settings),
        retry_policy=retry_policy,
    )

    if not llm_client.is_available:
        logger.warning(
            f"No API key for LLM provider '{settings.llm_provider}'; AI generation disabled"
        )

    return NewsPipeline(
        session_factory=session_factory,
        llm_client=llm_client,
        retry_policy=retry_policy,
        resolver=resolver,
        search=search,
        creator=creator,
        link_store=link_store,
        generator=generator,
        linker=linker,
        processor=processor,
        scheduler=scheduler,
    )


_pipeline: Optional[NewsPipeline] = None


def get_pipeline() -> NewsPipeline:
    """Shared pipeline (singleton); also the FastAPI dependency."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline


def reset_pipeline() -> None:
    global _pipeline
    _pipeline = None

"""
Unit tests for app/news/processor.py

Collaborators (AI generation, entity linking) are mocked; status
transitions are checked against the per-test SQLite database.
"""
import asyncio
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from app.core.errors import AIGenerationError, NotFoundError
from app.core.news_models import News, NewsProcessingStatus
from app.core.retry_service import RetryPolicy
from app.news.processor import NewsProcessor
from tests.conftest import ORG_A, ORG_B, USER_A


def _collaborators(generate=None, link=None):
    generator = MagicMock()
    generator.generate = generate or AsyncMock(return_value="ai-output-1")
    linker = MagicMock()
    linker.link_from_ai = link or AsyncMock(return_value=MagicMock(linked=2))
    return generator, linker


def _status(session_factory, news_id):
    db = session_factory()
    try:
        return db.get(News, news_id)
    finally:
        db.close()


@pytest.mark.unit
class TestProcessSuccess:

    @pytest.mark.asyncio
    async def test_new_to_completed(self, session_factory, make_news):
        news_id = make_news()
        generator, linker = _collaborators()
        processor = NewsProcessor(session_factory, generator, linker)

        result = await processor.process(ORG_A, news_id, USER_A)

        assert result.status == NewsProcessingStatus.COMPLETED
        assert result.skipped is False
        assert result.attempts == 1
        assert result.ai_output_id == "ai-output-1"
        generator.generate.assert_awaited_once_with(ORG_A, news_id, USER_A)
        linker.link_from_ai.assert_awaited_once_with("ai-output-1")

        news = _status(session_factory, news_id)
        assert news.processing_status == NewsProcessingStatus.COMPLETED
        assert news.processing_attempts == 1

    @pytest.mark.asyncio
    async def test_failed_can_be_reprocessed(self, session_factory, make_news):
        news_id = make_news(status=NewsProcessingStatus.FAILED, processing_attempts=1)
        processor = NewsProcessor(session_factory, *_collaborators())

        result = await processor.process(ORG_A, news_id)

        assert result.status == NewsProcessingStatus.COMPLETED
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_status_is_processing_while_collaborators_run(self, session_factory, make_news):
        news_id = make_news()
        seen = {}

        async def generate(tenant_id, nid, user_id):
            seen["status"] = _status(session_factory, nid).processing_status
            return "ai-output-1"

        processor = NewsProcessor(session_factory, *_collaborators(generate=AsyncMock(side_effect=generate)))
        await processor.process(ORG_A, news_id)

        assert seen["status"] == NewsProcessingStatus.PROCESSING


@pytest.mark.unit
class TestProcessFailure:

    @pytest.mark.asyncio
    async def test_linker_error_marks_failed_and_propagates(self, session_factory, make_news):
        news_id = make_news()
        generator, linker = _collaborators(link=AsyncMock(side_effect=RuntimeError("link exploded")))
        processor = NewsProcessor(session_factory, generator, linker)

        with pytest.raises(RuntimeError, match="link exploded"):
            await processor.process(ORG_A, news_id)

        news = _status(session_factory, news_id)
        assert news.processing_status == NewsProcessingStatus.FAILED
        assert news.last_error == "link exploded"
        assert news.next_retry_at is not None
        assert news.next_retry_at > datetime.utcnow()

    @pytest.mark.asyncio
    async def test_generation_error_skips_linking(self, session_factory, make_news):
        news_id = make_news()
        generator, linker = _collaborators(
            generate=AsyncMock(side_effect=AIGenerationError("ai_invalid_json"))
        )
        processor = NewsProcessor(session_factory, generator, linker)

        with pytest.raises(AIGenerationError):
            await processor.process(ORG_A, news_id)

        linker.link_from_ai.assert_not_called()
        assert _status(session_factory, news_id).processing_status == NewsProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_exhausted_attempts_get_no_retry_time(self, session_factory, make_news):
        news_id = make_news(status=NewsProcessingStatus.FAILED, processing_attempts=2)
        generator, linker = _collaborators(generate=AsyncMock(side_effect=RuntimeError("down")))
        processor = NewsProcessor(session_factory, generator, linker, retry_policy=RetryPolicy(max_attempts=3))

        with pytest.raises(RuntimeError):
            await processor.process(ORG_A, news_id)

        news = _status(session_factory, news_id)
        assert news.processing_status == NewsProcessingStatus.FAILED
        assert news.processing_attempts == 3
        assert news.next_retry_at is None

    @pytest.mark.asyncio
    async def test_original_error_survives_failed_status_write(self, session_factory, make_news):
        news_id = make_news()
        generator, linker = _collaborators(generate=AsyncMock(side_effect=RuntimeError("original")))
        processor = NewsProcessor(session_factory, generator, linker)
        processor._mark_failed = MagicMock(side_effect=RuntimeError("db gone"))

        with pytest.raises(RuntimeError, match="original"):
            await processor.process(ORG_A, news_id)


@pytest.mark.unit
class TestNotClaimable:

    @pytest.mark.asyncio
    async def test_completed_is_terminal(self, session_factory, make_news):
        news_id = make_news(status=NewsProcessingStatus.COMPLETED)
        generator, linker = _collaborators()

        result = await NewsProcessor(session_factory, generator, linker).process(ORG_A, news_id)

        assert result.skipped is True
        assert result.status == NewsProcessingStatus.COMPLETED
        generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_processing_is_skipped(self, session_factory, make_news):
        news_id = make_news(status=NewsProcessingStatus.PROCESSING)
        generator, linker = _collaborators()

        result = await NewsProcessor(session_factory, generator, linker).process(ORG_A, news_id)

        assert result.skipped is True
        assert result.status == NewsProcessingStatus.PROCESSING
        assert _status(session_factory, news_id).processing_attempts == 0

    @pytest.mark.asyncio
    async def test_missing_news(self, session_factory):
        with pytest.raises(NotFoundError):
            await NewsProcessor(session_factory, *_collaborators()).process(ORG_A, "no-such-news")

    @pytest.mark.asyncio
    async def test_foreign_news_is_not_found(self, session_factory, make_news):
        news_id = make_news(org_id=ORG_B)
        generator, linker = _collaborators()

        with pytest.raises(NotFoundError):
            await NewsProcessor(session_factory, generator, linker).process(ORG_A, news_id)

        generator.generate.assert_not_called()
        assert _status(session_factory, news_id).processing_status == NewsProcessingStatus.NEW

    @pytest.mark.asyncio
    async def test_concurrent_calls_run_once(self, session_factory, make_news):
        news_id = make_news()
        release = asyncio.Event()

        async def slow_generate(tenant_id, nid, user_id):
            await release.wait()
            return "ai-output-1"

        generator, linker = _collaborators(generate=AsyncMock(side_effect=slow_generate))
        processor = NewsProcessor(session_factory, generator, linker)

        first = asyncio.create_task(processor.process(ORG_A, news_id))
        await asyncio.sleep(0)
        second = await processor.process(ORG_A, news_id)
        release.set()
        first_result = await first

        assert second.skipped is True
        assert first_result.status == NewsProcessingStatus.COMPLETED
        assert generator.generate.await_count == 1

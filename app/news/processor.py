"""
News processing state machine.

    NEW ──claim──> PROCESSING ──ok──> COMPLETED   (terminal)
    FAILED ─claim─┘          └─error─> FAILED

Processing may only start from NEW or FAILED. The claim is a single
conditional UPDATE, so of two concurrent callers only one moves the record
to PROCESSING; the other sees zero affected rows and skips. Generation and
linking run in sequence with no partial checkpoint: any failure marks the
whole unit FAILED and a retry starts again from generation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.core.news_models import CLAIMABLE_STATUSES, News, NewsProcessingStatus
from app.core.retry_service import RetryPolicy

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


@dataclass
class ProcessResult:
    """Outcome of one process() call that did not raise."""
    news_id: str
    status: NewsProcessingStatus
    skipped: bool = False
    attempts: int = 0
    ai_output_id: Optional[str] = None
    links: Any = None


class NewsProcessor:
    """
    Drives one news record through AI generation and entity linking.

    Usage:
        processor = NewsProcessor(session_factory, generator, linker)
        result = await processor.process(org_id, news_id, user_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        generator,
        linker,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Args:
            session_factory: Callable returning a new Session
            generator: Object with async generate(tenant_id, news_id, user_id) -> ai_output_id
            linker: Object with async link_from_ai(ai_output_id)
            retry_policy: Schedules next_retry_at for failed records
        """
        self.session_factory = session_factory
        self.generator = generator
        self.linker = linker
        self.retry_policy = retry_policy or RetryPolicy()

    async def process(
        self, tenant_id: str, news_id: str, user_id: Optional[str] = None
    ) -> ProcessResult:
        """
        Run the record from NEW/FAILED to COMPLETED.

        Returns:
            ProcessResult with status COMPLETED, or skipped=True with the
            current status when another caller holds the record (or it is
            already COMPLETED)

        Raises:
            NotFoundError: News missing or owned by another organization
            Exception: The collaborator error, after the record is marked FAILED
        """
        attempts = self._claim(tenant_id, news_id)
        if attempts is None:
            current = self._current_status(tenant_id, news_id)
            if current is None:
                raise NotFoundError("News not found", resource_id=news_id)
            logger.info(f"News {news_id} not claimable (status={current.value}); skipping")
            return ProcessResult(news_id=news_id, status=current, skipped=True)

        logger.info(f"News {news_id} -> PROCESSING (attempt {attempts}, org={tenant_id})")

        try:
            ai_output_id = await self.generator.generate(tenant_id, news_id, user_id)
            links = await self.linker.link_from_ai(ai_output_id)
        except Exception as e:
            logger.error(f"News {news_id} processing failed: {e}", exc_info=True)
            try:
                self._mark_failed(tenant_id, news_id, attempts, e)
            except Exception as update_error:
                logger.error(f"Could not mark news {news_id} FAILED: {update_error}")
            raise

        self._transition(tenant_id, news_id, NewsProcessingStatus.COMPLETED)
        logger.info(f"News {news_id} -> COMPLETED")
        return ProcessResult(
            news_id=news_id,
            status=NewsProcessingStatus.COMPLETED,
            attempts=attempts,
            ai_output_id=ai_output_id,
            links=links,
        )

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def _claim(self, tenant_id: str, news_id: str) -> Optional[int]:
        """
        NEW/FAILED -> PROCESSING as one conditional update.

        Returns:
            The attempt number now running, or None if nothing was claimed
        """
        db = self.session_factory()
        try:
            claimed = (
                db.query(News)
                .filter(
                    News.id == news_id,
                    News.org_id == tenant_id,
                    News.processing_status.in_(CLAIMABLE_STATUSES),
                )
                .update(
                    {
                        News.processing_status: NewsProcessingStatus.PROCESSING,
                        News.processing_attempts: News.processing_attempts + 1,
                        News.next_retry_at: None,
                        News.updated_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            if claimed != 1:
                return None
            return (
                db.query(News.processing_attempts)
                .filter(News.id == news_id)
                .scalar()
            )
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _transition(self, tenant_id: str, news_id: str, status: NewsProcessingStatus, **values) -> int:
        """PROCESSING -> status; returns affected rows."""
        db = self.session_factory()
        try:
            updates = {News.processing_status: status, News.updated_at: datetime.utcnow()}
            updates.update({getattr(News, key): value for key, value in values.items()})
            affected = (
                db.query(News)
                .filter(
                    News.id == news_id,
                    News.org_id == tenant_id,
                    News.processing_status == NewsProcessingStatus.PROCESSING,
                )
                .update(updates, synchronize_session=False)
            )
            db.commit()
            if affected != 1:
                logger.warning(f"News {news_id} was not PROCESSING when moving to {status.value}")
            return affected
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _mark_failed(self, tenant_id: str, news_id: str, attempts: int, error: Exception) -> None:
        next_retry_at = self.retry_policy.next_retry_at(attempts)
        self._transition(
            tenant_id,
            news_id,
            NewsProcessingStatus.FAILED,
            last_error=str(error)[:MAX_ERROR_LENGTH] or error.__class__.__name__,
            next_retry_at=next_retry_at,
        )
        if next_retry_at is None:
            logger.warning(
                f"News {news_id} FAILED after {attempts} attempts; retries exhausted"
            )
        else:
            logger.info(f"News {news_id} -> FAILED (next retry at {next_retry_at.isoformat()})")

    def _current_status(self, tenant_id: str, news_id: str) -> Optional[NewsProcessingStatus]:
        db = self.session_factory()
        try:
            return (
                db.query(News.processing_status)
                .filter(News.id == news_id, News.org_id == tenant_id)
                .scalar()
            )
        finally:
            db.close()

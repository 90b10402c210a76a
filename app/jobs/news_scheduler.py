"""
News Scheduler.

Two polling loops over the news table, driven by APScheduler:
- New-work scan (every 60s by default): up to 5 NEW records, oldest
  created first.
- Retry scan (every 10 min by default): up to 3 FAILED records whose
  backoff has elapsed and whose attempts are not exhausted, oldest
  updated first.

Selected records go onto a bounded asyncio queue consumed by a fixed pool
of workers, so a slow job never blocks the next scan. Each job's outcome
is reported to an optional callback and kept in a short in-memory log.

Records stuck in PROCESSING (e.g. a hung downstream call) are never
selected by either loop; they need manual intervention.
"""
import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.news_models import News, NewsProcessingStatus
from app.core.retry_service import RetryPolicy

logger = logging.getLogger(__name__)

ORIGIN_NEW = "new"
ORIGIN_RETRY = "retry"

OUTCOME_LOG_SIZE = 500


@dataclass(frozen=True)
class NewsSchedulerConfig:
    """Cadence, batch sizes and pool sizing for the news loops."""
    new_interval_seconds: float = 60.0
    new_batch_size: int = 5
    retry_interval_seconds: float = 600.0
    retry_batch_size: int = 3
    worker_count: int = 4
    queue_size: int = 50

    @classmethod
    def from_settings(cls, settings) -> "NewsSchedulerConfig":
        return cls(
            new_interval_seconds=settings.news_new_interval_seconds,
            new_batch_size=settings.news_new_batch_size,
            retry_interval_seconds=settings.news_retry_interval_seconds,
            retry_batch_size=settings.news_retry_batch_size,
            worker_count=settings.news_worker_count,
            queue_size=settings.news_queue_size,
        )


@dataclass(frozen=True)
class NewsJob:
    tenant_id: str
    news_id: str
    origin: str


@dataclass
class JobOutcome:
    """Result of one dispatched job."""
    news_id: str
    tenant_id: str
    origin: str
    status: Optional[NewsProcessingStatus]
    skipped: bool = False
    error: Optional[str] = None
    finished_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.status == NewsProcessingStatus.COMPLETED


class NewsScheduler:
    """
    Discovers eligible news records and feeds them to the processor.

    Usage:
        scheduler = NewsScheduler(session_factory, processor, on_result=callback)
        await scheduler.start()
        ...
        await scheduler.shutdown()
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        processor,
        config: Optional[NewsSchedulerConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        on_result: Optional[Callable[[JobOutcome], Any]] = None,
    ):
        self.session_factory = session_factory
        self.processor = processor
        self.config = config or NewsSchedulerConfig()
        self.retry_policy = retry_policy or getattr(processor, "retry_policy", None) or RetryPolicy()
        self.on_result = on_result

        self.outcomes: Deque[JobOutcome] = deque(maxlen=OUTCOME_LOG_SIZE)
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._inflight: Set[str] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return bool(self._workers)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, schedule: bool = True) -> None:
        """
        Start the worker pool and, unless schedule=False, the polling loops.
        """
        if self.running:
            return

        self._queue = asyncio.Queue(maxsize=self.config.queue_size)
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"news-worker-{n}")
            for n in range(self.config.worker_count)
        ]

        if schedule:
            self._scheduler = AsyncIOScheduler()
            self._scheduler.add_job(
                self.scan_new,
                trigger=IntervalTrigger(seconds=self.config.new_interval_seconds),
                id="news_scan_new",
                name="Process NEW news",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._scheduler.add_job(
                self.scan_failed,
                trigger=IntervalTrigger(seconds=self.config.retry_interval_seconds),
                id="news_scan_failed",
                name="Retry FAILED news",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._scheduler.start()

        logger.info(
            f"News scheduler started: {self.config.worker_count} workers, "
            f"new every {self.config.new_interval_seconds}s (batch {self.config.new_batch_size}), "
            f"retry every {self.config.retry_interval_seconds}s (batch {self.config.retry_batch_size})"
        )

    async def drain(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def shutdown(self) -> None:
        """Stop polling and cancel the workers; running jobs are abandoned."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        self._inflight.clear()
        logger.info("News scheduler stopped")

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_new(self, db: Session) -> List[Tuple[str, str]]:
        """(org_id, news_id) of NEW records, oldest created first."""
        rows = (
            db.query(News.org_id, News.id)
            .filter(News.processing_status == NewsProcessingStatus.NEW)
            .order_by(News.created_at.asc())
            .limit(self.config.new_batch_size)
            .all()
        )
        return [(row.org_id, row.id) for row in rows]

    def select_retryable(self, db: Session, now: Optional[datetime] = None) -> List[Tuple[str, str]]:
        """(org_id, news_id) of FAILED records due for retry, oldest updated first."""
        now = now or datetime.utcnow()
        rows = (
            db.query(News.org_id, News.id)
            .filter(
                News.processing_status == NewsProcessingStatus.FAILED,
                News.processing_attempts < self.retry_policy.max_attempts,
                or_(News.next_retry_at.is_(None), News.next_retry_at <= now),
            )
            .order_by(News.updated_at.asc())
            .limit(self.config.retry_batch_size)
            .all()
        )
        return [(row.org_id, row.id) for row in rows]

    async def scan_new(self) -> List[str]:
        """One tick of the new-work loop; returns the news ids enqueued."""
        return self._scan(self.select_new, ORIGIN_NEW)

    async def scan_failed(self) -> List[str]:
        """One tick of the retry loop; returns the news ids enqueued."""
        return self._scan(self.select_retryable, ORIGIN_RETRY)

    def _scan(self, select: Callable[[Session], List[Tuple[str, str]]], origin: str) -> List[str]:
        db = self.session_factory()
        try:
            rows = select(db)
        except Exception as e:
            logger.error(f"News scan ({origin}) failed: {e}", exc_info=True)
            return []
        finally:
            db.close()

        enqueued = []
        for tenant_id, news_id in rows:
            if self.submit(NewsJob(tenant_id=tenant_id, news_id=news_id, origin=origin)):
                enqueued.append(news_id)

        if rows:
            logger.info(f"News scan ({origin}): {len(rows)} selected, {len(enqueued)} enqueued")
        return enqueued

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def submit(self, job: NewsJob) -> bool:
        """
        Enqueue a job without waiting.

        Returns False when the record is already queued or running in this
        process, the pool is not started, or the queue is full (the record
        is selected again on a later tick).
        """
        if self._queue is None:
            logger.warning(f"News scheduler not started; dropping {job.news_id}")
            return False
        if job.news_id in self._inflight:
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning(f"News queue full; deferring {job.news_id}")
            return False
        self._inflight.add(job.news_id)
        return True

    async def _worker(self, n: int) -> None:
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                outcome = await self._run_job(job)
                await self._report(outcome)
            finally:
                self._inflight.discard(job.news_id)
                queue.task_done()

    async def _run_job(self, job: NewsJob) -> JobOutcome:
        try:
            result = await self.processor.process(job.tenant_id, job.news_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled {job.origin} job for news {job.news_id} failed: {e}")
            return JobOutcome(
                news_id=job.news_id,
                tenant_id=job.tenant_id,
                origin=job.origin,
                status=NewsProcessingStatus.FAILED,
                error=str(e) or e.__class__.__name__,
            )
        return JobOutcome(
            news_id=job.news_id,
            tenant_id=job.tenant_id,
            origin=job.origin,
            status=result.status,
            skipped=result.skipped,
        )

    async def _report(self, outcome: JobOutcome) -> None:
        self.outcomes.append(outcome)
        if self.on_result is None:
            return
        try:
            maybe_awaitable = self.on_result(outcome)
            if inspect.isawaitable(maybe_awaitable):
                await maybe_awaitable
        except Exception as e:
            logger.error(f"News outcome callback failed for {outcome.news_id}: {e}")

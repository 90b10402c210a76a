"""
News Record Gateway.

Guarantees one canonical `news` row per source annotation task, and
offers direct ingestion plus tenant-scoped reads of news records.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import AccessDeniedError, ValidationError
from app.core.news_models import AnnotationTask, LabelProject, News, NewsProcessingStatus

logger = logging.getLogger(__name__)

# Task metadata keys copied onto a new news record
NEWS_METADATA_FIELDS = (
    "headline",
    "source_name",
    "publish_date",
    "url",
    "raw_text",
    "cleaned_text",
)

REQUIRED_INGEST_FIELDS = ("headline", "source_name", "publish_date", "url")

LIST_LIMIT = 50


@dataclass
class IngestResult:
    """Outcome of direct news ingestion."""
    news_id: str
    deduplicated: bool


def ensure_news_record(db: Session, task_id: str, tenant_id: str, created_by: Optional[str]) -> str:
    """
    Return the news id for a source task, creating the record on first call.

    The task is read through an explicit tenant-scoped join on its project,
    so a task id from another organization is never readable. When the
    task metadata already carries a `news_id` that still exists in this
    tenant it is returned unchanged; otherwise a news row is built from the
    metadata and its id written back onto the task, scoped by task id and
    the verified project id.

    Raises:
        AccessDeniedError: Task missing or owned by another organization
    """
    found = (
        db.query(AnnotationTask, LabelProject)
        .join(LabelProject, AnnotationTask.project_id == LabelProject.id)
        .filter(AnnotationTask.id == task_id, LabelProject.org_id == tenant_id)
        .with_for_update(of=AnnotationTask)
        .first()
    )
    if found is None:
        raise AccessDeniedError(
            "Access denied: task not found or does not belong to your organization",
            resource_id=task_id,
        )

    task, project = found
    metadata: Dict[str, Any] = dict(task.task_metadata or {})

    existing_id = metadata.get("news_id")
    if existing_id:
        existing = (
            db.query(News.id)
            .filter(News.id == existing_id, News.org_id == tenant_id)
            .first()
        )
        if existing is not None:
            db.commit()
            return existing_id
        logger.warning(f"Task {task_id} references missing news {existing_id}; recreating")

    news = News(
        org_id=tenant_id,
        created_by=created_by,
        processing_status=NewsProcessingStatus.NEW,
        **{key: metadata.get(key) or None for key in NEWS_METADATA_FIELDS},
    )
    db.add(news)
    db.flush()

    metadata["news_id"] = news.id
    updated = (
        db.query(AnnotationTask)
        .filter(AnnotationTask.id == task_id, AnnotationTask.project_id == project.id)
        .update({AnnotationTask.task_metadata: metadata}, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise AccessDeniedError("Access denied: task changed during news creation", resource_id=task_id)

    db.commit()
    logger.info(f"Created news {news.id} for task {task_id} (org={tenant_id})")
    return news.id


def ingest_news(
    db: Session,
    tenant_id: str,
    created_by: Optional[str],
    headline: Optional[str],
    source_name: Optional[str],
    publish_date: Optional[str],
    url: Optional[str],
    raw_text: Optional[str] = None,
) -> IngestResult:
    """
    Create a NEW news record directly, de-duplicated by (org, url).

    Raises:
        ValidationError: A required field is missing
    """
    values = {
        "headline": headline,
        "source_name": source_name,
        "publish_date": publish_date,
        "url": url,
    }
    missing = {key: "required" for key in REQUIRED_INGEST_FIELDS if not values[key]}
    if missing:
        raise ValidationError("missing_required_fields", invalid_params=missing)

    existing = (
        db.query(News.id)
        .filter(News.org_id == tenant_id, News.url == url)
        .first()
    )
    if existing is not None:
        return IngestResult(news_id=existing.id, deduplicated=True)

    news = News(
        org_id=tenant_id,
        raw_text=raw_text or None,
        created_by=created_by,
        processing_status=NewsProcessingStatus.NEW,
        **values,
    )
    db.add(news)
    db.commit()
    logger.info(f"Ingested news {news.id} from {source_name} (org={tenant_id})")
    return IngestResult(news_id=news.id, deduplicated=False)


def get_news(db: Session, tenant_id: str, news_id: str) -> Optional[News]:
    """Tenant-scoped fetch; None when missing or foreign."""
    return (
        db.query(News)
        .filter(News.id == news_id, News.org_id == tenant_id)
        .first()
    )


def list_news(db: Session, tenant_id: str, limit: int = LIST_LIMIT) -> List[News]:
    """Newest-first news records of one organization."""
    return (
        db.query(News)
        .filter(News.org_id == tenant_id)
        .order_by(News.created_at.desc())
        .limit(limit)
        .all()
    )

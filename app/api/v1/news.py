"""
News API Endpoints

Ingestion, tenant-scoped reads, on-demand processing and entity links for
news records.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.v1.context import TenantContext, get_tenant, http_error
from app.core.database import get_db
from app.core.errors import NotFoundError, ValidationError
from app.news import gateway
from app.news.pipeline import NewsPipeline, get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/news", tags=["News"])


# =============================================================================
# SCHEMAS
# =============================================================================


class IngestNewsRequest(BaseModel):
    """A news item to ingest directly."""

    headline: Optional[str] = None
    source_name: Optional[str] = None
    publish_date: Optional[str] = Field(None, description="ISO date (YYYY-MM-DD)")
    url: Optional[str] = None
    raw_text: Optional[str] = None


class IngestNewsResponse(BaseModel):
    news_id: str
    deduplicated: bool


class NewsFromTaskResponse(BaseModel):
    news_id: str


class NewsResponse(BaseModel):
    """A news record with its processing state."""

    id: str
    headline: Optional[str] = None
    source_name: Optional[str] = None
    publish_date: Optional[str] = None
    url: Optional[str] = None
    processing_status: str
    processing_attempts: int
    last_error: Optional[str] = None
    next_retry_at: Optional[str] = None
    created_at: str
    updated_at: str


class ProcessResponse(BaseModel):
    news_id: str
    status: str
    skipped: bool
    attempts: int
    ai_output_id: Optional[str] = None
    entities_linked: int = 0


class CreateLinkRequest(BaseModel):
    entity_type: str = Field(..., description="Entity type, alias or legacy discriminator")
    entity_id: str


class LinkResponse(BaseModel):
    id: str
    news_id: str
    entity_type: str
    entity_id: str
    match_type: str
    created_by: Optional[str] = None
    created_at: str


def news_to_response(news: Any) -> NewsResponse:
    return NewsResponse(
        id=news.id,
        headline=news.headline,
        source_name=news.source_name,
        publish_date=news.publish_date,
        url=news.url,
        processing_status=news.processing_status.value,
        processing_attempts=news.processing_attempts or 0,
        last_error=news.last_error,
        next_retry_at=news.next_retry_at.isoformat() if news.next_retry_at else None,
        created_at=news.created_at.isoformat(),
        updated_at=news.updated_at.isoformat(),
    )


def link_to_response(link: Any) -> LinkResponse:
    return LinkResponse(
        id=link.id,
        news_id=link.news_id,
        entity_type=link.entity_type,
        entity_id=link.entity_id,
        match_type=link.match_type,
        created_by=link.created_by,
        created_at=link.created_at.isoformat(),
    )


# =============================================================================
# NEWS RECORDS
# =============================================================================


@router.post("", response_model=IngestNewsResponse, status_code=201)
async def ingest_news(
    request: IngestNewsRequest,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
):
    """
    Ingest a news item.

    headline, source_name, publish_date and url are required. An item whose
    url already exists in the organization is not inserted again; the
    existing id is returned with deduplicated=true.
    """
    try:
        result = gateway.ingest_news(
            db,
            tenant.org_id,
            tenant.user_id,
            headline=request.headline,
            source_name=request.source_name,
            publish_date=request.publish_date,
            url=request.url,
            raw_text=request.raw_text,
        )
    except ValidationError as e:
        raise http_error(e)
    return IngestNewsResponse(news_id=result.news_id, deduplicated=result.deduplicated)


@router.get("", response_model=List[NewsResponse])
async def list_news(
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
):
    """Most recent news records of the organization."""
    return [news_to_response(n) for n in gateway.list_news(db, tenant.org_id)]


@router.get("/{news_id}", response_model=NewsResponse)
async def get_news(
    news_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
):
    news = gateway.get_news(db, tenant.org_id, news_id)
    if news is None:
        raise HTTPException(status_code=404, detail="News not found")
    return news_to_response(news)


@router.post("/from-task/{task_id}", response_model=NewsFromTaskResponse)
async def news_from_task(
    task_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
):
    """
    Get or create the canonical news record for an annotation task.

    Calling this repeatedly for the same task returns the same id.
    """
    try:
        news_id = gateway.ensure_news_record(db, task_id, tenant.org_id, tenant.user_id)
    except NotFoundError as e:
        raise http_error(e)
    return NewsFromTaskResponse(news_id=news_id)


@router.post("/{news_id}/process", response_model=ProcessResponse)
async def process_news(
    news_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    """
    Run AI generation and entity linking for one news record now.

    Records already COMPLETED or currently PROCESSING are skipped. Any
    failure after the record is found is reported as a generic 500.
    """
    if gateway.get_news(db, tenant.org_id, news_id) is None:
        raise HTTPException(status_code=404, detail="News not found")

    try:
        result = await pipeline.processor.process(tenant.org_id, news_id, tenant.user_id)
    except Exception as e:
        logger.error(f"Processing news {news_id} failed: {e}")
        raise HTTPException(status_code=500, detail="news_processing_failed")

    return ProcessResponse(
        news_id=result.news_id,
        status=result.status.value,
        skipped=result.skipped,
        attempts=result.attempts,
        ai_output_id=result.ai_output_id,
        entities_linked=result.links.linked if result.links is not None else 0,
    )


# =============================================================================
# ENTITY LINKS
# =============================================================================


@router.get("/{news_id}/links", response_model=List[LinkResponse])
async def list_links(
    news_id: str,
    tenant: TenantContext = Depends(get_tenant),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    try:
        links = pipeline.link_store.list_links(tenant.org_id, news_id)
    except NotFoundError as e:
        raise http_error(e)
    return [link_to_response(link) for link in links]


@router.post("/{news_id}/links", response_model=LinkResponse, status_code=201)
async def create_link(
    news_id: str,
    request: CreateLinkRequest,
    tenant: TenantContext = Depends(get_tenant),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    """Link an entity of the same organization to the news item."""
    try:
        link = await pipeline.link_store.add_link(
            tenant.org_id, news_id, request.entity_type, request.entity_id, tenant.user_id
        )
    except NotFoundError as e:
        raise http_error(e)
    return link_to_response(link)


@router.delete("/{news_id}/links/{link_id}", status_code=204)
async def delete_link(
    news_id: str,
    link_id: str,
    tenant: TenantContext = Depends(get_tenant),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    try:
        pipeline.link_store.remove_link(tenant.org_id, news_id, link_id)
    except NotFoundError as e:
        raise http_error(e)
    return None

"""
Entity API Endpoints

Tenant-scoped search, lookup and creation of CRM entities (GPs, LPs,
funds, portfolio companies, service providers, contacts).
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.api.v1.context import TenantContext, get_tenant, http_error
from app.core.entity_types import ResolvedEntity
from app.core.errors import ValidationError
from app.news.pipeline import NewsPipeline, get_pipeline

router = APIRouter(prefix="/entities", tags=["Entities"])


# =============================================================================
# SCHEMAS
# =============================================================================


class EntityResponse(BaseModel):
    """Normalized view of one entity."""

    id: str
    name: str
    kind: str


class EntitySearchResponse(BaseModel):
    """Search results, grouped by kind in fixed order."""

    query: str
    results: List[EntityResponse]
    total: int


class CreateEntityRequest(BaseModel):
    """Request to create an entity."""

    entity_type: str = Field(..., description="Entity type or alias, e.g. 'gp', 'PE', 'Buyout'")
    name: str = Field(..., description="Display name; contacts are split into first/last")


def entity_to_response(entity: ResolvedEntity) -> EntityResponse:
    return EntityResponse(**entity.to_dict())


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.get("/search", response_model=EntitySearchResponse)
async def search_entities(
    q: str = Query("", description="Name fragment (at least 2 characters)"),
    tenant: TenantContext = Depends(get_tenant),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    """
    Search all entity tables by name.

    Returns up to the per-table limit from each table, in the order GP, LP,
    Fund, Company, Contact, Service Provider.
    """
    results = await pipeline.search.search(tenant.org_id, q)
    return EntitySearchResponse(
        query=q,
        results=[entity_to_response(r) for r in results],
        total=len(results),
    )


@router.get("/types")
async def entity_types(pipeline: NewsPipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    """Accepted type aliases and legacy discriminators."""
    return pipeline.resolver.describe()


@router.get("/{entity_type}/{entity_id}", response_model=EntityResponse)
async def get_entity(
    entity_type: str,
    entity_id: str,
    tenant: TenantContext = Depends(get_tenant),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    """
    Resolve an entity reference.

    The type may be a canonical kind, an alias or a legacy discriminator;
    unknown types fall back to probing every table.
    """
    entity = await pipeline.resolver.resolve(tenant.org_id, entity_type, entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail="Not found or access denied")
    return entity_to_response(entity)


@router.post("", response_model=EntityResponse, status_code=201)
async def create_entity(
    request: CreateEntityRequest,
    tenant: TenantContext = Depends(get_tenant),
    pipeline: NewsPipeline = Depends(get_pipeline),
):
    """Create an entity with its type's default classification."""
    try:
        entity = pipeline.creator.create(
            tenant.org_id, request.entity_type, request.name, tenant.user_id
        )
    except ValidationError as e:
        raise http_error(e)
    return entity_to_response(entity)

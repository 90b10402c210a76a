"""
Request context shared by the v1 routers.

The caller's organization and user arrive as headers set by the upstream
gateway; this service trusts them and scopes every query by organization.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.errors import CRMError


@dataclass(frozen=True)
class TenantContext:
    org_id: str
    user_id: Optional[str] = None


async def get_tenant(
    x_org_id: Optional[str] = Header(None, alias="X-Org-Id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> TenantContext:
    """Require an organization header."""
    if not x_org_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Org-Id header is required",
        )
    return TenantContext(org_id=x_org_id, user_id=x_user_id)


def http_error(error: CRMError) -> HTTPException:
    """Map a core error onto the HTTP status it declares."""
    return HTTPException(status_code=error.status_code or 500, detail=error.message)

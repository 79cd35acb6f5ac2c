"""Request tenant context: resolve the tenant scope and hand out schema-bound sessions."""

from __future__ import annotations

import logging
import uuid
from typing import AsyncIterator

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.api.auth import require_auth
from grcnexus.database import SchemaMissing, get_session
from grcnexus.models.tenant import Tenant
from grcnexus.security.tokens import TokenClaims

logger = logging.getLogger("grcnexus.tenancy")

TENANT_HEADER = "X-Tenant-ID"


async def bind_tenant_context(
    request: Request,
    claims: TokenClaims = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> str:
    """Resolve the tenant this request operates on.

    An explicit ``X-Tenant-ID`` header wins, but only a super-admin may point it
    at a tenant other than the one in their token. Ids are compared as UUIDs,
    so letter case and dashes do not matter. The tenant must still exist in the
    registry; a token outliving its tenant gets 404.
    """
    header = (request.headers.get(TENANT_HEADER) or "").strip()
    tenant_id = header or claims.tenant_id
    if not tenant_id:
        raise HTTPException(status_code=400, detail="Tenant context required")

    try:
        requested = uuid.UUID(tenant_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid tenant id")

    if header and not claims.is_super_admin and requested != _token_tenant(claims):
        logger.warning("User %s tried to switch tenant to %s", claims.user_id, header)
        raise HTTPException(
            status_code=403,
            detail={"error": "Cross-tenant access denied", "required": "tenant_match", "role": claims.role.value},
        )

    tenant_id = str(requested)
    result = await session.execute(
        select(Tenant.id).where(Tenant.id == tenant_id, Tenant.is_deleted.is_(False))
    )
    if result.first() is None:
        raise HTTPException(status_code=404, detail="Tenant not found")

    request.state.tenant_id = tenant_id
    return tenant_id


def _token_tenant(claims: TokenClaims) -> uuid.UUID | None:
    try:
        return uuid.UUID(claims.tenant_id or "")
    except ValueError:
        return None


async def get_tenant_session(
    request: Request,
    tenant_id: str = Depends(bind_tenant_context),
) -> AsyncIterator[AsyncSession]:
    """Dependency yielding a session routed to the bound tenant's schema."""
    try:
        async with request.app.state.db.tenant_session(tenant_id) as session:
            yield session
    except SchemaMissing:
        logger.warning("Tenant %s has no schema; refusing request", tenant_id)
        raise HTTPException(status_code=404, detail="Tenant not found")

"""Audit trail writer for platform and lifecycle actions."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.models.audit import AuditLog

logger = logging.getLogger("grcnexus.audit")


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def record(
    session: AsyncSession,
    *,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """Stage an audit row on ``session``; it is persisted with the caller's commit."""
    entry = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        tenant_id=tenant_id,
        user_id=user_id,
        details=details or {},
        ip_address=client_ip(request),
    )
    session.add(entry)
    logger.info("audit %s %s/%s by %s", action, resource_type, resource_id, user_id)
    return entry

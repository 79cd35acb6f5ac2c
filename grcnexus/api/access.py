"""Access gate dependencies.

Each factory returns a FastAPI dependency that admits or rejects the caller
from token claims alone; no gate touches the database. Denials are 403 with
``{error, required, role}`` so clients can tell which grant was missing.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from grcnexus.api.auth import require_auth
from grcnexus.security.permissions import ADMIN_FLOOR, Permission, Role, domain_roles, permits
from grcnexus.security.tokens import TokenClaims

logger = logging.getLogger("grcnexus.access")


def _deny(request: Request, claims: TokenClaims, error: str, required) -> None:
    label = required if isinstance(required, str) else ",".join(required)
    request.app.state.metrics.observe_denial(label)
    logger.warning(
        "Access denied for user %s (role=%s) on %s %s: requires %s",
        claims.user_id,
        claims.role.value,
        request.method,
        request.url.path,
        label,
    )
    raise HTTPException(
        status_code=403,
        detail={"error": error, "required": required, "role": claims.role.value},
    )


def require_permission(permission: Permission):
    """Admit callers whose role grants ``permission``."""
    async def _check(request: Request, claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
        if not permits(claims.role, permission):
            _deny(request, claims, "Insufficient permissions", permission.value)
        return claims

    _check.required_permission = permission
    return _check


def require_any_of(*roles: Role | str):
    """Admit callers whose role is one of ``roles`` (case-insensitive)."""
    allowed = sorted({str(getattr(role, "value", role)).lower() for role in roles})

    async def _check(request: Request, claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
        if claims.role.value.lower() not in allowed:
            _deny(request, claims, "Insufficient role", allowed)
        return claims

    _check.required_roles = tuple(allowed)
    return _check


def require_domain_access(domain: str):
    """Admit callers whose role belongs to ``domain``'s allowlist."""
    allowed = domain_roles(domain)

    async def _check(request: Request, claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
        if claims.role not in allowed:
            _deny(request, claims, "Insufficient permissions for this domain", domain)
        return claims

    _check.required_domain = domain
    return _check


async def require_super_admin(request: Request, claims: TokenClaims = Depends(require_auth)) -> TokenClaims:
    if not claims.is_super_admin:
        _deny(request, claims, "Super admin access required", Role.SUPER_ADMIN.value)
    return claims


require_tenant_admin_or_above = require_any_of(*ADMIN_FLOOR)

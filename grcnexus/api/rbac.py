"""RBAC API: catalog introspection and role assignment."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.api.access import require_super_admin, require_tenant_admin_or_above
from grcnexus.api.auth import require_auth
from grcnexus.database import get_session
from grcnexus.models.user import RoleAssignment, User
from grcnexus.security.permissions import (
    PERMISSION_DESCRIPTIONS,
    ROLE_DESCRIPTIONS,
    Permission,
    Role,
    parse_role,
    permission_category,
    permissions_for,
)
from grcnexus.security.tokens import TokenClaims
from grcnexus.services import audit
from grcnexus.utils.time import utc_now

router = APIRouter(prefix="/api/rbac", tags=["rbac"])
logger = logging.getLogger("grcnexus.rbac")

# Only a super-admin may hand these out.
PRIVILEGED_ROLES = frozenset({Role.SUPER_ADMIN, Role.PLATFORM_OWNER})


def _permission_out(permission: Permission) -> dict:
    return {
        "name": permission.value,
        "description": PERMISSION_DESCRIPTIONS.get(permission, ""),
        "category": permission_category(permission),
    }


@router.get("/permissions", dependencies=[Depends(require_super_admin)])
async def list_permissions():
    return [_permission_out(p) for p in Permission]


@router.get("/roles", dependencies=[Depends(require_super_admin)])
async def list_roles():
    return [
        {
            "name": role.value,
            "description": ROLE_DESCRIPTIONS[role],
            "permissions": sorted(p.value for p in permissions_for(role)),
        }
        for role in Role
    ]


@router.get("/permissions/{role}", dependencies=[Depends(require_super_admin)])
async def role_permissions(role: str):
    """Permissions granted to ``role``; an unknown role has none."""
    return {
        "role": role,
        "permissions": [_permission_out(p) for p in sorted(permissions_for(role), key=lambda p: p.value)],
    }


@router.get("/me")
async def my_permissions(claims: TokenClaims = Depends(require_auth)):
    return {
        "role": claims.role.value,
        "is_super_admin": claims.is_super_admin,
        "permissions": sorted(p.value for p in permissions_for(claims.role)),
    }


async def _target_user(session: AsyncSession, user_id: str, claims: TokenClaims) -> User:
    result = await session.execute(select(User).where(User.id == user_id, User.is_deleted.is_(False)))
    user = result.scalar_one_or_none()
    # Users of other tenants are indistinguishable from missing ones.
    if user is None or (not claims.is_super_admin and user.tenant_id != claims.tenant_id):
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _set_role(
    request: Request,
    session: AsyncSession,
    claims: TokenClaims,
    user: User,
    role: Role,
    action: str,
) -> dict:
    previous = user.role
    user.role = role.value
    user.updated_at = utc_now()
    audit.record(
        session, action=action, resource_type="user", resource_id=user.id,
        tenant_id=user.tenant_id, user_id=claims.user_id,
        details={"from": previous, "to": role.value}, request=request,
    )
    await session.commit()
    logger.info("User %s role %s -> %s by %s", user.id, previous, role.value, claims.user_id)
    return {"id": user.id, "email": user.email, "role": user.role}


@router.post("/users/{user_id}/role")
async def assign_role(
    request: Request,
    user_id: str,
    data: RoleAssignment,
    claims: TokenClaims = Depends(require_tenant_admin_or_above),
    session: AsyncSession = Depends(get_session),
):
    if data.role in PRIVILEGED_ROLES and not claims.is_super_admin:
        raise HTTPException(
            status_code=403,
            detail={"error": "Super admin access required", "required": Role.SUPER_ADMIN.value, "role": claims.role.value},
        )
    user = await _target_user(session, user_id, claims)
    return await _set_role(request, session, claims, user, data.role, "user.assign_role")


@router.delete("/users/{user_id}/role")
async def reset_role(
    request: Request,
    user_id: str,
    claims: TokenClaims = Depends(require_tenant_admin_or_above),
    session: AsyncSession = Depends(get_session),
):
    """Drop the user back to ``regular_user``."""
    user = await _target_user(session, user_id, claims)
    if parse_role(user.role) in PRIVILEGED_ROLES and not claims.is_super_admin:
        raise HTTPException(
            status_code=403,
            detail={"error": "Super admin access required", "required": Role.SUPER_ADMIN.value, "role": claims.role.value},
        )
    return await _set_role(request, session, claims, user, Role.REGULAR_USER, "user.reset_role")

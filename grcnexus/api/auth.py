"""Authentication API: bearer-token principal, login and self-service registration."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.config import get_settings
from grcnexus.database import get_session
from grcnexus.models.tenant import TenantResponse
from grcnexus.models.user import LoginUser, UserLogin, UserRegister, UserResponse
from grcnexus.security.permissions import permissions_for
from grcnexus.security.tokens import TokenClaims, TokenError
from grcnexus.services import accounts
from grcnexus.services.provisioning import ProvisioningError

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("grcnexus.auth")

security = HTTPBearer(auto_error=False)

# Rate limiter (app.state.limiter points here; create_app toggles `enabled`).
limiter = Limiter(key_func=get_remote_address)


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ── Dependency: current principal ─────────────────────────────

async def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[TokenClaims]:
    """Validate the bearer token, if any. Returns None when no token is sent."""
    if credentials is None:
        return None

    try:
        claims = request.app.state.tokens.validate(credentials.credentials)
    except TokenError as exc:
        detail = "Token has expired" if exc.kind == "expired" else "Invalid or expired token"
        raise HTTPException(status_code=401, detail=detail)

    request.state.user_id = claims.user_id
    request.state.tenant_id = claims.tenant_id
    return claims


async def require_auth(
    claims: Optional[TokenClaims] = Depends(get_current_claims),
) -> TokenClaims:
    """Strict auth dependency: rejects unauthenticated requests."""
    if claims is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return claims


# ── Endpoints ─────────────────────────────────────────────────

@router.post("/login")
@limiter.limit(_login_rate_limit)
async def login(
    request: Request,
    data: UserLogin,
    session: AsyncSession = Depends(get_session),
):
    settings = request.app.state.settings
    try:
        user = await accounts.authenticate(
            session, data.email, data.password, bcrypt_rounds=settings.bcrypt_rounds
        )
    except accounts.LoginRejected as exc:
        request.app.state.metrics.observe_login(exc.reason)
        logger.info("Login rejected for %s: %s", accounts.normalize_email(data.email), exc.message)
        raise HTTPException(status_code=401, detail=exc.message)

    request.app.state.metrics.observe_login("success")
    token = request.app.state.tokens.issue(user)
    return {
        "token": token,
        "user": LoginUser.model_validate(user).model_dump(by_alias=True),
    }


@router.post("/register", status_code=201)
async def register(
    request: Request,
    data: UserRegister,
    session: AsyncSession = Depends(get_session),
):
    """Create a pending organization and its admin. No token is issued."""
    settings = request.app.state.settings
    try:
        registration = await accounts.register(
            session,
            request.app.state.provisioner,
            data,
            bcrypt_rounds=settings.bcrypt_rounds,
            default_plan=settings.default_plan,
            default_price=settings.default_plan_price,
            currency=settings.default_currency,
        )
    except accounts.RegistrationConflict as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except ProvisioningError:
        raise HTTPException(status_code=500, detail="Failed to provision organization workspace")

    return {
        "pending": True,
        "message": accounts.PENDING_MESSAGE,
        "tenant": TenantResponse.model_validate(registration.tenant).model_dump(mode="json"),
        "user": UserResponse.model_validate(registration.user).model_dump(mode="json"),
    }


@router.get("/me")
async def get_me(claims: TokenClaims = Depends(require_auth)):
    """Return the caller's claims and effective permissions."""
    return {
        "user_id": claims.user_id,
        "tenant_id": claims.tenant_id,
        "email": claims.email,
        "role": claims.role.value,
        "is_super_admin": claims.is_super_admin,
        "permissions": sorted(p.value for p in permissions_for(claims.role)),
    }

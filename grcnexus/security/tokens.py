"""Signed session tokens (HS256 JWT via python-jose) with a typed claims record."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from grcnexus.config import Settings
from grcnexus.security.permissions import Role
from grcnexus.utils.time import utc_now


class TokenError(Exception):
    """Token rejected; ``kind`` is one of ``invalid``, ``expired`` or ``malformed``."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class TokenClaims(BaseModel):
    """Exact claim set carried by a session token. Unknown or missing keys are rejected."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_id: str
    tenant_id: Optional[str]
    email: str
    role: Role
    is_super_admin: bool
    iss: str
    iat: int
    exp: int


class TokenService:
    def __init__(self, secret: str, issuer: str, algorithm: str = "HS256", expires_hours: int = 24) -> None:
        self.secret = secret
        self.issuer = issuer
        self.algorithm = algorithm
        self.lifetime = timedelta(hours=expires_hours)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            algorithm=settings.jwt_algorithm,
            expires_hours=settings.jwt_expires_hours,
        )

    def build_claims(
        self,
        *,
        user_id: str,
        tenant_id: Optional[str],
        email: str,
        role: Role | str,
        is_super_admin: bool,
        now: datetime | None = None,
    ) -> TokenClaims:
        issued_at = now or utc_now()
        return TokenClaims(
            user_id=str(user_id),
            tenant_id=str(tenant_id) if tenant_id else None,
            email=email,
            role=role,
            is_super_admin=is_super_admin,
            iss=self.issuer,
            iat=int(issued_at.timestamp()),
            exp=int((issued_at + self.lifetime).timestamp()),
        )

    def encode(self, claims: TokenClaims) -> str:
        return jwt.encode(claims.model_dump(mode="json"), self.secret, algorithm=self.algorithm)

    def issue(self, user, now: datetime | None = None) -> str:
        """Sign a token for a persisted principal."""
        claims = self.build_claims(
            user_id=user.id,
            tenant_id=user.tenant_id,
            email=user.email,
            role=user.role,
            is_super_admin=bool(user.is_super_admin),
            now=now,
        )
        return self.encode(claims)

    def validate(self, token: str) -> TokenClaims:
        """Verify signature, expiry and issuer, then parse the claim set strictly."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm], issuer=self.issuer)
        except ExpiredSignatureError as exc:
            raise TokenError("expired", "Token has expired") from exc
        except JWTError as exc:
            raise TokenError("invalid", f"Invalid token: {exc}") from exc

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise TokenError("malformed", "Malformed token claims") from exc

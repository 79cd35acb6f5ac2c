"""Principal (user) model for authentication."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import Base
from grcnexus.models.mixins import RecordMixin
from grcnexus.security.credentials import PasswordHash, PasswordHashType
from grcnexus.security.permissions import Role


class UserStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class User(RecordMixin, Base):
    __tablename__ = "users"

    # Null only for super-admins.
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password: Mapped[PasswordHash] = mapped_column("password_hash", PasswordHashType())
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    role: Mapped[str] = mapped_column(String(50), default=Role.REGULAR_USER.value)
    status: Mapped[str] = mapped_column(String(20), default=UserStatus.ACTIVE.value)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


# ── Pydantic Schemas ─────────────────────────────────────────

class UserRegister(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=72)
    first_name: str = Field(default="", alias="firstName", max_length=100)
    last_name: str = Field(default="", alias="lastName", max_length=100)
    company_name: str | None = Field(default=None, alias="companyName", max_length=255)
    domain: str | None = Field(default=None, max_length=200)

    model_config = {"populate_by_name": True}


class UserLogin(BaseModel):
    email: str
    password: str


class LoginUser(BaseModel):
    """User block of the login response (camelCase on the wire)."""

    id: str
    email: str
    first_name: str = Field(serialization_alias="firstName")
    last_name: str = Field(serialization_alias="lastName")
    role: str
    tenant_id: str | None = Field(serialization_alias="tenantId")
    is_super_admin: bool = Field(serialization_alias="isSuperAdmin")

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: str
    tenant_id: str | None = None
    email: str
    first_name: str
    last_name: str
    role: str
    status: str
    is_super_admin: bool
    last_login: datetime | None = None
    created_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str | None = Field(default=None, min_length=8, max_length=72)
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.REGULAR_USER


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    role: Role | None = None
    status: UserStatus | None = None


class PasswordReset(BaseModel):
    password: str = Field(min_length=8, max_length=72)


class RoleAssignment(BaseModel):
    role: Role

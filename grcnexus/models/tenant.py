"""Tenant (organization) registry model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import Base
from grcnexus.models.mixins import RecordMixin


class TenantStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class Tenant(RecordMixin, Base):
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), index=True)
    domain: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=TenantStatus.PENDING.value, index=True)
    config: Mapped[dict] = mapped_column(JSON, default=dict)


# ── Pydantic Schemas ─────────────────────────────────────────

class TenantResponse(BaseModel):
    id: str
    name: str
    domain: str
    description: str | None = None
    status: str
    created_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class TenantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    domain: str | None = Field(default=None, max_length=200)
    description: str | None = None
    plan_type: str | None = None
    price: float | None = Field(default=None, ge=0)
    billing_cycle: str = "monthly"
    duration_months: int | None = Field(default=None, ge=1, le=120)
    admin_email: str = Field(min_length=3, max_length=255)
    admin_first_name: str = ""
    admin_last_name: str = ""
    admin_password: str | None = Field(default=None, min_length=8, max_length=72)


class TenantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    domain: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None


class TenantActivate(BaseModel):
    plan_type: str | None = None
    duration_months: int | None = Field(default=None, ge=1, le=120)
    price: float | None = Field(default=None, ge=0)
    billing_cycle: str | None = None

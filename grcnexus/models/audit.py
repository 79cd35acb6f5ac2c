"""Audit log of platform and lifecycle actions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import Base
from grcnexus.models.mixins import RecordMixin


class AuditLog(RecordMixin, Base):
    __tablename__ = "audit_logs"

    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(64), index=True)
    resource_type: Mapped[str] = mapped_column(String(64))
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class AuditLogResponse(BaseModel):
    id: str
    tenant_id: str | None = None
    user_id: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    details: dict
    ip_address: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

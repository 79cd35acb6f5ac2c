"""Columns shared by every persisted record, registry and tenant tables alike."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.utils.time import utc_now


def new_id() -> str:
    return str(uuid.uuid4())


class RecordMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    def mark_deleted(self, actor_id: Optional[str], when: datetime | None = None) -> None:
        self.is_deleted = True
        self.deleted_at = when or utc_now()
        self.deleted_by = actor_id

    def clear_deleted(self) -> None:
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by = None


class GRCRecordMixin(RecordMixin):
    """Fields every tenant-scoped GRC record carries on top of the audit columns."""

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), index=True)
    owner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)


# Columns the API never accepts from a request body.
SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at", "deleted_at", "deleted_by", "is_deleted", "created_by"})

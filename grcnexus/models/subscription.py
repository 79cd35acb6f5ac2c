"""Subscription ledger: one live subscription per tenant."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import Base
from grcnexus.models.mixins import RecordMixin
from grcnexus.utils.time import ensure_utc


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Subscription(RecordMixin, Base):
    __tablename__ = "subscriptions"

    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), index=True)
    plan_type: Mapped[str] = mapped_column(String(50), default="basic")
    status: Mapped[str] = mapped_column(String(20), default=SubscriptionStatus.PENDING.value)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    billing_cycle: Mapped[str] = mapped_column(String(20), default="monthly")
    price: Mapped[float] = mapped_column(Float, default=0.0)
    currency: Mapped[str] = mapped_column(String(3), default="IDR")
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=False)

    def lapse_reason(self, now: datetime) -> str | None:
        """``expired`` or ``cancelled`` when this subscription no longer admits logins."""
        end_date = ensure_utc(self.end_date)
        if self.status == SubscriptionStatus.EXPIRED.value or (end_date is not None and end_date < now):
            return SubscriptionStatus.EXPIRED.value
        if self.status == SubscriptionStatus.CANCELLED.value:
            return SubscriptionStatus.CANCELLED.value
        return None


# ── Pydantic Schemas ─────────────────────────────────────────

class SubscriptionResponse(BaseModel):
    id: str
    tenant_id: str
    plan_type: str
    status: str
    start_date: datetime
    end_date: datetime | None = None
    billing_cycle: str
    price: float
    currency: str
    auto_renew: bool

    model_config = {"from_attributes": True}


class SubscriptionUpdate(BaseModel):
    plan_type: str | None = None
    status: SubscriptionStatus | None = None
    end_date: datetime | None = None
    billing_cycle: str | None = None
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    auto_renew: bool | None = None

"""Privacy operations tables (tenant schema)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import TenantBase
from grcnexus.models.mixins import GRCRecordMixin


class DataInventoryItem(GRCRecordMixin, TenantBase):
    __tablename__ = "data_inventory"

    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    retention: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    classification: Mapped[str] = mapped_column(String(30), default="internal", index=True)
    consent_required: Mapped[bool] = mapped_column(Boolean, default=False)


class ProcessingActivity(GRCRecordMixin, TenantBase):
    __tablename__ = "processing_activities"

    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    legal_basis: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    data_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    data_categories: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    third_party: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transfer_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    security_measures: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retention_period: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class DataSubjectRequest(GRCRecordMixin, TenantBase):
    __tablename__ = "dsr_requests"

    request_type: Mapped[str] = mapped_column(String(30), default="access", index=True)
    data_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class DPIA(GRCRecordMixin, TenantBase):
    __tablename__ = "dpias"

    processing_activity: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    risk_level: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class PrivacyControl(GRCRecordMixin, TenantBase):
    __tablename__ = "privacy_controls"

    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    effectiveness: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_tested: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class PrivacyIncident(GRCRecordMixin, TenantBase):
    __tablename__ = "privacy_incidents"

    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    severity: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    discovered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reported_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    affected_records: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    data_categories: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    root_cause: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mitigation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

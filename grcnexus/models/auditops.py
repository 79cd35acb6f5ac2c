"""Audit operations tables (tenant schema)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import TenantBase
from grcnexus.models.mixins import GRCRecordMixin


class AuditPlan(GRCRecordMixin, TenantBase):
    __tablename__ = "audit_plans"

    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    scope: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    auditor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    findings: Mapped[int] = mapped_column(Integer, default=0)
    recommendations: Mapped[int] = mapped_column(Integer, default=0)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class GovernanceKRI(GRCRecordMixin, TenantBase):
    __tablename__ = "governance_kris"

    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    threshold: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    current_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    target_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class ControlTest(GRCRecordMixin, TenantBase):
    __tablename__ = "control_tests"

    control: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    frequency: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    effectiveness: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    alerts: Mapped[int] = mapped_column(Integer, default=0)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class AuditEvidence(GRCRecordMixin, TenantBase):
    __tablename__ = "audit_evidence"

    control: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    audit_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class AuditReport(GRCRecordMixin, TenantBase):
    __tablename__ = "audit_reports"

    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    period: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

"""Regulatory operations tables (tenant schema)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import TenantBase
from grcnexus.models.mixins import GRCRecordMixin


class Regulation(GRCRecordMixin, TenantBase):
    __tablename__ = "regulations"

    jurisdiction: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    document_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    effective_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    parsed_content: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class ComplianceAssessment(GRCRecordMixin, TenantBase):
    __tablename__ = "compliance_assessments"

    regulation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    assessor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    assessment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    findings: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ComplianceGap(GRCRecordMixin, TenantBase):
    __tablename__ = "compliance_gaps"

    regulation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    severity: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    remediation_plan: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Obligation(GRCRecordMixin, TenantBase):
    __tablename__ = "obligations"

    regulation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    article: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    control_ids: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    priority: Mapped[str] = mapped_column(String(20), default="medium")


class Policy(GRCRecordMixin, TenantBase):
    __tablename__ = "policies"

    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    effective_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class RegOpsControl(GRCRecordMixin, TenantBase):
    __tablename__ = "regops_controls"

    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    framework: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    effectiveness: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_tested: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

"""Risk operations tables (tenant schema)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import TenantBase
from grcnexus.models.mixins import GRCRecordMixin


class Risk(GRCRecordMixin, TenantBase):
    __tablename__ = "risk_register"

    risk_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    likelihood: Mapped[str] = mapped_column(String(20), default="medium")
    impact: Mapped[str] = mapped_column(String(20), default="medium")
    risk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    risk_level: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    mitigation_strategy: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    residual_risk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    review_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Vulnerability(GRCRecordMixin, TenantBase):
    __tablename__ = "vulnerabilities"

    cve: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    severity: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    cvss_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    affected_system: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    discovered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    fix_available: Mapped[bool] = mapped_column(Boolean, default=False)
    remediation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class VendorAssessment(GRCRecordMixin, TenantBase):
    __tablename__ = "vendor_assessments"

    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    risk_level: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    risk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    contract_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_assessment: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_assessment: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ContinuityPlan(GRCRecordMixin, TenantBase):
    __tablename__ = "business_continuity_plans"

    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    severity: Mapped[str] = mapped_column(String(20), default="medium", index=True)
    rto: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rpo: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    last_tested: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_test: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

"""RegOps, PrivacyOps, RiskOps and AuditOps resource families and dashboards."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.api.access import require_domain_access, require_permission
from grcnexus.api.resources import Action, ResourceFamily, build_resource_router, family_totals
from grcnexus.api.tenancy import bind_tenant_context, get_tenant_session
from grcnexus.models.auditops import AuditEvidence, AuditPlan, AuditReport, ControlTest, GovernanceKRI
from grcnexus.models.privacyops import (
    DPIA,
    DataInventoryItem,
    DataSubjectRequest,
    PrivacyControl,
    PrivacyIncident,
    ProcessingActivity,
)
from grcnexus.models.regops import (
    ComplianceAssessment,
    ComplianceGap,
    Obligation,
    Policy,
    RegOpsControl,
    Regulation,
)
from grcnexus.models.riskops import ContinuityPlan, Risk, VendorAssessment, Vulnerability
from grcnexus.security.permissions import Permission

AREAS = ("regops", "privacyops", "riskops", "auditops")

REVIEW_FLOW = ("draft", "under_review", "approved", "rejected", "archived")
CONTROL_FLOW = ("planned", "implemented", "tested", "retired")


def _approve(stamp: str | None = None, target: str = "approved") -> Action:
    return Action("approve", target, ("draft", "pending", "under_review"), stamp)


def _reject(stamp: str | None = None) -> Action:
    return Action("reject", "rejected", ("draft", "pending", "under_review"), stamp)


_test_control = Action("test", "tested", ("implemented", "tested"), "last_tested")


FAMILIES: list[ResourceFamily] = [
    # ── RegOps ────────────────────────────────────────────────
    ResourceFamily(
        area="regops", path="regulations", model=Regulation, label="Regulation",
        statuses=("draft", "active", "under_review", "superseded", "archived"),
        default_status="active",
        stats_fields=("status", "type"),
    ),
    ResourceFamily(
        area="regops", path="compliance-assessments", model=ComplianceAssessment, label="Compliance assessment",
        statuses=("planned", "in_progress", "completed", "cancelled"),
        default_status="planned",
    ),
    ResourceFamily(
        area="regops", path="compliance-gaps", model=ComplianceGap, label="Compliance gap",
        statuses=("open", "in_progress", "resolved", "accepted"),
        default_status="open",
        stats_fields=("status", "severity"),
        actions=(Action("resolve", "resolved", ("open", "in_progress"), "resolved_at"),),
    ),
    ResourceFamily(
        area="regops", path="obligations", model=Obligation, label="Obligation",
        statuses=("pending", "in_progress", "compliant", "non_compliant"),
        default_status="pending",
        stats_fields=("status", "priority"),
    ),
    ResourceFamily(
        area="regops", path="policies", model=Policy, label="Policy",
        statuses=REVIEW_FLOW,
        default_status="draft",
        actions=(_approve("approved_at"),),
    ),
    ResourceFamily(
        area="regops", path="controls", model=RegOpsControl, label="Control",
        statuses=CONTROL_FLOW,
        default_status="planned",
        stats_fields=("status", "type"),
        actions=(_test_control,),
    ),
    # ── PrivacyOps ────────────────────────────────────────────
    ResourceFamily(
        area="privacyops", path="data-inventory", model=DataInventoryItem, label="Data inventory item",
        statuses=("active", "archived"),
        default_status="active",
        stats_fields=("status", "classification"),
    ),
    ResourceFamily(
        area="privacyops", path="ropa", model=ProcessingActivity, label="Processing activity",
        statuses=REVIEW_FLOW,
        default_status="draft",
        actions=(_approve("approved_at"),),
    ),
    ResourceFamily(
        area="privacyops", path="dsr", model=DataSubjectRequest, label="Data subject request",
        statuses=("pending", "in_progress", "approved", "rejected", "completed"),
        default_status="pending",
        stats_fields=("status", "request_type", "priority"),
        actions=(
            Action("approve", "approved", ("pending", "in_progress")),
            Action("reject", "rejected", ("pending", "in_progress"), "completed_at"),
            Action("close", "completed", ("approved", "rejected"), "completed_at"),
        ),
    ),
    ResourceFamily(
        area="privacyops", path="dpias", model=DPIA, label="DPIA",
        statuses=REVIEW_FLOW,
        default_status="draft",
        stats_fields=("status", "risk_level"),
        actions=(_approve("approved_at"), _reject()),
    ),
    ResourceFamily(
        area="privacyops", path="privacy-controls", model=PrivacyControl, label="Privacy control",
        statuses=CONTROL_FLOW,
        default_status="planned",
        actions=(_test_control,),
    ),
    ResourceFamily(
        area="privacyops", path="incidents", model=PrivacyIncident, label="Incident",
        statuses=("open", "investigating", "resolved", "closed"),
        default_status="open",
        stats_fields=("status", "severity"),
        actions=(
            Action("resolve", "resolved", ("open", "investigating"), "resolved_at"),
            Action("close", "closed", ("resolved",)),
        ),
    ),
    # ── RiskOps ───────────────────────────────────────────────
    ResourceFamily(
        area="riskops", path="risk-register", model=Risk, label="Risk",
        statuses=("identified", "assessed", "mitigating", "accepted", "closed"),
        default_status="identified",
        stats_fields=("status", "risk_level"),
        actions=(Action("close", "closed", ("identified", "assessed", "mitigating", "accepted"), "closed_at"),),
    ),
    ResourceFamily(
        area="riskops", path="vulnerabilities", model=Vulnerability, label="Vulnerability",
        statuses=("open", "in_progress", "resolved", "accepted"),
        default_status="open",
        stats_fields=("status", "severity"),
        actions=(Action("resolve", "resolved", ("open", "in_progress"), "resolved_at"),),
    ),
    ResourceFamily(
        area="riskops", path="vendors", model=VendorAssessment, label="Vendor",
        statuses=("pending", "under_review", "approved", "rejected"),
        default_status="pending",
        stats_fields=("status", "risk_level"),
        actions=(_approve("last_assessment"), _reject("last_assessment")),
    ),
    ResourceFamily(
        area="riskops", path="continuity", model=ContinuityPlan, label="Continuity plan",
        statuses=("draft", "active", "tested", "retired"),
        default_status="draft",
        actions=(Action("test", "tested", ("active", "tested"), "last_tested"),),
    ),
    # ── AuditOps ──────────────────────────────────────────────
    ResourceFamily(
        area="auditops", path="internal-audits", model=AuditPlan, label="Audit",
        statuses=("planned", "in_progress", "completed", "closed"),
        default_status="planned",
        stats_fields=("status", "priority"),
        actions=(Action("close", "closed", ("in_progress", "completed"), "closed_at"),),
    ),
    ResourceFamily(
        area="auditops", path="kris", model=GovernanceKRI, label="KRI",
        statuses=("active", "breached", "inactive"),
        default_status="active",
    ),
    ResourceFamily(
        area="auditops", path="control-tests", model=ControlTest, label="Control test",
        statuses=("scheduled", "running", "completed", "failed"),
        default_status="scheduled",
        actions=(Action("run", "completed", ("scheduled", "completed", "failed"), "last_run_at"),),
    ),
    ResourceFamily(
        area="auditops", path="evidence", model=AuditEvidence, label="Evidence",
        statuses=("pending", "approved", "rejected"),
        default_status="pending",
        actions=(_approve("reviewed_at"), _reject("reviewed_at")),
    ),
    ResourceFamily(
        area="auditops", path="reports", model=AuditReport, label="Report",
        statuses=("draft", "generated", "published"),
        default_status="draft",
        actions=(Action("generate", "generated", ("draft", "generated"), "generated_at"),),
    ),
]


def families_for(area: str) -> list[ResourceFamily]:
    return [family for family in FAMILIES if family.area == area]


def build_dashboard_router(area: str) -> APIRouter:
    router = APIRouter(prefix=f"/api/{area}", tags=[area])
    families = families_for(area)

    @router.get(
        "/dashboard",
        dependencies=[
            Depends(bind_tenant_context),
            Depends(require_domain_access(area)),
            Depends(require_permission(Permission.DASHBOARD_VIEW)),
        ],
    )
    async def dashboard(session: AsyncSession = Depends(get_tenant_session)):
        """Live record counts for every family in the area."""
        totals = await family_totals(session, families)
        return {"area": area, "totals": totals, "total": sum(totals.values())}

    return router


def domain_routers() -> list[APIRouter]:
    routers = [build_dashboard_router(area) for area in AREAS]
    routers.extend(build_resource_router(family) for family in FAMILIES)
    return routers

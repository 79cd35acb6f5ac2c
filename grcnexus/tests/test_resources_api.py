"""Tenant-scoped GRC resource endpoints: isolation, gating, soft delete and lifecycle verbs."""

from __future__ import annotations

import pytest

from grcnexus.security.permissions import Role
from grcnexus.tests.helpers import auth, create_member, create_tenant


@pytest.mark.asyncio
async def test_records_are_invisible_to_other_tenants(client, root_token):
    tenant_a = await create_tenant(client, root_token)
    tenant_b = await create_tenant(client, root_token)

    created = await client.post(
        "/api/regops/regulations", headers=auth(tenant_a.token), json={"name": "GDPR", "type": "privacy"}
    )
    assert created.status_code == 201, created.text
    reg_id = created.json()["id"]
    assert created.json()["status"] == "active"

    listed_b = await client.get("/api/regops/regulations", headers=auth(tenant_b.token))
    assert listed_b.status_code == 200
    assert reg_id not in {r["id"] for r in listed_b.json()}

    update_b = await client.put(
        f"/api/regops/regulations/{reg_id}", headers=auth(tenant_b.token), json={"name": "Stolen"}
    )
    assert update_b.status_code == 404
    assert update_b.json() == {"error": "Regulation not found"}

    get_b = await client.get(f"/api/regops/regulations/{reg_id}", headers=auth(tenant_b.token))
    assert get_b.status_code == 404

    stats_b = await client.get("/api/regops/regulations/stats", headers=auth(tenant_b.token))
    assert stats_b.json()["total"] == 0

    listed_a = await client.get("/api/regops/regulations", headers=auth(tenant_a.token))
    assert [r["id"] for r in listed_a.json()] == [reg_id]


@pytest.mark.asyncio
async def test_tenant_header_cannot_be_spoofed_by_tenant_users(client, root_token):
    tenant_a = await create_tenant(client, root_token)
    tenant_b = await create_tenant(client, root_token)

    resp = await client.get("/api/regops/regulations", headers=auth(tenant_a.token, tenant_b.id))

    assert resp.status_code == 403
    assert resp.json() == {"error": "Cross-tenant access denied", "required": "tenant_match", "role": "tenant_admin"}


@pytest.mark.asyncio
async def test_tenant_header_matches_own_tenant_in_any_uuid_spelling(client, root_token):
    tenant = await create_tenant(client, root_token)
    created = await client.post("/api/regops/regulations", headers=auth(tenant.token), json={"name": "SOX"})
    assert created.status_code == 201

    for spelling in (tenant.id.upper(), tenant.id.replace("-", "")):
        resp = await client.get("/api/regops/regulations", headers=auth(tenant.token, spelling))
        assert resp.status_code == 200, spelling
        assert [r["name"] for r in resp.json()] == ["SOX"]

    malformed = await client.get("/api/regops/regulations", headers=auth(tenant.token, "tenant-a"))
    assert malformed.status_code == 400
    assert malformed.json() == {"error": "Invalid tenant id"}


@pytest.mark.asyncio
async def test_super_admin_binds_a_tenant_with_the_header(client, root_token):
    tenant = await create_tenant(client, root_token)
    await client.post("/api/riskops/risk-register", headers=auth(tenant.token), json={"name": "Vendor outage"})

    no_tenant = await client.get("/api/riskops/risk-register", headers=auth(root_token))
    assert no_tenant.status_code == 400
    assert no_tenant.json() == {"error": "Tenant context required"}

    bound = await client.get("/api/riskops/risk-register", headers=auth(root_token, tenant.id))
    assert bound.status_code == 200
    assert [r["name"] for r in bound.json()] == ["Vendor outage"]

    unknown = await client.get(
        "/api/riskops/risk-register", headers=auth(root_token, "00000000-0000-0000-0000-000000000000")
    )
    assert unknown.status_code == 404

    malformed = await client.get("/api/riskops/risk-register", headers=auth(root_token, "tenant-a"))
    assert malformed.status_code == 400


@pytest.mark.asyncio
async def test_create_requires_the_area_create_permission(client, root_token):
    tenant = await create_tenant(client, root_token)
    _, regular = await create_member(client, root_token, tenant.id, Role.REGULAR_USER)
    _, officer = await create_member(client, root_token, tenant.id, Role.COMPLIANCE_OFFICER)

    denied = await client.post("/api/regops/regulations", headers=auth(regular), json={"name": "SOX"})
    assert denied.status_code == 403
    assert denied.json()["required"] == "regops.create"
    assert denied.json()["role"] == "regular_user"

    allowed = await client.post("/api/regops/regulations", headers=auth(officer), json={"name": "SOX"})
    assert allowed.status_code == 201

    # Reading is still allowed for the regular user.
    listed = await client.get("/api/regops/regulations", headers=auth(regular))
    assert listed.status_code == 200
    assert len(listed.json()) == 1


@pytest.mark.asyncio
async def test_permission_denials_are_counted(app, client, root_token):
    tenant = await create_tenant(client, root_token)
    _, analyst = await create_member(client, root_token, tenant.id, Role.RISK_ANALYST)

    resp = await client.post("/api/riskops/risk-register", headers=auth(analyst), json={"name": "Fraud"})

    assert resp.status_code == 403
    assert app.state.metrics.snapshot()["permission_denials"]["riskops.create"] == 1


@pytest.mark.asyncio
async def test_soft_delete_restore_and_permanent_delete(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    base = "/api/riskops/risk-register"

    risk_id = (await client.post(base, headers=headers, json={"name": "Ransomware"})).json()["id"]

    deleted = await client.delete(f"{base}/{risk_id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Risk deleted", "id": risk_id}

    assert risk_id not in {r["id"] for r in (await client.get(base, headers=headers)).json()}
    trash = (await client.get(f"{base}/deleted", headers=headers)).json()
    assert [r["id"] for r in trash] == [risk_id]
    assert trash[0]["deleted_by"] is not None
    assert (await client.get(f"{base}/{risk_id}", headers=headers)).status_code == 404

    restored = await client.post(f"{base}/{risk_id}/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.json()["is_deleted"] is False
    assert risk_id in {r["id"] for r in (await client.get(base, headers=headers)).json()}

    purged = await client.delete(f"{base}/{risk_id}/permanent", headers=headers)
    assert purged.status_code == 200
    assert (await client.get(base, headers=headers)).json() == []
    assert (await client.get(f"{base}/deleted", headers=headers)).json() == []
    assert (await client.delete(f"{base}/{risk_id}/permanent", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_invalid_bodies_are_rejected_with_400(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)

    missing = await client.post("/api/regops/policies", headers=headers, json={"description": "no name"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "name: Field required"}

    unknown = await client.post("/api/regops/policies", headers=headers, json={"name": "P", "tenant_id": "x"})
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "tenant_id: Extra inputs are not permitted"

    bad_status = await client.post("/api/regops/policies", headers=headers, json={"name": "P", "status": "bogus"})
    assert bad_status.status_code == 400
    assert bad_status.json()["error"].startswith("status:")

    not_object = await client.post("/api/regops/policies", headers=headers, json=["name"])
    assert not_object.status_code == 400

    system_field = await client.post("/api/regops/policies", headers=headers, json={"name": "P", "id": "mine"})
    assert system_field.status_code == 400

    wrong_type = await client.post(
        "/api/regops/regulations", headers=headers, json={"name": "GDPR", "effective_date": "not-a-date"}
    )
    assert wrong_type.status_code == 400
    assert wrong_type.json()["error"].startswith("effective_date:")

    too_long = await client.post("/api/regops/policies", headers=headers, json={"name": "P" * 256})
    assert too_long.status_code == 400
    assert too_long.json()["error"].startswith("name:")


@pytest.mark.asyncio
async def test_update_changes_fields_and_keeps_required_ones(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    gap_id = (await client.post(
        "/api/regops/compliance-gaps", headers=headers, json={"name": "MFA missing", "severity": "high"}
    )).json()["id"]

    updated = await client.put(
        f"/api/regops/compliance-gaps/{gap_id}", headers=headers, json={"severity": "critical", "status": "in_progress"}
    )
    assert updated.status_code == 200
    assert updated.json()["severity"] == "critical"
    assert updated.json()["name"] == "MFA missing"

    blank = await client.put(f"/api/regops/compliance-gaps/{gap_id}", headers=headers, json={"name": " "})
    assert blank.status_code == 400

    nulled = await client.put(f"/api/regops/compliance-gaps/{gap_id}", headers=headers, json={"severity": None})
    assert nulled.status_code == 400
    assert nulled.json()["error"].startswith("severity:")

    cleared = await client.put(f"/api/regops/compliance-gaps/{gap_id}", headers=headers, json={"description": None})
    assert cleared.status_code == 200
    assert cleared.json()["description"] is None


@pytest.mark.asyncio
async def test_lifecycle_verbs_enforce_source_states(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    base = "/api/privacyops/dsr"
    dsr_id = (await client.post(
        base, headers=headers, json={"name": "Access request", "request_type": "access"}
    )).json()["id"]

    closed_early = await client.post(f"{base}/{dsr_id}/close", headers=headers)
    assert closed_early.status_code == 409
    assert closed_early.json() == {"error": "Cannot close data subject request in 'pending' state"}

    approved = await client.post(f"{base}/{dsr_id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    closed = await client.post(f"{base}/{dsr_id}/close", headers=headers)
    assert closed.status_code == 200
    assert closed.json()["status"] == "completed"
    assert closed.json()["completed_at"] is not None

    unknown = await client.post(f"{base}/{dsr_id}/teleport", headers=headers)
    assert unknown.status_code == 400


@pytest.mark.asyncio
async def test_action_stamps_timestamp_on_risk_close(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    risk = (await client.post("/api/riskops/risk-register", headers=headers, json={"name": "Phishing"})).json()
    assert risk["status"] == "identified"

    closed = await client.post(f"/api/riskops/risk-register/{risk['id']}/close", headers=headers)

    assert closed.status_code == 200
    assert closed.json()["status"] == "closed"
    assert closed.json()["closed_at"] is not None
    again = await client.post(f"/api/riskops/risk-register/{risk['id']}/close", headers=headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_stats_group_by_declared_fields(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    for name, severity in (("CVE-1", "high"), ("CVE-2", "high"), ("CVE-3", "low")):
        await client.post("/api/riskops/vulnerabilities", headers=headers, json={"name": name, "severity": severity})

    stats = (await client.get("/api/riskops/vulnerabilities/stats", headers=headers)).json()

    assert stats["total"] == 3
    assert stats["by_status"] == {"open": 3}
    assert stats["by_severity"] == {"high": 2, "low": 1}


@pytest.mark.asyncio
async def test_list_filters_by_status(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    await client.post("/api/auditops/evidence", headers=headers, json={"name": "Log export"})
    second = (await client.post("/api/auditops/evidence", headers=headers, json={"name": "Screenshot"})).json()
    await client.post(f"/api/auditops/evidence/{second['id']}/approve", headers=headers)

    approved = (await client.get("/api/auditops/evidence?status=approved", headers=headers)).json()

    assert [e["name"] for e in approved] == ["Screenshot"]


@pytest.mark.asyncio
async def test_dashboard_requires_domain_access_and_counts_live_records(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(tenant.token)
    await client.post("/api/privacyops/incidents", headers=headers, json={"name": "Leaked CSV"})
    await client.post("/api/privacyops/dpias", headers=headers, json={"name": "CRM rollout"})

    dashboard = await client.get("/api/privacyops/dashboard", headers=headers)
    assert dashboard.status_code == 200
    body = dashboard.json()
    assert body["area"] == "privacyops"
    assert body["totals"]["incidents"] == 1
    assert body["total"] == 2

    _, risk_manager = await create_member(client, root_token, tenant.id, Role.RISK_MANAGER)
    denied = await client.get("/api/privacyops/dashboard", headers=auth(risk_manager))
    assert denied.status_code == 403
    assert denied.json()["error"] == "Insufficient permissions for this domain"
    assert denied.json()["required"] == "privacyops"

"""Super-admin platform API: tenant lifecycle, users, billing and audit log."""

from __future__ import annotations

import pytest

from grcnexus.security.permissions import Role
from grcnexus.tests.helpers import auth, create_member, create_tenant, login


@pytest.mark.asyncio
async def test_platform_routes_are_closed_to_tenant_users(client, root_token):
    tenant = await create_tenant(client, root_token)

    for method, path in (
        ("GET", "/api/platform/tenants"),
        ("GET", f"/api/platform/tenants/{tenant.id}"),
        ("POST", f"/api/platform/tenants/{tenant.id}/suspend"),
        ("GET", "/api/platform/subscriptions"),
        ("GET", "/api/platform/logs"),
    ):
        resp = await client.request(method, path, headers=auth(tenant.token))
        assert resp.status_code == 403, path
        assert resp.json() == {"error": "Super admin access required", "required": "super_admin", "role": "tenant_admin"}


@pytest.mark.asyncio
async def test_create_tenant_issues_temporary_password_when_none_given(client, root_token):
    resp = await client.post(
        "/api/platform/tenants",
        headers=auth(root_token),
        json={"name": "Acme Corp", "admin_email": "Owner@Acme.io"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["tenant"]["domain"] == "acme-corp"
    assert body["tenant"]["status"] == "active"
    assert body["subscription"]["status"] == "active"
    assert body["admin"]["email"] == "owner@acme.io"
    assert body["admin"]["role"] == "tenant_admin"

    assert await login(client, "owner@acme.io", body["temporary_password"])

    duplicate = await client.post(
        "/api/platform/tenants",
        headers=auth(root_token),
        json={"name": "Acme Corp", "admin_email": "someone@acme.io"},
    )
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_lifecycle_transitions_reject_invalid_source_states(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(root_token)

    activate_active = await client.post(f"/api/platform/tenants/{tenant.id}/activate", headers=headers)
    assert activate_active.status_code == 409
    assert activate_active.json() == {"error": "Cannot activate tenant in 'active' state"}

    reactivate_active = await client.post(f"/api/platform/tenants/{tenant.id}/reactivate", headers=headers)
    assert reactivate_active.status_code == 409

    assert (await client.post(f"/api/platform/tenants/{tenant.id}/suspend", headers=headers)).status_code == 200
    suspend_twice = await client.post(f"/api/platform/tenants/{tenant.id}/suspend", headers=headers)
    assert suspend_twice.status_code == 409

    missing = await client.post("/api/platform/tenants/00000000-0000-0000-0000-000000000000/suspend", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_activate_applies_plan_terms(client, root_token):
    registered = await client.post(
        "/api/auth/register",
        json={"email": "cfo@beta.io", "password": "password123", "companyName": "Beta"},
    )
    tenant_id = registered.json()["tenant"]["id"]

    resp = await client.post(
        f"/api/platform/tenants/{tenant_id}/activate",
        headers=auth(root_token),
        json={"plan_type": "enterprise", "duration_months": 6, "price": 9000, "billing_cycle": "yearly"},
    )

    assert resp.status_code == 200, resp.text
    subscription = resp.json()["subscription"]
    assert subscription["plan_type"] == "enterprise"
    assert subscription["price"] == 9000
    assert subscription["billing_cycle"] == "yearly"
    assert subscription["end_date"] > subscription["start_date"]


@pytest.mark.asyncio
async def test_tenant_detail_includes_subscription_and_user_count(client, root_token):
    tenant = await create_tenant(client, root_token)
    await create_member(client, root_token, tenant.id, Role.AUDITOR)

    detail = (await client.get(f"/api/platform/tenants/{tenant.id}", headers=auth(root_token))).json()

    assert detail["user_count"] == 2
    assert detail["subscription"]["tenant_id"] == tenant.id


@pytest.mark.asyncio
async def test_soft_deleted_tenant_restores_with_its_users(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(root_token)
    domain = (await client.get(f"/api/platform/tenants/{tenant.id}", headers=headers)).json()["domain"]

    assert (await client.delete(f"/api/platform/tenants/{tenant.id}", headers=headers)).status_code == 200

    deleted = (await client.get("/api/platform/tenants/deleted", headers=headers)).json()
    assert [t["id"] for t in deleted] == [tenant.id]
    assert deleted[0]["domain"].startswith(f"{domain}_deleted_")
    assert tenant.id not in {t["id"] for t in (await client.get("/api/platform/tenants", headers=headers)).json()}

    restored = await client.post(f"/api/platform/tenants/{tenant.id}/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.json()["domain"] == domain
    assert restored.json()["status"] == "active"

    assert await login(client, tenant.admin_email, tenant.admin_password)


@pytest.mark.asyncio
async def test_restore_conflicts_when_domain_was_reused(client, root_token):
    headers = auth(root_token)
    first = await client.post(
        "/api/platform/tenants", headers=headers, json={"name": "Gamma", "admin_email": "a@gamma.io"}
    )
    first_id = first.json()["tenant"]["id"]
    await client.delete(f"/api/platform/tenants/{first_id}", headers=headers)

    # The tombstone freed the domain for a new tenant.
    second = await client.post(
        "/api/platform/tenants", headers=headers, json={"name": "Gamma", "admin_email": "b@gamma.io"}
    )
    assert second.status_code == 201

    resp = await client.post(f"/api/platform/tenants/{first_id}/restore", headers=headers)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_permanent_delete_removes_tenant_and_schema(app, client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(root_token)
    assert await app.state.provisioner.exists(tenant.id)

    resp = await client.delete(f"/api/platform/tenants/{tenant.id}/permanent", headers=headers)

    assert resp.status_code == 200
    assert not await app.state.provisioner.exists(tenant.id)
    assert (await client.get(f"/api/platform/tenants/{tenant.id}", headers=headers)).status_code == 404
    assert (await client.get("/api/platform/tenants/deleted", headers=headers)).json() == []


@pytest.mark.asyncio
async def test_tokens_of_a_purged_tenant_do_not_recreate_its_schema(app, client, root_token):
    tenant = await create_tenant(client, root_token)
    schema_file = app.state.db.schema_file(app.state.provisioner.schema_of(tenant.id))
    assert schema_file.exists()

    purged = await client.delete(f"/api/platform/tenants/{tenant.id}/permanent", headers=auth(root_token))
    assert purged.status_code == 200

    for path in ("/api/regops/regulations", "/api/regops/dashboard", "/api/ai/settings"):
        resp = await client.get(path, headers=auth(tenant.token))
        assert resp.status_code == 404, path
        assert resp.json() == {"error": "Tenant not found"}

    assert not schema_file.exists()
    assert not await app.state.provisioner.exists(tenant.id)


@pytest.mark.asyncio
async def test_tokens_of_a_soft_deleted_tenant_are_refused(client, root_token):
    tenant = await create_tenant(client, root_token)
    assert (await client.get("/api/regops/regulations", headers=auth(tenant.token))).status_code == 200

    deleted = await client.delete(f"/api/platform/tenants/{tenant.id}", headers=auth(root_token))
    assert deleted.status_code == 200

    resp = await client.get("/api/regops/regulations", headers=auth(tenant.token))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_user_management(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(root_token)

    created = await client.post(
        f"/api/platform/tenants/{tenant.id}/users",
        headers=headers,
        json={"email": "analyst@example.com"},
    )
    assert created.status_code == 201
    user = created.json()
    assert user["role"] == "regular_user"
    assert user["temporary_password"]

    reset = await client.post(
        f"/api/platform/users/{user['id']}/reset-password", headers=headers, json={"password": "brand-new-pass"}
    )
    assert reset.status_code == 200
    assert await login(client, "analyst@example.com", "brand-new-pass")

    short = await client.post(
        f"/api/platform/users/{user['id']}/reset-password", headers=headers, json={"password": "short"}
    )
    assert short.status_code == 400

    updated = await client.put(
        f"/api/platform/users/{user['id']}", headers=headers, json={"role": "risk_manager", "first_name": "Ann"}
    )
    assert updated.json()["role"] == "risk_manager"
    assert updated.json()["first_name"] == "Ann"

    assert (await client.delete(f"/api/platform/users/{user['id']}", headers=headers)).status_code == 200
    deleted = (await client.get(f"/api/platform/users/deleted?tenant_id={tenant.id}", headers=headers)).json()
    assert [u["id"] for u in deleted] == [user["id"]]
    assert deleted[0]["email"].startswith("analyst@example.com_deleted_")

    restored = await client.post(f"/api/platform/users/{user['id']}/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.json()["email"] == "analyst@example.com"


@pytest.mark.asyncio
async def test_restore_user_conflicts_on_reused_email(client, root_token):
    tenant = await create_tenant(client, root_token)
    headers = auth(root_token)
    user = (await client.post(
        f"/api/platform/tenants/{tenant.id}/users", headers=headers, json={"email": "dup@example.com"}
    )).json()
    await client.delete(f"/api/platform/users/{user['id']}", headers=headers)
    await client.post(f"/api/platform/tenants/{tenant.id}/users", headers=headers, json={"email": "dup@example.com"})

    resp = await client.post(f"/api/platform/users/{user['id']}/restore", headers=headers)

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_super_admin_cannot_delete_themselves(client, root_token):
    me = (await client.get("/api/auth/me", headers=auth(root_token))).json()

    resp = await client.delete(f"/api/platform/users/{me['user_id']}", headers=auth(root_token))

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_subscriptions_and_audit_log(client, root_token):
    tenant = await create_tenant(client, root_token, name="Delta Org")
    headers = auth(root_token)
    await client.post(f"/api/platform/tenants/{tenant.id}/suspend", headers=headers)

    subscriptions = (await client.get("/api/platform/subscriptions", headers=headers)).json()
    assert subscriptions[0]["tenant_name"] == "Delta Org"

    logs = (await client.get(f"/api/platform/logs?tenant_id={tenant.id}", headers=headers)).json()
    actions = [entry["action"] for entry in logs]
    assert "tenant.create" in actions
    assert "tenant.suspend" in actions
    assert logs[0]["ip_address"]

    only_suspend = (await client.get("/api/platform/logs?action=tenant.suspend", headers=headers)).json()
    assert [entry["action"] for entry in only_suspend] == ["tenant.suspend"]


@pytest.mark.asyncio
async def test_metrics_are_super_admin_only(client, root_token):
    tenant = await create_tenant(client, root_token)
    await client.get("/api/regops/regulations", headers=auth(tenant.token))

    denied = await client.get("/api/metrics", headers=auth(tenant.token))
    assert denied.status_code == 403

    snapshot = (await client.get("/api/metrics", headers=auth(root_token))).json()["metrics"]
    assert snapshot["requests_total"] >= 1
    assert snapshot["tenant_counts"][tenant.id] >= 1


@pytest.mark.asyncio
async def test_health_endpoints_and_security_headers(client):
    health = await client.get("/api/health")
    assert health.status_code == 200
    assert health.json()["database_ready"] is True
    assert health.headers["X-Content-Type-Options"] == "nosniff"
    assert health.headers["X-Request-ID"]

    live = await client.get("/api/health/live")
    assert live.json() == {"status": "alive", "service": "grcnexus"}

    missing = await client.get("/api/nope")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not Found"}

#!/usr/bin/env python3
"""Real-world E2E smoke for the GRC Nexus API.

Runs the tenant onboarding and isolation flow against a running backend and
fails fast on regressions. Needs an existing super-admin:

    GRC_ADMIN_EMAIL=root@example.com GRC_ADMIN_PASSWORD=... python scripts/e2e_realworld_smoke.py
"""

from __future__ import annotations

import json
import os
import sys
import uuid
from dataclasses import dataclass, field

import httpx

BASE_URL = os.environ.get("GRC_BASE_URL", "http://127.0.0.1:8000")
TIMEOUT = 30.0


@dataclass
class SmokeState:
    tenant_ids: list[str] = field(default_factory=list)


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def call(client: httpx.Client, method: str, path: str, expected: int = 200, token: str | None = None, **kwargs):
    headers = kwargs.pop("headers", {})
    if token:
        headers["Authorization"] = f"Bearer {token}"
    resp = client.request(method, f"{BASE_URL}{path}", headers=headers, **kwargs)
    expect(resp.status_code == expected, f"{method} {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}")
    return resp


def login(client: httpx.Client, email: str, password: str) -> str:
    body = call(client, "POST", "/api/auth/login", json={"email": email, "password": password}).json()
    expect(bool(body.get("token")), "login did not return a token")
    return body["token"]


def onboard(client: httpx.Client, root: str, label: str) -> tuple[str, str, str]:
    """Create an active tenant through the platform API and log in as its admin."""
    suffix = uuid.uuid4().hex[:8]
    email = f"admin-{label}-{suffix}@smoke.test"
    created = call(
        client, "POST", "/api/platform/tenants", expected=201, token=root,
        json={"name": f"Smoke {label} {suffix}", "admin_email": email, "admin_password": "smoke-pass-123"},
    ).json()
    tenant_id = created["tenant"]["id"]
    return tenant_id, email, login(client, email, "smoke-pass-123")


def main() -> int:
    state = SmokeState()
    admin_email = os.environ["GRC_ADMIN_EMAIL"]
    admin_password = os.environ["GRC_ADMIN_PASSWORD"]

    with httpx.Client(timeout=TIMEOUT) as client:
        # 1) Health
        health = call(client, "GET", "/api/health").json()
        expect(health.get("status") == "healthy", "health status is not healthy")

        root = login(client, admin_email, admin_password)
        try:
            # 2) Two tenants
            tenant_a, _, token_a = onboard(client, root, "a")
            state.tenant_ids.append(tenant_a)
            tenant_b, email_b, token_b = onboard(client, root, "b")
            state.tenant_ids.append(tenant_b)

            # 3) Write in A, confirm B cannot see it
            reg = call(
                client, "POST", "/api/regops/regulations", expected=201, token=token_a,
                json={"name": "GDPR", "type": "privacy"},
            ).json()
            listed_b = call(client, "GET", "/api/regops/regulations", token=token_b).json()
            expect(all(r["id"] != reg["id"] for r in listed_b), "tenant B sees tenant A's regulation")
            call(client, "GET", f"/api/regops/regulations/{reg['id']}", expected=404, token=token_b)

            # 4) Header spoofing is rejected
            call(
                client, "GET", "/api/regops/regulations", expected=403, token=token_a,
                headers={"X-Tenant-ID": tenant_b},
            )

            # 5) Soft delete and restore
            call(client, "DELETE", f"/api/regops/regulations/{reg['id']}", token=token_a)
            deleted = call(client, "GET", "/api/regops/regulations/deleted", token=token_a).json()
            expect(any(r["id"] == reg["id"] for r in deleted), "deleted regulation missing from trash")
            call(client, "POST", f"/api/regops/regulations/{reg['id']}/restore", token=token_a)

            # 6) Dashboard
            dashboard = call(client, "GET", "/api/regops/dashboard", token=token_a).json()
            expect(dashboard["totals"].get("regulations") == 1, "dashboard count mismatch")

            # 7) Suspension locks the tenant out
            call(client, "POST", f"/api/platform/tenants/{tenant_b}/suspend", token=root)
            call(
                client, "POST", "/api/auth/login", expected=401,
                json={"email": email_b, "password": "smoke-pass-123"},
            )
        finally:
            for tenant_id in state.tenant_ids:
                call(client, "DELETE", f"/api/platform/tenants/{tenant_id}", token=root)
                call(client, "DELETE", f"/api/platform/tenants/{tenant_id}/permanent", token=root)

    print(json.dumps({"ok": True, "message": "GRC Nexus real-world smoke passed"}))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # noqa: BLE001
        print(json.dumps({"ok": False, "error": str(exc)}))
        sys.exit(1)

"""Onboarding helpers shared by the API tests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from httpx import AsyncClient

from grcnexus.models.user import User, UserStatus
from grcnexus.security.credentials import PasswordHash
from grcnexus.security.permissions import Role

ROOT_EMAIL = "root@grcnexus.test"
ROOT_PASSWORD = "root-password-1"
TEST_BCRYPT_ROUNDS = 4


@dataclass
class TenantHandle:
    id: str
    admin_email: str
    admin_password: str
    token: str


def auth(token: str, tenant_id: str | None = None) -> dict:
    headers = {"Authorization": f"Bearer {token}"}
    if tenant_id:
        headers["X-Tenant-ID"] = tenant_id
    return headers


async def add_super_admin(app, email: str = ROOT_EMAIL, password: str = ROOT_PASSWORD) -> User:
    async with app.state.db.session() as session:
        user = User(
            tenant_id=None,
            email=email,
            password=PasswordHash.write(password, rounds=TEST_BCRYPT_ROUNDS),
            first_name="Root",
            last_name="Admin",
            role=Role.SUPER_ADMIN.value,
            status=UserStatus.ACTIVE.value,
            is_super_admin=True,
        )
        session.add(user)
        await session.commit()
        return user


async def login(client: AsyncClient, email: str, password: str) -> str:
    resp = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


async def create_tenant(client: AsyncClient, root_token: str, name: str | None = None) -> TenantHandle:
    """Onboard an active tenant through the platform API and log in as its admin."""
    suffix = uuid.uuid4().hex[:8]
    name = name or f"Org {suffix}"
    email = f"admin-{suffix}@example.com"
    password = "tenant-admin-pass"
    resp = await client.post(
        "/api/platform/tenants",
        headers=auth(root_token),
        json={"name": name, "domain": f"org-{suffix}", "admin_email": email, "admin_password": password},
    )
    assert resp.status_code == 201, resp.text
    tenant_id = resp.json()["tenant"]["id"]
    return TenantHandle(tenant_id, email, password, await login(client, email, password))


async def create_member(
    client: AsyncClient,
    root_token: str,
    tenant_id: str,
    role: Role | str,
    password: str = "member-password",
) -> tuple[str, str]:
    """Add a user with ``role`` to a tenant; returns ``(user_id, token)``."""
    role_name = getattr(role, "value", role)
    email = f"{role_name}-{uuid.uuid4().hex[:8]}@example.com"
    resp = await client.post(
        f"/api/platform/tenants/{tenant_id}/users",
        headers=auth(root_token),
        json={"email": email, "password": password, "role": role_name},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"], await login(client, email, password)

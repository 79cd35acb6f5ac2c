"""Concurrent requests from many tenants never observe each other's records."""

from __future__ import annotations

import asyncio

import pytest

from grcnexus.tests.helpers import auth, create_tenant

WORKERS = 20
STEPS = 100


@pytest.mark.asyncio
async def test_concurrent_workers_stay_inside_their_tenant(client, root_token):
    handles = [await create_tenant(client, root_token, name=f"Parallel {i}") for i in range(WORKERS)]

    async def worker(tenant) -> int:
        headers = auth(tenant.token)
        for step in range(STEPS):
            listed = await client.get("/api/riskops/risk-register", headers=headers, params={"limit": 500})
            assert listed.status_code == 200, listed.text
            names = [r["name"] for r in listed.json()]
            # Exactly what this worker wrote so far, nothing from the other nineteen.
            assert len(names) == step
            assert all(name.startswith(f"{tenant.id}:") for name in names)

            created = await client.post(
                "/api/riskops/risk-register",
                headers=headers,
                json={"name": f"{tenant.id}:{step}", "risk_category": "concurrency"},
            )
            assert created.status_code == 201, created.text
        return STEPS

    written = await asyncio.gather(*(worker(tenant) for tenant in handles))
    assert written == [STEPS] * WORKERS

    for tenant in handles:
        listed = await client.get("/api/riskops/risk-register", headers=auth(tenant.token), params={"limit": 500})
        names = {r["name"] for r in listed.json()}
        assert names == {f"{tenant.id}:{step}" for step in range(STEPS)}

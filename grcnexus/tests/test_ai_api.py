"""AI settings, key masking and chat through a mocked provider transport."""

from __future__ import annotations

import json

import httpx
import pytest
from sqlalchemy import select

from grcnexus.models.ai import AISettings, AIUsageLog
from grcnexus.security.permissions import Role
from grcnexus.services.ai_provider import AIProvider
from grcnexus.tests.helpers import auth, create_member, create_tenant

GEMINI_KEY = "AIzaSyTESTKEY1234567890"
OPENROUTER_KEY = "sk-or-v1-abcdefghijklmnop"


class FakeProvider:
    """Records provider calls and answers with a canned reply or status."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.status_code = 200
        self.reply = "Hello from the model"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="upstream exploded")
        if request.url.path.endswith(":generateContent"):
            return httpx.Response(
                200,
                json={
                    "candidates": [{"content": {"parts": [{"text": self.reply}]}}],
                    "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 5, "totalTokenCount": 17},
                },
            )
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": self.reply}}],
                "usage": {"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7},
            },
        )


@pytest.fixture
def provider(app) -> FakeProvider:
    fake = FakeProvider()
    app.state.ai = AIProvider(
        gemini_base_url="https://gemini.test/v1beta",
        openrouter_base_url="https://openrouter.test/api/v1",
        transport=httpx.MockTransport(fake.handler),
    )
    return fake


async def _stored_settings(app, tenant_id: str) -> AISettings:
    async with app.state.db.session() as session:
        result = await session.execute(select(AISettings).where(AISettings.tenant_id == tenant_id))
        return result.scalar_one()


async def _usage_rows(app, tenant_id: str) -> list[AIUsageLog]:
    async with app.state.db.session() as session:
        result = await session.execute(select(AIUsageLog).where(AIUsageLog.tenant_id == tenant_id))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_settings_default_before_anything_is_saved(client, root_token):
    tenant = await create_tenant(client, root_token)

    body = (await client.get("/api/ai/settings", headers=auth(tenant.token))).json()

    assert body["provider"] == "gemini"
    assert body["gemini_api_key"] == ""
    assert body["has_gemini_key"] is False
    assert body["is_enabled"] is True


@pytest.mark.asyncio
async def test_saved_key_is_returned_masked(client, root_token):
    tenant = await create_tenant(client, root_token)

    saved = await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})
    assert saved.status_code == 200

    body = (await client.get("/api/ai/settings", headers=auth(tenant.token))).json()
    assert body["gemini_api_key"] == "AIza...7890"
    assert body["has_gemini_key"] is True
    assert GEMINI_KEY not in json.dumps(body)


@pytest.mark.asyncio
@pytest.mark.parametrize("resubmitted", ["AIza...7890", "__unchanged__", ""])
async def test_resubmitting_mask_or_sentinel_keeps_ciphertext(app, client, root_token, resubmitted):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})
    before = (await _stored_settings(app, tenant.id)).gemini_api_key

    resp = await client.put(
        "/api/ai/settings",
        headers=auth(tenant.token),
        json={"gemini_api_key": resubmitted, "temperature": 0.2},
    )

    assert resp.status_code == 200
    after = await _stored_settings(app, tenant.id)
    assert after.gemini_api_key == before
    assert after.temperature == 0.2


@pytest.mark.asyncio
async def test_new_key_replaces_stored_one(app, client, root_token):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})
    before = (await _stored_settings(app, tenant.id)).gemini_api_key

    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": "AIzaSyOTHERKEY0000000000"})

    after = (await _stored_settings(app, tenant.id)).gemini_api_key
    assert after != before
    assert after.decrypt_for_use(app.state.cipher) == "AIzaSyOTHERKEY0000000000"


@pytest.mark.asyncio
async def test_chat_calls_provider_and_logs_usage(app, client, root_token, provider):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})

    resp = await client.post("/api/ai/chat", headers=auth(tenant.token), json={"message": "What is GDPR?"})

    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == "Hello from the model"
    assert resp.json()["provider"] == "gemini"
    assert provider.calls[0].url.params["key"] == GEMINI_KEY

    [usage] = await _usage_rows(app, tenant.id)
    assert usage.success is True
    assert usage.total_tokens == 17
    assert usage.feature == "chat"


@pytest.mark.asyncio
async def test_openrouter_chat_sends_bearer_key(client, root_token, provider):
    tenant = await create_tenant(client, root_token)
    await client.put(
        "/api/ai/settings",
        headers=auth(tenant.token),
        json={"provider": "openrouter", "model_name": "openai/gpt-4-turbo", "openrouter_api_key": OPENROUTER_KEY},
    )

    resp = await client.post("/api/ai/chat", headers=auth(tenant.token), json={"message": "hi"})

    assert resp.status_code == 200
    assert resp.json()["model"] == "openai/gpt-4-turbo"
    assert provider.calls[0].headers["Authorization"] == f"Bearer {OPENROUTER_KEY}"
    assert json.loads(provider.calls[0].content)["model"] == "openai/gpt-4-turbo"


@pytest.mark.asyncio
async def test_autofill_returns_parsed_form_data(client, root_token, provider):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})
    provider.reply = 'Sure: {"name": "GDPR", "jurisdiction": "EU"} done'

    resp = await client.post(
        "/api/ai/chat",
        headers=auth(tenant.token),
        json={"message": "fill this", "feature": "autofill", "context": {"form": "regulation"}},
    )

    assert resp.json()["form_data"] == {"name": "GDPR", "jurisdiction": "EU"}


@pytest.mark.asyncio
async def test_provider_failure_is_500_and_logged(app, client, root_token, provider):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})
    provider.status_code = 502

    resp = await client.post("/api/ai/chat", headers=auth(tenant.token), json={"message": "hi"})

    assert resp.status_code == 500
    assert resp.json()["error"].startswith("AI provider error")
    [usage] = await _usage_rows(app, tenant.id)
    assert usage.success is False
    assert "502" in usage.error_message


@pytest.mark.asyncio
async def test_chat_requires_configuration_and_enablement(client, root_token, provider):
    tenant = await create_tenant(client, root_token)

    unconfigured = await client.post("/api/ai/chat", headers=auth(tenant.token), json={"message": "hi"})
    assert unconfigured.status_code == 400
    assert unconfigured.json()["error"].startswith("AI not configured")

    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"is_enabled": False})
    disabled = await client.post("/api/ai/chat", headers=auth(tenant.token), json={"message": "hi"})
    assert disabled.status_code == 403
    assert disabled.json() == {"error": "AI features are disabled"}

    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"is_enabled": True})
    keyless = await client.post("/api/ai/chat", headers=auth(tenant.token), json={"message": "hi"})
    assert keyless.status_code == 400
    assert keyless.json() == {"error": "API key not configured for gemini"}
    assert provider.calls == []


@pytest.mark.asyncio
async def test_connection_test_prefers_explicit_key(client, root_token, provider):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})

    stored = await client.post("/api/ai/test", headers=auth(tenant.token))
    assert stored.json() == {
        "success": True,
        "message": "Connection successful",
        "provider": "gemini",
        "model": "gemini-2.5-flash",
    }
    assert provider.calls[-1].url.params["key"] == GEMINI_KEY

    await client.post("/api/ai/test", headers=auth(tenant.token), json={"api_key": "AIzaSyEXPLICIT000000000"})
    assert provider.calls[-1].url.params["key"] == "AIzaSyEXPLICIT000000000"

    # The mask stands in for the stored key.
    await client.post("/api/ai/test", headers=auth(tenant.token), json={"api_key": "AIza...7890"})
    assert provider.calls[-1].url.params["key"] == GEMINI_KEY


@pytest.mark.asyncio
async def test_regular_user_can_chat_but_not_configure(client, root_token, provider):
    tenant = await create_tenant(client, root_token)
    await client.put("/api/ai/settings", headers=auth(tenant.token), json={"gemini_api_key": GEMINI_KEY})
    _, member_token = await create_member(client, root_token, tenant.id, Role.REGULAR_USER)

    assert (await client.get("/api/ai/settings", headers=auth(member_token))).status_code == 200
    assert (await client.post("/api/ai/chat", headers=auth(member_token), json={"message": "hi"})).status_code == 200

    denied = await client.put("/api/ai/settings", headers=auth(member_token), json={"is_enabled": False})
    assert denied.status_code == 403
    assert denied.json()["required"] == "ai.update"


@pytest.mark.asyncio
async def test_settings_are_per_tenant(client, root_token):
    tenant_a = await create_tenant(client, root_token)
    tenant_b = await create_tenant(client, root_token)

    await client.put("/api/ai/settings", headers=auth(tenant_a.token), json={"gemini_api_key": GEMINI_KEY})

    body_b = (await client.get("/api/ai/settings", headers=auth(tenant_b.token))).json()
    assert body_b["has_gemini_key"] is False


@pytest.mark.asyncio
async def test_models_catalog(client, root_token):
    tenant = await create_tenant(client, root_token)

    models = (await client.get("/api/ai/models", headers=auth(tenant.token))).json()

    assert {"gemini", "openrouter"} <= set(models)
    assert any(m["id"] == "gemini-2.5-flash" for m in models["gemini"])

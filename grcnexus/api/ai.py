"""AI settings, connection test and chat endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.api.access import require_permission
from grcnexus.api.tenancy import bind_tenant_context
from grcnexus.database import get_session
from grcnexus.models.ai import (
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    AIChatRequest,
    AIConnectionTest,
    AISettings,
    AISettingsUpdate,
    AIUsageLog,
)
from grcnexus.security.credentials import UNCHANGED_SENTINEL, CredentialError, SealedSecret, SecretCipher
from grcnexus.security.permissions import Permission
from grcnexus.security.tokens import TokenClaims
from grcnexus.services.ai_provider import AVAILABLE_MODELS, AIProviderError

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = logging.getLogger("grcnexus.ai")

KEY_FIELDS = ("gemini_api_key", "openrouter_api_key")

# Tenant binding runs before the permission check.
VIEW_GATE = [Depends(bind_tenant_context), Depends(require_permission(Permission.AI_VIEW))]
UPDATE_GATE = [Depends(bind_tenant_context), Depends(require_permission(Permission.AI_UPDATE))]


async def _load_settings(session: AsyncSession, tenant_id: str) -> Optional[AISettings]:
    result = await session.execute(
        select(AISettings).where(AISettings.tenant_id == tenant_id, AISettings.is_deleted.is_(False))
    )
    return result.scalar_one_or_none()


def _mask(sealed: Optional[SealedSecret], cipher: SecretCipher) -> str:
    if sealed is None:
        return ""
    try:
        return sealed.masked(cipher)
    except CredentialError:
        raise HTTPException(status_code=500, detail="Stored API key cannot be decrypted")


def _settings_out(row: Optional[AISettings], cipher: SecretCipher) -> dict:
    if row is None:
        return {
            "provider": DEFAULT_PROVIDER,
            "model_name": DEFAULT_MODEL,
            "gemini_api_key": "",
            "openrouter_api_key": "",
            "has_gemini_key": False,
            "has_openrouter_key": False,
            "is_enabled": True,
            "max_tokens": 4096,
            "temperature": 0.7,
            "web_search_enabled": True,
            "auto_fill_enabled": True,
        }
    return {
        "provider": row.provider,
        "model_name": row.model_name,
        "gemini_api_key": _mask(row.gemini_api_key, cipher),
        "openrouter_api_key": _mask(row.openrouter_api_key, cipher),
        "has_gemini_key": row.gemini_api_key is not None,
        "has_openrouter_key": row.openrouter_api_key is not None,
        "is_enabled": row.is_enabled,
        "max_tokens": row.max_tokens,
        "temperature": row.temperature,
        "web_search_enabled": row.web_search_enabled,
        "auto_fill_enabled": row.auto_fill_enabled,
    }


def key_is_unchanged(submitted: Optional[str], stored: Optional[SealedSecret], cipher: SecretCipher) -> bool:
    """Empty, the sentinel, or exactly the mask of the stored key all mean "keep it"."""
    if not submitted or submitted == UNCHANGED_SENTINEL:
        return True
    if stored is None:
        return False
    try:
        return stored.is_unchanged_by(submitted, cipher)
    except CredentialError:
        # The stored key is unreadable, so whatever was sent replaces it.
        return False


def _usable_key(row: AISettings, provider: str, cipher: SecretCipher) -> str:
    sealed = row.key_for(provider)
    if sealed is None:
        raise HTTPException(status_code=400, detail=f"API key not configured for {provider}")
    try:
        return sealed.decrypt_for_use(cipher)
    except CredentialError:
        raise HTTPException(status_code=500, detail="Stored API key cannot be decrypted")


@router.get("/settings", dependencies=VIEW_GATE)
async def get_ai_settings(
    request: Request,
    tenant_id: str = Depends(bind_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    row = await _load_settings(session, tenant_id)
    return _settings_out(row, request.app.state.cipher)


@router.put("/settings", dependencies=UPDATE_GATE)
async def update_ai_settings(
    request: Request,
    data: AISettingsUpdate,
    tenant_id: str = Depends(bind_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    cipher = request.app.state.cipher
    row = await _load_settings(session, tenant_id)
    if row is None:
        row = AISettings(tenant_id=tenant_id, provider=DEFAULT_PROVIDER, model_name=DEFAULT_MODEL)
        session.add(row)

    changes = data.model_dump(exclude_unset=True)
    for field in KEY_FIELDS:
        if field not in changes:
            continue
        submitted = changes.pop(field)
        if key_is_unchanged(submitted, getattr(row, field), cipher):
            continue
        setattr(row, field, SealedSecret.seal(submitted, cipher))
        logger.info("Updated %s for tenant %s", field, tenant_id)

    for key, value in changes.items():
        if value is not None:
            setattr(row, key, value)

    await session.commit()
    return _settings_out(row, cipher)


@router.get("/models", dependencies=[Depends(require_permission(Permission.AI_VIEW))])
async def list_models():
    return AVAILABLE_MODELS


@router.post("/test", dependencies=UPDATE_GATE)
async def test_connection(
    request: Request,
    data: Optional[AIConnectionTest] = Body(None),
    tenant_id: str = Depends(bind_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    """Check a key against the provider; an explicit key in the body wins over the stored one."""
    cipher = request.app.state.cipher
    data = data or AIConnectionTest()
    row = await _load_settings(session, tenant_id)

    provider = data.provider or (row.provider if row else DEFAULT_PROVIDER)
    model = data.model_name or (row.model_name if row else DEFAULT_MODEL)
    stored = row.key_for(provider) if row else None
    if data.api_key and not key_is_unchanged(data.api_key, stored, cipher):
        api_key = data.api_key
    elif row is not None:
        api_key = _usable_key(row, provider, cipher)
    else:
        raise HTTPException(status_code=400, detail=f"API key not configured for {provider}")

    try:
        await request.app.state.ai.test_connection(provider=provider, model=model, api_key=api_key)
    except AIProviderError as exc:
        raise HTTPException(status_code=500, detail=f"AI provider error: {exc}")

    return {"success": True, "message": "Connection successful", "provider": provider, "model": model}


@router.post("/chat")
async def chat(
    request: Request,
    data: AIChatRequest,
    tenant_id: str = Depends(bind_tenant_context),
    claims: TokenClaims = Depends(require_permission(Permission.AI_CHAT)),
    session: AsyncSession = Depends(get_session),
):
    row = await _load_settings(session, tenant_id)
    if row is None:
        raise HTTPException(status_code=400, detail="AI not configured. Please go to Settings > AI Configuration")
    if not row.is_enabled:
        raise HTTPException(status_code=403, detail="AI features are disabled")
    api_key = _usable_key(row, row.provider, request.app.state.cipher)

    usage = AIUsageLog(
        tenant_id=tenant_id,
        user_id=claims.user_id,
        provider=row.provider,
        model_name=row.model_name,
        feature=data.feature,
    )
    session.add(usage)
    try:
        result = await request.app.state.ai.chat(
            provider=row.provider,
            model=row.model_name,
            api_key=api_key,
            message=data.message,
            feature=data.feature,
            context=data.context,
            max_tokens=row.max_tokens,
            temperature=row.temperature,
        )
    except AIProviderError as exc:
        usage.success = False
        usage.error_message = str(exc)
        await session.commit()
        logger.warning("AI chat failed for tenant %s: %s", tenant_id, exc)
        raise HTTPException(status_code=500, detail=f"AI provider error: {exc}")

    usage.success = True
    usage.prompt_tokens = result.prompt_tokens
    usage.output_tokens = result.output_tokens
    usage.total_tokens = result.total_tokens
    await session.commit()

    body = {
        "success": True,
        "message": result.message,
        "provider": row.provider,
        "model": row.model_name,
    }
    if result.form_data is not None:
        body["form_data"] = result.form_data
    return body

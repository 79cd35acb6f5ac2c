"""Per-tenant AI provider settings and usage log (shared registry tables)."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import Base
from grcnexus.models.mixins import RecordMixin
from grcnexus.security.credentials import SealedSecret, SealedSecretType

PROVIDERS = ("gemini", "openrouter")
DEFAULT_PROVIDER = "gemini"
DEFAULT_MODEL = "gemini-2.5-flash"


class AISettings(RecordMixin, Base):
    __tablename__ = "ai_settings"

    tenant_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    provider: Mapped[str] = mapped_column(String(20), default=DEFAULT_PROVIDER)
    model_name: Mapped[str] = mapped_column(String(100), default=DEFAULT_MODEL)
    gemini_api_key: Mapped[Optional[SealedSecret]] = mapped_column(SealedSecretType(), nullable=True)
    openrouter_api_key: Mapped[Optional[SealedSecret]] = mapped_column(SealedSecretType(), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    max_tokens: Mapped[int] = mapped_column(Integer, default=4096)
    temperature: Mapped[float] = mapped_column(Float, default=0.7)
    web_search_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    auto_fill_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    def key_for(self, provider: str) -> Optional[SealedSecret]:
        return self.openrouter_api_key if provider == "openrouter" else self.gemini_api_key


class AIUsageLog(RecordMixin, Base):
    __tablename__ = "ai_usage_logs"

    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    user_id: Mapped[str] = mapped_column(String(36))
    provider: Mapped[str] = mapped_column(String(20))
    model_name: Mapped[str] = mapped_column(String(100))
    prompt_tokens: Mapped[int] = mapped_column(Integer, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, default=0)
    feature: Mapped[str] = mapped_column(String(30), default="chat")
    success: Mapped[bool] = mapped_column(Boolean, default=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ── Pydantic Schemas ─────────────────────────────────────────

class AISettingsUpdate(BaseModel):
    provider: str | None = Field(default=None, pattern="^(gemini|openrouter)$")
    model_name: str | None = Field(default=None, min_length=1, max_length=100)
    gemini_api_key: str | None = None
    openrouter_api_key: str | None = None
    is_enabled: bool | None = None
    max_tokens: int | None = Field(default=None, ge=1, le=65536)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    web_search_enabled: bool | None = None
    auto_fill_enabled: bool | None = None


class AIConnectionTest(BaseModel):
    provider: str | None = Field(default=None, pattern="^(gemini|openrouter)$")
    api_key: str | None = None
    model_name: str | None = None


class AIChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=20000)
    feature: str = Field(default="chat", max_length=30)
    context: dict | list | str | None = None

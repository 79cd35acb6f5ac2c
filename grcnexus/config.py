"""GRC Nexus configuration loaded from environment variables."""

from __future__ import annotations

import json
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_JWT_SECRET = "change-me-in-production-grcnexus"


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Database
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_host: str = Field(default="localhost", alias="DB_HOST")
    db_port: int = Field(default=5432, alias="DB_PORT")
    db_user: str = Field(default="postgres", alias="DB_USER")
    db_password: str = Field(default="", alias="DB_PASSWORD")
    db_name: str = Field(default="grcnexus", alias="DB_NAME")
    db_ssl_mode: str = Field(default="disable", alias="DB_SSL_MODE")
    auto_create_schema: bool = Field(default=True, alias="AUTO_CREATE_SCHEMA")
    # SQLite only: one attached database file per tenant schema lives here.
    tenant_schema_dir: str = Field(default="./tenant_schemas", alias="TENANT_SCHEMA_DIR")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    cors_origins: str = Field(default='["http://localhost:3000"]', alias="CORS_ORIGINS")
    app_env: str = Field(default="development", alias="APP_ENV")
    strict_startup_validation: bool = Field(default=False, alias="STRICT_STARTUP_VALIDATION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    # Session tokens
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_issuer: str = Field(default="grcnexus", alias="JWT_ISSUER")
    jwt_expires_hours: int = Field(default=24, alias="JWT_EXPIRES_HOURS")

    # Credentials at rest
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, alias="BCRYPT_ROUNDS")
    encryption_key: str = Field(default="", alias="ENCRYPTION_KEY")

    # Response cache (disabled when REDIS_ADDR is empty)
    redis_addr: str = Field(default="", alias="REDIS_ADDR")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    cache_ttl_seconds: int = Field(default=60, alias="CACHE_TTL_SECONDS")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    login_rate_limit: str = Field(default="20/minute", alias="LOGIN_RATE_LIMIT")

    # AI provider
    ai_timeout_seconds: float = Field(default=60.0, alias="AI_TIMEOUT_SECONDS")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL")

    # Billing defaults
    default_plan: str = Field(default="basic", alias="DEFAULT_PLAN")
    default_plan_price: float = Field(default=1500000.0, alias="DEFAULT_PLAN_PRICE")
    default_currency: str = Field(default="IDR", alias="DEFAULT_CURRENCY")
    default_subscription_months: int = Field(default=12, ge=1, alias="DEFAULT_SUBSCRIPTION_MONTHS")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"production", "prod"}

    @property
    def sqlalchemy_url(self) -> str:
        """Explicit DATABASE_URL wins; otherwise compose an asyncpg URL from DB_* parts."""
        if self.database_url.strip():
            return self.database_url.strip()
        credentials = quote_plus(self.db_user)
        if self.db_password:
            credentials = f"{credentials}:{quote_plus(self.db_password)}"
        return f"postgresql+asyncpg://{credentials}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_sqlite(self) -> bool:
        return self.sqlalchemy_url.startswith("sqlite")

    @property
    def cors_origins_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        # Supports JSON list format and comma-separated format.
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(origin).strip() for origin in parsed if str(origin).strip()]
            except json.JSONDecodeError:
                pass

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""GRC Nexus — FastAPI application entry point."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from grcnexus.api.access import require_super_admin
from grcnexus.api.ai import router as ai_router
from grcnexus.api.auth import limiter
from grcnexus.api.auth import router as auth_router
from grcnexus.api.domains import domain_routers
from grcnexus.api.platform import router as platform_router
from grcnexus.api.rbac import router as rbac_router
from grcnexus.config import DEFAULT_JWT_SECRET, Settings, get_settings
from grcnexus.database import Database
from grcnexus.logging_config import setup_logging
from grcnexus.observability.metrics import InMemoryMetrics
from grcnexus.security.credentials import SecretCipher
from grcnexus.security.tokens import TokenService
from grcnexus.services.ai_provider import AIProvider
from grcnexus.services.cache import ResponseCache
from grcnexus.services.provisioning import SchemaProvisioner

logger = logging.getLogger("grcnexus")

SERVICE = "grcnexus"
VERSION = "1.0.0"


def _startup_checks(settings: Settings) -> None:
    """Log warnings for misconfigured or missing settings."""
    startup_errors: list[str] = []

    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        msg = "JWT_SECRET is using the default value; set a strong secret for production"
        logger.warning(msg)
        if settings.is_production:
            startup_errors.append(msg)

    if not settings.encryption_key:
        msg = "ENCRYPTION_KEY is empty; API keys are sealed with a key derived from JWT_SECRET"
        logger.warning(msg)
        if settings.is_production:
            startup_errors.append(msg)

    if settings.is_production and not settings.cors_origins_list:
        msg = "APP_ENV=production but CORS_ORIGINS is empty"
        logger.warning(msg)
        startup_errors.append(msg)

    if settings.is_production and settings.is_sqlite:
        logger.warning("APP_ENV=production with SQLite; use PostgreSQL for reliability")

    if settings.strict_startup_validation and startup_errors:
        raise RuntimeError("Startup validation failed: " + " | ".join(startup_errors))

    if not settings.redis_addr:
        logger.info("No REDIS_ADDR; response cache disabled")


def _error_body(detail) -> dict:
    if isinstance(detail, dict):
        return detail
    return {"error": detail}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": ...}`` (or the structured detail as-is)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are a 400 naming the first offending field."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    _startup_checks(settings)

    db = Database(settings)
    cache = ResponseCache.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        await db.init_models()
        logger.info("GRC Nexus API started (env=%s)", settings.app_env)

        yield

        await cache.close()
        await db.dispose()
        logger.info("GRC Nexus API shutting down")

    app = FastAPI(
        title="GRC Nexus",
        description="Multi-tenant governance, risk and compliance API",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = db
    app.state.provisioner = SchemaProvisioner(db)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.cipher = SecretCipher(settings.encryption_key or settings.jwt_secret)
    app.state.ai = AIProvider.from_settings(settings)
    app.state.cache = cache
    app.state.metrics = InMemoryMetrics()

    # Rate limiting
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing + access log middleware
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        tenant_id = getattr(request.state, "tenant_id", None)
        response.headers["X-Request-ID"] = request_id
        app.state.metrics.observe_request(request.url.path, response.status_code, duration_ms, tenant_id)
        logger.info(
            "request completed",
            extra={
                "request_id": request_id,
                "tenant_id": tenant_id,
                "user_id": getattr(request.state, "user_id", None),
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response

    # Security headers middleware
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'none'; base-uri 'self'"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Routers
    app.include_router(auth_router)
    app.include_router(platform_router)
    app.include_router(rbac_router)
    app.include_router(ai_router)
    for router in domain_routers():
        app.include_router(router)

    @app.get("/")
    async def root():
        return {
            "service": SERVICE,
            "status": "ok",
            "endpoints": {"health": "/api/health", "docs": "/docs"},
        }

    @app.get("/api/health")
    async def health_check():
        database_ready = await app.state.db.ping()
        return {
            "status": "healthy" if database_ready else "degraded",
            "service": SERVICE,
            "version": VERSION,
            "database_ready": database_ready,
            "cache_enabled": app.state.cache.enabled,
        }

    @app.get("/api/health/live")
    async def liveness_check():
        return {"status": "alive", "service": SERVICE}

    @app.get("/api/metrics", dependencies=[Depends(require_super_admin)])
    async def get_metrics():
        return {
            "service": SERVICE,
            "version": VERSION,
            "metrics": app.state.metrics.snapshot(),
        }

    return app


app = create_app()

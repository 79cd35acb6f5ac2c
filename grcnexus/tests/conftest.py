"""Shared test fixtures for GRC Nexus tests."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from grcnexus.config import Settings
from grcnexus.main import create_app
from grcnexus.tests.helpers import ROOT_EMAIL, ROOT_PASSWORD, TEST_BCRYPT_ROUNDS, add_super_admin, login


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Fresh SQLite registry plus a directory of per-tenant schema files."""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}",
        TENANT_SCHEMA_DIR=str(tmp_path / "schemas"),
        JWT_SECRET="test-secret-for-grcnexus",
        ENCRYPTION_KEY="test-encryption-key",
        BCRYPT_ROUNDS=TEST_BCRYPT_ROUNDS,
        RATE_LIMIT_ENABLED=False,
        REDIS_ADDR="",
        CORS_ORIGINS="",
    )


@pytest_asyncio.fixture
async def app(settings):
    application = create_app(settings)
    # ASGITransport does not drive the lifespan, so create the registry here.
    await application.state.db.init_models()
    yield application
    await application.state.db.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest_asyncio.fixture
async def root_token(app, client) -> str:
    await add_super_admin(app)
    return await login(client, ROOT_EMAIL, ROOT_PASSWORD)

"""Async SQLAlchemy engine, shared registry session and per-tenant schema sessions.

Shared registry tables (tenants, users, subscriptions, AI settings, audit log)
live on ``Base`` in the default schema. Tenant tables live on ``TenantBase``,
whose metadata declares the placeholder schema ``TENANT_SCHEMA``. A tenant
session rewrites that placeholder to the tenant's real schema through
``schema_translate_map``, so the scope belongs to the session and never to a
pooled connection.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import MetaData, event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from grcnexus.config import Settings

logger = logging.getLogger("grcnexus.database")

TENANT_SCHEMA = "tenant"
SCHEMA_PREFIX = "tenant_"


class Base(DeclarativeBase):
    pass


class TenantBase(DeclarativeBase):
    metadata = MetaData(schema=TENANT_SCHEMA)


class SchemaMissing(LookupError):
    """The tenant schema is gone (purged or never provisioned)."""

    def __init__(self, schema: str) -> None:
        super().__init__(f"Tenant schema {schema} does not exist")
        self.schema = schema


def schema_name_for(tenant_id: object) -> str:
    """Map a tenant id to its schema name: ``tenant_`` + lowercase hex without dashes.

    Raises ``ValueError`` for anything that is not a UUID, which keeps the
    result a safe unquoted identifier.
    """
    return SCHEMA_PREFIX + uuid.UUID(str(tenant_id).strip()).hex


def _engine_kwargs(settings: Settings, url: str) -> dict:
    kwargs: dict = {"echo": False}
    if url.startswith("postgresql"):
        kwargs.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        })
        if "asyncpg" in url and settings.db_ssl_mode not in {"", "disable"}:
            kwargs["connect_args"] = {"ssl": settings.db_ssl_mode}
    elif url.startswith("sqlite"):
        # Every checkout is a fresh connection, so ATTACHed tenant files never
        # outlive the session that attached them.
        kwargs["poolclass"] = NullPool
    return kwargs


class Database:
    """Engine plus the two kinds of sessions the application hands out.

    ``engine_options`` override the pool defaults chosen for the backend.
    """

    def __init__(self, settings: Settings, **engine_options) -> None:
        self.settings = settings
        self.url = settings.sqlalchemy_url
        self.is_postgres = self.url.startswith("postgresql")
        self.is_sqlite = self.url.startswith("sqlite")
        self.schema_dir = Path(settings.tenant_schema_dir)
        kwargs = _engine_kwargs(settings, self.url)
        kwargs.update(engine_options)
        self.engine = create_async_engine(self.url, **kwargs)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    def schema_file(self, schema: str) -> Path:
        """SQLite only: database file backing an attached tenant schema."""
        return self.schema_dir / f"{schema}.db"

    async def init_models(self) -> None:
        """Create the shared registry tables when AUTO_CREATE_SCHEMA is enabled."""
        if not self.settings.auto_create_schema:
            logger.info("Skipping Base.metadata.create_all (AUTO_CREATE_SCHEMA=false)")
            return

        # Ensure model modules are imported so SQLAlchemy metadata is populated.
        from grcnexus.models import ai, audit, subscription, tenant, user  # noqa: F401

        if self.is_sqlite:
            self.schema_dir.mkdir(parents=True, exist_ok=True)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("database readiness check failed")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session over the shared registry tables."""
        async with self.session_factory() as session:
            yield session

    @asynccontextmanager
    async def tenant_session(self, tenant_id: str) -> AsyncIterator[AsyncSession]:
        """Session whose tenant tables resolve to ``schema_name_for(tenant_id)``.

        Raises ``SchemaMissing`` instead of letting SQLite ATTACH create an
        empty file for a tenant whose schema was dropped.
        """
        schema = schema_name_for(tenant_id)
        if self.is_sqlite and not self.schema_file(schema).exists():
            raise SchemaMissing(schema)
        bind = self.engine.execution_options(schema_translate_map={TENANT_SCHEMA: schema})
        async with AsyncSession(bind=bind, expire_on_commit=False) as session:
            session.info["tenant_id"] = str(tenant_id)
            session.info["schema"] = schema
            event.listen(session.sync_session, "after_begin", self._scope_pinner(schema))
            yield session

    def _scope_pinner(self, schema: str):
        """Build the ``after_begin`` hook that pins a transaction to ``schema``."""
        if self.is_postgres:
            statement = f'SET LOCAL search_path TO "{schema}", public'

            def _pin_search_path(session, transaction, connection) -> None:
                # SET LOCAL dies with the transaction, so the pool gets the
                # connection back with its default search path.
                connection.exec_driver_sql(statement)

            return _pin_search_path

        if self.is_sqlite:
            path = self.schema_file(schema)

            def _attach_schema(session, transaction, connection) -> None:
                attached = connection.info.setdefault("attached_schemas", set())
                if schema not in attached:
                    if not path.exists():
                        raise SchemaMissing(schema)
                    connection.exec_driver_sql(f'ATTACH DATABASE ? AS "{schema}"', (str(path),))
                    attached.add(schema)

            return _attach_schema

        def _noop(session, transaction, connection) -> None:
            return None

        return _noop


def get_database(request: Request) -> Database:
    return request.app.state.db


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency yielding a session over the shared registry tables."""
    async with request.app.state.db.session() as session:
        yield session

from __future__ import annotations

import asyncio
from logging.config import fileConfig
from uuid import uuid4

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from grcnexus.config import get_settings
from grcnexus.database import Base

# Registry models only. Tenant tables live on TenantBase and are created per
# schema by the provisioner, so they never appear in these revisions.
from grcnexus.models import ai, audit, subscription, tenant, user  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
REGISTRY_TABLES = frozenset(target_metadata.tables)


def _registry_url() -> str:
    url = get_settings().sqlalchemy_url.strip() or config.get_main_option("sqlalchemy.url", "").strip()
    if not url:
        raise RuntimeError("No database configured for migrations (set DATABASE_URL or DB_* variables).")
    return url


def _include_object(obj, name, type_, reflected, compare_to) -> bool:
    # Reflection on PostgreSQL also sees the tenant_<hex> schemas; leave them alone.
    if type_ == "table":
        return name in REGISTRY_TABLES and getattr(obj, "schema", None) in (None, "public")
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=_include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=_registry_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = _registry_url()
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = url

    connect_args = {}
    if url.startswith("postgresql+asyncpg://"):
        # PgBouncer in transaction mode rejects reused prepared statement names.
        connect_args["prepared_statement_name_func"] = lambda: f"__grcnexus_migrate_{uuid4()}__"

    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool, connect_args=connect_args)
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())

"""Schema provisioner: one physical schema per tenant holding every tenant table."""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from grcnexus.database import TENANT_SCHEMA, Database, TenantBase, schema_name_for

# Populate TenantBase.metadata with the full tenant table catalog.
from grcnexus.models import auditops, documents, privacyops, regops, riskops  # noqa: F401

logger = logging.getLogger("grcnexus.provisioning")


class ProvisioningError(Exception):
    """Schema DDL failed; ``kind`` is ``invalid_tenant`` or ``ddl``."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class SchemaProvisioner:
    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def schema_of(tenant_id: str) -> str:
        return schema_name_for(tenant_id)

    @staticmethod
    def table_names() -> list[str]:
        return sorted(table.name for table in TenantBase.metadata.sorted_tables)

    def _resolve(self, tenant_id: str) -> str:
        try:
            return schema_name_for(tenant_id)
        except ValueError as exc:
            raise ProvisioningError("invalid_tenant", f"Invalid tenant id: {tenant_id!r}") from exc

    async def provision(self, tenant_id: str) -> str:
        """Create the tenant schema and its tables if absent; safe to repeat."""
        schema = self._resolve(tenant_id)
        try:
            if self.db.is_postgres:
                await self._provision_postgres(schema)
            elif self.db.is_sqlite:
                await self._provision_sqlite(schema)
            else:
                raise ProvisioningError("ddl", f"Unsupported database for tenant schemas: {self.db.url}")
        except SQLAlchemyError as exc:
            logger.error("Provisioning schema %s failed: %s", schema, exc)
            raise ProvisioningError("ddl", f"Failed to provision schema {schema}") from exc

        logger.info("Provisioned tenant schema %s", schema)
        return schema

    async def _provision_postgres(self, schema: str) -> None:
        # PostgreSQL DDL is transactional: a failure here leaves no schema behind.
        async with self.db.engine.begin() as conn:
            await conn.exec_driver_sql(f'CREATE SCHEMA IF NOT EXISTS "{schema}"')
            conn = await conn.execution_options(schema_translate_map={TENANT_SCHEMA: schema})
            await conn.run_sync(TenantBase.metadata.create_all)

    async def _provision_sqlite(self, schema: str) -> None:
        self.db.schema_dir.mkdir(parents=True, exist_ok=True)
        path = self.db.schema_file(schema)
        existed = path.exists()
        try:
            async with self.db.engine.connect() as conn:
                # A pooled connection may already carry this schema from a tenant session.
                attached_here = schema not in conn.info.get("attached_schemas", ())
                if attached_here:
                    await conn.exec_driver_sql(f'ATTACH DATABASE ? AS "{schema}"', (str(path),))
                scoped = await conn.execution_options(schema_translate_map={TENANT_SCHEMA: schema})
                await scoped.run_sync(TenantBase.metadata.create_all)
                await scoped.commit()
                if attached_here:
                    await conn.exec_driver_sql(f'DETACH DATABASE "{schema}"')
        except SQLAlchemyError:
            # SQLite DDL is not transactional here; drop the half-built file instead.
            if not existed:
                path.unlink(missing_ok=True)
            raise

    async def teardown(self, tenant_id: str) -> None:
        """Drop the tenant schema and everything in it; a missing schema is not an error."""
        schema = self._resolve(tenant_id)
        try:
            if self.db.is_postgres:
                async with self.db.engine.begin() as conn:
                    await conn.exec_driver_sql(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE')
            elif self.db.is_sqlite:
                for suffix in ("", "-journal", "-wal", "-shm"):
                    self.db.schema_dir.joinpath(f"{schema}.db{suffix}").unlink(missing_ok=True)
        except SQLAlchemyError as exc:
            logger.error("Tearing down schema %s failed: %s", schema, exc)
            raise ProvisioningError("ddl", f"Failed to drop schema {schema}") from exc

        logger.info("Dropped tenant schema %s", schema)

    async def exists(self, tenant_id: str) -> bool:
        schema = self._resolve(tenant_id)
        if self.db.is_sqlite:
            return self.db.schema_file(schema).exists()
        async with self.db.engine.connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM information_schema.schemata WHERE schema_name = :schema"),
                {"schema": schema},
            )
            return result.first() is not None

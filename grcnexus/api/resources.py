"""Generic tenant-scoped resource router.

A ``ResourceFamily`` declares one GRC record type: its table, status
vocabulary, required fields, stats dimensions and lifecycle verbs.
``build_resource_router`` turns it into the uniform endpoint set under
``/api/<area>/<path>``. Every handler works on the schema-bound session from
``get_tenant_session``, so a record id from another tenant is simply not found.

Route signatures annotate with the per-family schema classes, so annotations
are evaluated eagerly here (no postponed evaluation).
"""

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.api.access import require_permission
from grcnexus.api.tenancy import bind_tenant_context, get_tenant_session
from grcnexus.models.records import RecordSchemas, build_record_schemas
from grcnexus.security.permissions import Permission
from grcnexus.security.tokens import TokenClaims
from grcnexus.services import crud
from grcnexus.utils.time import utc_now

logger = logging.getLogger("grcnexus.resources")


@dataclass(frozen=True)
class Action:
    """Lifecycle verb: moves a record from one of ``sources`` to ``target``."""

    verb: str
    target: str
    sources: tuple[str, ...]
    stamp: Optional[str] = None


@dataclass(frozen=True)
class ResourceFamily:
    area: str
    path: str
    model: type
    label: str
    statuses: tuple[str, ...]
    default_status: str
    required: tuple[str, ...] = ("name",)
    stats_fields: tuple[str, ...] = ("status",)
    actions: tuple[Action, ...] = field(default_factory=tuple)

    @property
    def cache_name(self) -> str:
        return f"{self.area}.{self.path}"

    @cached_property
    def schemas(self) -> RecordSchemas:
        return build_record_schemas(self.model, statuses=self.statuses, required=self.required)

    def permission(self, verb: str) -> Permission:
        return Permission.for_area(self.area, verb)

    def action(self, verb: str) -> Optional[Action]:
        for action in self.actions:
            if action.verb == verb:
                return action
        return None


def apply_action(record, family: ResourceFamily, verb: str) -> None:
    """Apply a lifecycle action to a record or raise 409 if invalid."""
    action = family.action(verb)
    if action is None:
        raise HTTPException(status_code=400, detail=f"Unsupported action: {verb}")

    if record.status not in action.sources:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot {verb} {family.label.lower()} in '{record.status}' state",
        )
    record.status = action.target
    if action.stamp:
        setattr(record, action.stamp, utc_now())


def build_resource_router(family: ResourceFamily) -> APIRouter:
    router = APIRouter(prefix=f"/api/{family.area}/{family.path}", tags=[family.area])
    model = family.model
    schemas = family.schemas
    CreateBody = schemas.create
    UpdateBody = schemas.update
    not_found = f"{family.label} not found"

    bind = Depends(bind_tenant_context)
    can_view = require_permission(family.permission("view"))
    can_create = require_permission(family.permission("create"))
    can_update = require_permission(family.permission("update"))
    can_delete = require_permission(family.permission("delete"))

    async def _invalidate(request: Request, session: AsyncSession) -> None:
        await request.app.state.cache.invalidate(session.info["schema"], family.cache_name)

    async def _load(session: AsyncSession, record_id: str, *, deleted: Optional[bool] = False):
        record = await crud.get_record(session, model, record_id, deleted=deleted)
        if record is None:
            raise HTTPException(status_code=404, detail=not_found)
        return record

    # Fixed paths are registered before /{record_id} so they are not captured by it.

    @router.get("/stats", dependencies=[bind, Depends(can_view)])
    async def stats(request: Request, session: AsyncSession = Depends(get_tenant_session)):
        cache = request.app.state.cache
        schema = session.info["schema"]
        cached = await cache.get(schema, family.cache_name)
        if cached is not None:
            return cached
        result = await crud.record_stats(session, model, family.stats_fields)
        await cache.set(schema, family.cache_name, result)
        return result

    @router.get("/deleted", response_model=list[schemas.response], dependencies=[bind, Depends(can_view)])
    async def list_deleted(
        limit: int = Query(100, ge=1, le=500),
        session: AsyncSession = Depends(get_tenant_session),
    ):
        return await crud.list_records(session, model, deleted=True, limit=limit)

    @router.get("", response_model=list[schemas.response], dependencies=[bind, Depends(can_view)])
    async def list_records(
        status: str | None = Query(None),
        limit: int = Query(100, ge=1, le=500),
        session: AsyncSession = Depends(get_tenant_session),
    ):
        return await crud.list_records(session, model, status=status, limit=limit)

    @router.post("", status_code=201, response_model=schemas.response, dependencies=[bind])
    async def create_record(
        request: Request,
        payload: CreateBody,
        claims: TokenClaims = Depends(can_create),
        session: AsyncSession = Depends(get_tenant_session),
    ):
        values = payload.model_dump(exclude_unset=True)
        values.setdefault("status", family.default_status)
        record = await crud.create_record(session, model, values, actor_id=claims.user_id)
        await _invalidate(request, session)
        logger.info("Created %s %s in %s", family.cache_name, record.id, session.info["schema"])
        return record

    @router.get("/{record_id}", response_model=schemas.response, dependencies=[bind, Depends(can_view)])
    async def get_record(record_id: str, session: AsyncSession = Depends(get_tenant_session)):
        return await _load(session, record_id)

    @router.put("/{record_id}", response_model=schemas.response, dependencies=[bind, Depends(can_update)])
    async def update_record(
        request: Request,
        record_id: str,
        payload: UpdateBody,
        session: AsyncSession = Depends(get_tenant_session),
    ):
        record = await _load(session, record_id)
        values = payload.model_dump(exclude_unset=True)
        record = await crud.update_record(session, record, values)
        await _invalidate(request, session)
        return record

    @router.delete("/{record_id}", dependencies=[bind])
    async def delete_record(
        request: Request,
        record_id: str,
        claims: TokenClaims = Depends(can_delete),
        session: AsyncSession = Depends(get_tenant_session),
    ):
        record = await _load(session, record_id)
        await crud.soft_delete_record(session, record, actor_id=claims.user_id)
        await _invalidate(request, session)
        return {"message": f"{family.label} deleted", "id": record_id}

    @router.post("/{record_id}/restore", response_model=schemas.response, dependencies=[bind, Depends(can_update)])
    async def restore_record(request: Request, record_id: str, session: AsyncSession = Depends(get_tenant_session)):
        record = await _load(session, record_id, deleted=True)
        record = await crud.restore_record(session, record)
        await _invalidate(request, session)
        return record

    @router.delete("/{record_id}/permanent", dependencies=[bind, Depends(can_delete)])
    async def permanent_delete(request: Request, record_id: str, session: AsyncSession = Depends(get_tenant_session)):
        record = await _load(session, record_id, deleted=None)
        await crud.purge_record(session, record)
        await _invalidate(request, session)
        return {"message": f"{family.label} permanently deleted", "id": record_id}

    if family.actions:
        @router.post("/{record_id}/{verb}", response_model=schemas.response, dependencies=[bind, Depends(can_update)])
        async def run_action(
            request: Request,
            record_id: str,
            verb: str,
            session: AsyncSession = Depends(get_tenant_session),
        ):
            record = await _load(session, record_id)
            apply_action(record, family, verb)
            record.updated_at = utc_now()
            await session.commit()
            await session.refresh(record)
            await _invalidate(request, session)
            return record

    return router


async def family_totals(session: AsyncSession, families: list[ResourceFamily]) -> dict:
    return {family.path: await crud.count_live(session, family.model) for family in families}

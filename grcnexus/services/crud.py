"""Uniform record operations over tenant tables.

Every call takes the session bound by ``Database.tenant_session``; nothing here
filters by tenant id, because the schema already is the tenant boundary.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.utils.time import utc_now


async def list_records(
    session: AsyncSession,
    model,
    *,
    deleted: bool = False,
    status: Optional[str] = None,
    limit: int = 100,
) -> list:
    query = select(model).where(model.is_deleted.is_(deleted))
    if status:
        query = query.where(model.status == status)
    order_column = model.deleted_at if deleted else model.created_at
    query = query.order_by(order_column.desc(), model.id).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_record(session: AsyncSession, model, record_id: str, *, deleted: Optional[bool] = False):
    """Fetch by id; ``deleted=None`` matches live and soft-deleted rows alike."""
    query = select(model).where(model.id == record_id)
    if deleted is not None:
        query = query.where(model.is_deleted.is_(deleted))
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def create_record(session: AsyncSession, model, values: dict, *, actor_id: Optional[str] = None):
    record = model(**values)
    if hasattr(model, "created_by"):
        record.created_by = actor_id
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def update_record(session: AsyncSession, record, values: dict):
    for key, value in values.items():
        setattr(record, key, value)
    record.updated_at = utc_now()
    await session.commit()
    await session.refresh(record)
    return record


async def soft_delete_record(session: AsyncSession, record, *, actor_id: Optional[str]) -> None:
    record.mark_deleted(actor_id)
    await session.commit()


async def restore_record(session: AsyncSession, record):
    record.clear_deleted()
    record.updated_at = utc_now()
    await session.commit()
    await session.refresh(record)
    return record


async def purge_record(session: AsyncSession, record) -> None:
    await session.delete(record)
    await session.commit()


async def record_stats(session: AsyncSession, model, fields: Iterable[str]) -> dict:
    """Live-row total plus counts grouped by each of ``fields``."""
    live = model.is_deleted.is_(False)
    total = (await session.execute(select(func.count()).select_from(model).where(live))).scalar_one()
    stats: dict[str, Any] = {"total": total}
    for field in fields:
        column = getattr(model, field)
        rows = await session.execute(select(column, func.count()).where(live).group_by(column))
        stats[f"by_{field}"] = {(key if key is not None else "unknown"): count for key, count in rows.all()}
    return stats


async def count_live(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(model.is_deleted.is_(False)))
    return result.scalar_one()

"""Tenant lifecycle: state transitions, tombstoning and restore cascades."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.models.subscription import Subscription, SubscriptionStatus
from grcnexus.models.tenant import Tenant, TenantStatus
from grcnexus.models.user import User, UserStatus
from grcnexus.utils.time import add_months, ensure_utc, utc_now

logger = logging.getLogger("grcnexus.tenants")

TOMBSTONE_MARKER = "_deleted_"


def tombstone(value: str, when: datetime) -> str:
    """Free a unique value for reuse by suffixing ``_deleted_<unix>``."""
    return f"{value}{TOMBSTONE_MARKER}{int(when.timestamp())}"


def strip_tombstone(value: str) -> str:
    if TOMBSTONE_MARKER in value:
        return value.rsplit(TOMBSTONE_MARKER, 1)[0]
    return value


def apply_tenant_transition(tenant: Tenant, action: str) -> None:
    """Apply a lifecycle action to a tenant or raise 409 if invalid."""
    if action == "activate":
        if tenant.status != TenantStatus.PENDING.value:
            raise HTTPException(
                status_code=409,
                detail=f"Cannot activate tenant in '{tenant.status}' state",
            )
        tenant.status = TenantStatus.ACTIVE.value
        return

    if action == "suspend":
        if tenant.status != TenantStatus.ACTIVE.value:
            raise HTTPException(
                status_code=409,
                detail=f"Cannot suspend tenant in '{tenant.status}' state",
            )
        tenant.status = TenantStatus.SUSPENDED.value
        return

    if action == "reactivate":
        if tenant.status != TenantStatus.SUSPENDED.value:
            raise HTTPException(
                status_code=409,
                detail=f"Cannot reactivate tenant in '{tenant.status}' state",
            )
        tenant.status = TenantStatus.ACTIVE.value
        return

    raise HTTPException(status_code=400, detail=f"Unsupported action: {action}")


async def get_tenant(session: AsyncSession, tenant_id: str, *, deleted: bool = False) -> Tenant:
    result = await session.execute(
        select(Tenant).where(Tenant.id == tenant_id, Tenant.is_deleted.is_(deleted))
    )
    tenant = result.scalar_one_or_none()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


async def tenant_subscription(session: AsyncSession, tenant_id: str, *, deleted: bool = False) -> Optional[Subscription]:
    result = await session.execute(
        select(Subscription)
        .where(Subscription.tenant_id == tenant_id, Subscription.is_deleted.is_(deleted))
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def count_users(session: AsyncSession, tenant_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(User).where(User.tenant_id == tenant_id, User.is_deleted.is_(False))
    )
    return result.scalar_one()


def start_subscription(
    subscription: Subscription,
    *,
    months: int,
    plan_type: Optional[str] = None,
    price: Optional[float] = None,
    billing_cycle: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Mark a subscription active from ``now`` for ``months`` calendar months."""
    started = now or utc_now()
    subscription.status = SubscriptionStatus.ACTIVE.value
    subscription.start_date = started
    subscription.end_date = add_months(started, months)
    if plan_type:
        subscription.plan_type = plan_type
    if price is not None:
        subscription.price = price
    if billing_cycle:
        subscription.billing_cycle = billing_cycle


async def soft_delete_tenant(session: AsyncSession, tenant: Tenant, *, actor_id: Optional[str]) -> datetime:
    """Tombstone the tenant and cascade the same deletion stamp onto its users and subscription."""
    now = utc_now()
    tenant.domain = tombstone(tenant.domain, now)
    tenant.status = TenantStatus.DELETED.value
    tenant.mark_deleted(actor_id, now)

    users = await session.execute(
        select(User).where(User.tenant_id == tenant.id, User.is_deleted.is_(False))
    )
    for user in users.scalars().all():
        user.email = tombstone(user.email, now)
        user.status = UserStatus.DELETED.value
        user.mark_deleted(actor_id, now)

    subscriptions = await session.execute(
        select(Subscription).where(Subscription.tenant_id == tenant.id, Subscription.is_deleted.is_(False))
    )
    for subscription in subscriptions.scalars().all():
        subscription.mark_deleted(actor_id, now)

    logger.info("Soft-deleted tenant %s", tenant.id)
    return now


async def restore_tenant(session: AsyncSession, tenant: Tenant) -> None:
    """Undo a soft delete, restoring only rows that went down with the tenant."""
    domain = strip_tombstone(tenant.domain)
    clash = await session.execute(
        select(Tenant.id).where(Tenant.domain == domain, Tenant.is_deleted.is_(False), Tenant.id != tenant.id)
    )
    if clash.first() is not None:
        raise HTTPException(status_code=409, detail=f"Domain '{domain}' is already used by another tenant")

    deleted_at = ensure_utc(tenant.deleted_at)

    users = await session.execute(select(User).where(User.tenant_id == tenant.id, User.is_deleted.is_(True)))
    for user in users.scalars().all():
        if ensure_utc(user.deleted_at) != deleted_at:
            continue
        email = strip_tombstone(user.email)
        taken = await session.execute(select(User.id).where(User.email == email, User.id != user.id))
        if taken.first() is not None:
            logger.warning("Leaving user %s deleted: email %s is taken", user.id, email)
            continue
        user.email = email
        user.status = UserStatus.ACTIVE.value
        user.clear_deleted()

    subscriptions = await session.execute(
        select(Subscription).where(Subscription.tenant_id == tenant.id, Subscription.is_deleted.is_(True))
    )
    for subscription in subscriptions.scalars().all():
        if ensure_utc(subscription.deleted_at) == deleted_at:
            subscription.clear_deleted()

    tenant.domain = domain
    tenant.status = TenantStatus.ACTIVE.value
    tenant.clear_deleted()
    logger.info("Restored tenant %s", tenant.id)


async def purge_tenant_rows(session: AsyncSession, tenant: Tenant) -> None:
    """Hard-delete the tenant with its users and subscriptions."""
    for model in (User, Subscription):
        rows = await session.execute(select(model).where(model.tenant_id == tenant.id))
        for row in rows.scalars().all():
            await session.delete(row)
    await session.flush()
    await session.delete(tenant)

"""Platform administration API (super-admin only): tenants, users, billing, logs."""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.api.access import require_super_admin
from grcnexus.database import get_session
from grcnexus.models.audit import AuditLog, AuditLogResponse
from grcnexus.models.subscription import Subscription, SubscriptionResponse, SubscriptionStatus, SubscriptionUpdate
from grcnexus.models.tenant import Tenant, TenantActivate, TenantCreate, TenantResponse, TenantStatus, TenantUpdate
from grcnexus.models.user import PasswordReset, User, UserCreate, UserResponse, UserStatus, UserUpdate
from grcnexus.security.permissions import Role
from grcnexus.security.tokens import TokenClaims
from grcnexus.services import accounts, audit, tenants
from grcnexus.services.provisioning import ProvisioningError
from grcnexus.utils.time import add_months, utc_now

router = APIRouter(
    prefix="/api/platform",
    tags=["platform"],
    dependencies=[Depends(require_super_admin)],
)
logger = logging.getLogger("grcnexus.platform")


def _tenant_out(tenant: Tenant) -> dict:
    return TenantResponse.model_validate(tenant).model_dump(mode="json")


def _user_out(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


def _subscription_out(subscription: Optional[Subscription]) -> Optional[dict]:
    if subscription is None:
        return None
    return SubscriptionResponse.model_validate(subscription).model_dump(mode="json")


def _temporary_password() -> str:
    return secrets.token_urlsafe(12)


async def _get_user(session: AsyncSession, user_id: str, *, deleted: bool = False) -> User:
    result = await session.execute(select(User).where(User.id == user_id, User.is_deleted.is_(deleted)))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ── Tenants ──────────────────────────────────────────────────

@router.get("/tenants")
async def list_tenants(
    status: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
):
    query = select(Tenant).where(Tenant.is_deleted.is_(False)).order_by(desc(Tenant.created_at))
    if status:
        query = query.where(Tenant.status == status)
    result = await session.execute(query)
    items = []
    for tenant in result.scalars().all():
        subscription = await tenants.tenant_subscription(session, tenant.id)
        items.append({**_tenant_out(tenant), "subscription": _subscription_out(subscription)})
    return items


@router.post("/tenants", status_code=201)
async def create_tenant(
    request: Request,
    data: TenantCreate,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    """Create an active tenant with its subscription, schema and first admin."""
    settings = request.app.state.settings
    domain = accounts.slugify_domain(data.domain or data.name)
    if not domain:
        raise HTTPException(status_code=400, detail="Organization domain is required")
    if await accounts.domain_taken(session, domain):
        raise HTTPException(status_code=400, detail="Organization domain already exists")
    if await accounts.email_taken(session, data.admin_email):
        raise HTTPException(status_code=400, detail="User already exists")

    now = utc_now()
    tenant = Tenant(name=data.name, domain=domain, description=data.description, status=TenantStatus.ACTIVE.value, config={})
    session.add(tenant)
    await session.flush()

    months = data.duration_months or settings.default_subscription_months
    subscription = Subscription(
        tenant_id=tenant.id,
        plan_type=data.plan_type or settings.default_plan,
        status=SubscriptionStatus.ACTIVE.value,
        start_date=now,
        end_date=add_months(now, months),
        billing_cycle=data.billing_cycle,
        price=data.price if data.price is not None else settings.default_plan_price,
        currency=settings.default_currency,
    )
    session.add(subscription)
    await session.flush()

    try:
        await request.app.state.provisioner.provision(tenant.id)
    except ProvisioningError:
        await session.rollback()
        raise HTTPException(status_code=500, detail="Failed to provision tenant schema")

    temporary_password = None if data.admin_password else _temporary_password()
    admin = User(
        tenant_id=tenant.id,
        email=accounts.normalize_email(data.admin_email),
        password=await accounts.hash_password(data.admin_password or temporary_password, settings.bcrypt_rounds),
        first_name=data.admin_first_name,
        last_name=data.admin_last_name,
        role=Role.TENANT_ADMIN.value,
        status=UserStatus.ACTIVE.value,
    )
    session.add(admin)
    audit.record(
        session,
        action="tenant.create",
        resource_type="tenant",
        resource_id=tenant.id,
        tenant_id=tenant.id,
        user_id=claims.user_id,
        details={"domain": domain, "plan": subscription.plan_type},
        request=request,
    )
    await session.commit()
    logger.info("Created tenant %s (%s)", tenant.id, domain)

    body = {
        "tenant": _tenant_out(tenant),
        "subscription": _subscription_out(subscription),
        "admin": _user_out(admin),
    }
    if temporary_password:
        body["temporary_password"] = temporary_password
    return body


@router.get("/tenants/deleted")
async def list_deleted_tenants(session: AsyncSession = Depends(get_session)):
    result = await session.execute(
        select(Tenant).where(Tenant.is_deleted.is_(True)).order_by(desc(Tenant.deleted_at))
    )
    return [_tenant_out(t) for t in result.scalars().all()]


@router.get("/tenants/{tenant_id}")
async def get_tenant(tenant_id: str, session: AsyncSession = Depends(get_session)):
    tenant = await tenants.get_tenant(session, tenant_id)
    return {
        **_tenant_out(tenant),
        "subscription": _subscription_out(await tenants.tenant_subscription(session, tenant.id)),
        "user_count": await tenants.count_users(session, tenant.id),
    }


@router.put("/tenants/{tenant_id}")
async def update_tenant(
    request: Request,
    tenant_id: str,
    data: TenantUpdate,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    tenant = await tenants.get_tenant(session, tenant_id)
    changes = data.model_dump(exclude_unset=True)
    if "domain" in changes:
        domain = accounts.slugify_domain(changes["domain"])
        if not domain:
            raise HTTPException(status_code=400, detail="Organization domain is required")
        if await accounts.domain_taken(session, domain, exclude_id=tenant.id):
            raise HTTPException(status_code=400, detail="Organization domain already exists")
        changes["domain"] = domain
    for key, value in changes.items():
        setattr(tenant, key, value)
    tenant.updated_at = utc_now()
    audit.record(
        session, action="tenant.update", resource_type="tenant", resource_id=tenant.id,
        tenant_id=tenant.id, user_id=claims.user_id, details=changes, request=request,
    )
    await session.commit()
    return _tenant_out(tenant)


@router.post("/tenants/{tenant_id}/activate")
async def activate_tenant(
    request: Request,
    tenant_id: str,
    data: Optional[TenantActivate] = Body(None),
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    """Move a pending tenant to active and start its subscription term."""
    settings = request.app.state.settings
    data = data or TenantActivate()
    tenant = await tenants.get_tenant(session, tenant_id)
    tenants.apply_tenant_transition(tenant, "activate")

    subscription = await tenants.tenant_subscription(session, tenant.id)
    if subscription is None:
        subscription = Subscription(
            tenant_id=tenant.id,
            plan_type=settings.default_plan,
            price=settings.default_plan_price,
            currency=settings.default_currency,
            start_date=utc_now(),
        )
        session.add(subscription)
    tenants.start_subscription(
        subscription,
        months=data.duration_months or settings.default_subscription_months,
        plan_type=data.plan_type,
        price=data.price,
        billing_cycle=data.billing_cycle,
    )
    audit.record(
        session, action="tenant.activate", resource_type="tenant", resource_id=tenant.id,
        tenant_id=tenant.id, user_id=claims.user_id,
        details={"plan": subscription.plan_type, "end_date": subscription.end_date.isoformat()},
        request=request,
    )
    await session.commit()
    logger.info("Activated tenant %s", tenant.id)
    return {**_tenant_out(tenant), "subscription": _subscription_out(subscription)}


async def _transition(request: Request, tenant_id: str, action: str, claims: TokenClaims, session: AsyncSession) -> dict:
    tenant = await tenants.get_tenant(session, tenant_id)
    previous = tenant.status
    tenants.apply_tenant_transition(tenant, action)
    tenant.updated_at = utc_now()
    audit.record(
        session, action=f"tenant.{action}", resource_type="tenant", resource_id=tenant.id,
        tenant_id=tenant.id, user_id=claims.user_id, details={"from": previous, "to": tenant.status},
        request=request,
    )
    await session.commit()
    logger.info("Tenant %s %s -> %s", tenant.id, previous, tenant.status)
    return _tenant_out(tenant)


@router.post("/tenants/{tenant_id}/suspend")
async def suspend_tenant(
    request: Request,
    tenant_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _transition(request, tenant_id, "suspend", claims, session)


@router.post("/tenants/{tenant_id}/reactivate")
async def reactivate_tenant(
    request: Request,
    tenant_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _transition(request, tenant_id, "reactivate", claims, session)


@router.delete("/tenants/{tenant_id}")
async def delete_tenant(
    request: Request,
    tenant_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    tenant = await tenants.get_tenant(session, tenant_id)
    await tenants.soft_delete_tenant(session, tenant, actor_id=claims.user_id)
    audit.record(
        session, action="tenant.delete", resource_type="tenant", resource_id=tenant.id,
        tenant_id=tenant.id, user_id=claims.user_id, request=request,
    )
    await session.commit()
    return {"message": "Tenant deleted", "id": tenant.id}


@router.post("/tenants/{tenant_id}/restore")
async def restore_tenant(
    request: Request,
    tenant_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    tenant = await tenants.get_tenant(session, tenant_id, deleted=True)
    await tenants.restore_tenant(session, tenant)
    audit.record(
        session, action="tenant.restore", resource_type="tenant", resource_id=tenant.id,
        tenant_id=tenant.id, user_id=claims.user_id, request=request,
    )
    await session.commit()
    return _tenant_out(tenant)


@router.delete("/tenants/{tenant_id}/permanent")
async def purge_tenant(
    request: Request,
    tenant_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    """Remove the tenant's registry rows and drop its schema."""
    result = await session.execute(select(Tenant).where(Tenant.id == tenant_id))
    tenant = result.scalar_one_or_none()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")

    await tenants.purge_tenant_rows(session, tenant)
    audit.record(
        session, action="tenant.purge", resource_type="tenant", resource_id=tenant_id,
        user_id=claims.user_id, details={"domain": tenant.domain}, request=request,
    )
    await session.commit()

    try:
        await request.app.state.provisioner.teardown(tenant_id)
    except ProvisioningError:
        raise HTTPException(status_code=500, detail="Tenant removed but schema teardown failed")
    return {"message": "Tenant permanently deleted", "id": tenant_id}


@router.put("/tenants/{tenant_id}/subscription")
async def update_subscription(
    request: Request,
    tenant_id: str,
    data: SubscriptionUpdate,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    """Renew or adjust a tenant's plan, status and end date."""
    tenant = await tenants.get_tenant(session, tenant_id)
    subscription = await tenants.tenant_subscription(session, tenant.id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="Subscription not found")

    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(subscription, key, value.value if isinstance(value, SubscriptionStatus) else value)
    subscription.updated_at = utc_now()
    audit.record(
        session, action="subscription.update", resource_type="subscription", resource_id=subscription.id,
        tenant_id=tenant.id, user_id=claims.user_id, details=data.model_dump(mode="json", exclude_unset=True),
        request=request,
    )
    await session.commit()
    return _subscription_out(subscription)


# ── Users ────────────────────────────────────────────────────

@router.get("/tenants/{tenant_id}/users")
async def list_tenant_users(tenant_id: str, session: AsyncSession = Depends(get_session)):
    await tenants.get_tenant(session, tenant_id)
    result = await session.execute(
        select(User)
        .where(User.tenant_id == tenant_id, User.is_deleted.is_(False))
        .order_by(User.created_at)
    )
    return [_user_out(u) for u in result.scalars().all()]


@router.post("/tenants/{tenant_id}/users", status_code=201)
async def create_tenant_user(
    request: Request,
    tenant_id: str,
    data: UserCreate,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    tenant = await tenants.get_tenant(session, tenant_id)
    if await accounts.email_taken(session, data.email):
        raise HTTPException(status_code=400, detail="User already exists")

    temporary_password = None if data.password else _temporary_password()
    user = User(
        tenant_id=tenant.id,
        email=accounts.normalize_email(data.email),
        password=await accounts.hash_password(data.password or temporary_password, request.app.state.settings.bcrypt_rounds),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role.value,
        status=UserStatus.ACTIVE.value,
    )
    session.add(user)
    await session.flush()
    audit.record(
        session, action="user.create", resource_type="user", resource_id=user.id,
        tenant_id=tenant.id, user_id=claims.user_id, details={"role": user.role}, request=request,
    )
    await session.commit()

    body = _user_out(user)
    if temporary_password:
        body["temporary_password"] = temporary_password
    return body


@router.get("/users/deleted")
async def list_deleted_users(
    tenant_id: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
):
    query = select(User).where(User.is_deleted.is_(True)).order_by(desc(User.deleted_at))
    if tenant_id:
        query = query.where(User.tenant_id == tenant_id)
    result = await session.execute(query)
    return [_user_out(u) for u in result.scalars().all()]


@router.put("/users/{user_id}")
async def update_user(
    request: Request,
    user_id: str,
    data: UserUpdate,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await _get_user(session, user_id)
    changes = data.model_dump(mode="json", exclude_unset=True)
    for key, value in changes.items():
        setattr(user, key, value)
    user.updated_at = utc_now()
    audit.record(
        session, action="user.update", resource_type="user", resource_id=user.id,
        tenant_id=user.tenant_id, user_id=claims.user_id, details=changes, request=request,
    )
    await session.commit()
    return _user_out(user)


@router.post("/users/{user_id}/reset-password")
async def reset_password(
    request: Request,
    user_id: str,
    data: PasswordReset,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await _get_user(session, user_id)
    user.password = await accounts.hash_password(data.password, request.app.state.settings.bcrypt_rounds)
    user.updated_at = utc_now()
    audit.record(
        session, action="user.reset_password", resource_type="user", resource_id=user.id,
        tenant_id=user.tenant_id, user_id=claims.user_id, request=request,
    )
    await session.commit()
    return {"message": "Password reset", "id": user.id}


@router.delete("/users/{user_id}")
async def delete_user(
    request: Request,
    user_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    if user_id == claims.user_id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    user = await _get_user(session, user_id)
    now = utc_now()
    user.email = tenants.tombstone(user.email, now)
    user.status = UserStatus.DELETED.value
    user.mark_deleted(claims.user_id, now)
    audit.record(
        session, action="user.delete", resource_type="user", resource_id=user.id,
        tenant_id=user.tenant_id, user_id=claims.user_id, request=request,
    )
    await session.commit()
    return {"message": "User deleted", "id": user.id}


@router.post("/users/{user_id}/restore")
async def restore_user(
    request: Request,
    user_id: str,
    claims: TokenClaims = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await _get_user(session, user_id, deleted=True)
    email = tenants.strip_tombstone(user.email)
    if await accounts.email_taken(session, email):
        raise HTTPException(status_code=409, detail=f"Email '{email}' is already in use")
    user.email = email
    user.status = UserStatus.ACTIVE.value
    user.clear_deleted()
    audit.record(
        session, action="user.restore", resource_type="user", resource_id=user.id,
        tenant_id=user.tenant_id, user_id=claims.user_id, request=request,
    )
    await session.commit()
    return _user_out(user)


# ── Billing and logs ─────────────────────────────────────────

@router.get("/subscriptions")
async def list_subscriptions(
    status: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
):
    query = (
        select(Subscription, Tenant.name)
        .join(Tenant, Tenant.id == Subscription.tenant_id)
        .where(Subscription.is_deleted.is_(False))
        .order_by(desc(Subscription.created_at))
    )
    if status:
        query = query.where(Subscription.status == status)
    result = await session.execute(query)
    return [{**_subscription_out(sub), "tenant_name": name} for sub, name in result.all()]


@router.get("/logs")
async def list_logs(
    tenant_id: str | None = Query(None),
    action: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    query = select(AuditLog).order_by(desc(AuditLog.created_at))
    if tenant_id:
        query = query.where(AuditLog.tenant_id == tenant_id)
    if action:
        query = query.where(AuditLog.action == action)
    result = await session.execute(query.limit(limit))
    return [AuditLogResponse.model_validate(entry).model_dump(mode="json") for entry in result.scalars().all()]

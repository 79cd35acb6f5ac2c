"""Login lifecycle gate and self-service registration."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from grcnexus.models.subscription import Subscription, SubscriptionStatus
from grcnexus.models.tenant import Tenant, TenantStatus
from grcnexus.models.user import User, UserRegister, UserStatus
from grcnexus.security.credentials import PasswordHash, dummy_password_hash
from grcnexus.security.permissions import Role, parse_role
from grcnexus.services.provisioning import ProvisioningError, SchemaProvisioner
from grcnexus.utils.time import utc_now

logger = logging.getLogger("grcnexus.accounts")

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_INACTIVE = "Your account is not active. Please contact administrator."
UNKNOWN_ROLE = "Your account has no valid role. Please contact administrator."
TENANT_PENDING = "Organization pending activation. Please wait for administrator approval."
TENANT_SUSPENDED = "Organization suspended. Please contact administrator."
TENANT_INACTIVE = "Organization is not active. Please contact administrator."
SUBSCRIPTION_CANCELLED = "Organization subscription cancelled. Please contact administrator."

PENDING_MESSAGE = (
    "Registration successful. Your organization is pending activation by an administrator."
)


class LoginRejected(Exception):
    """Login refused; ``message`` is safe to return to the caller."""

    def __init__(self, message: str, reason: str = "invalid_credentials") -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason


class RegistrationConflict(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class Registration:
    tenant: Tenant
    subscription: Subscription
    user: User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def slugify_domain(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


async def hash_password(plaintext: str, rounds: int) -> PasswordHash:
    return await asyncio.to_thread(PasswordHash.write, plaintext, rounds)


async def verify_password(digest: PasswordHash, plaintext: str) -> bool:
    # bcrypt is CPU bound; keep it off the event loop.
    return await asyncio.to_thread(digest.verify, plaintext)


async def find_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == normalize_email(email), User.is_deleted.is_(False))
    )
    return result.scalar_one_or_none()


async def live_subscription(session: AsyncSession, tenant_id: str) -> Optional[Subscription]:
    result = await session.execute(
        select(Subscription)
        .where(Subscription.tenant_id == tenant_id, Subscription.is_deleted.is_(False))
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def check_tenant_admits_login(session: AsyncSession, tenant_id: Optional[str]) -> None:
    """Raise ``LoginRejected`` unless the tenant is active with a valid subscription."""
    tenant = None
    if tenant_id:
        result = await session.execute(
            select(Tenant).where(Tenant.id == tenant_id, Tenant.is_deleted.is_(False))
        )
        tenant = result.scalar_one_or_none()
    if tenant is None:
        raise LoginRejected(TENANT_INACTIVE, "tenant_inactive")

    if tenant.status == TenantStatus.PENDING.value:
        raise LoginRejected(TENANT_PENDING, "tenant_pending")
    if tenant.status == TenantStatus.SUSPENDED.value:
        raise LoginRejected(TENANT_SUSPENDED, "tenant_suspended")
    if tenant.status != TenantStatus.ACTIVE.value:
        raise LoginRejected(TENANT_INACTIVE, "tenant_inactive")

    subscription = await live_subscription(session, tenant.id)
    if subscription is None:
        return

    reason = subscription.lapse_reason(utc_now())
    if reason == SubscriptionStatus.EXPIRED.value:
        if subscription.end_date is not None:
            ended = subscription.end_date.strftime("%Y-%m-%d")
            raise LoginRejected(
                f"Organization subscription expired on {ended}. Please contact administrator to renew.",
                "subscription_expired",
            )
        raise LoginRejected(
            "Organization subscription expired. Please contact administrator to renew.",
            "subscription_expired",
        )
    if reason == SubscriptionStatus.CANCELLED.value:
        raise LoginRejected(SUBSCRIPTION_CANCELLED, "subscription_cancelled")


async def authenticate(session: AsyncSession, email: str, password: str, *, bcrypt_rounds: int) -> User:
    """Run the login gate and stamp ``last_login``; the caller issues the token."""
    user = await find_user_by_email(session, email)
    if user is None:
        await verify_password(dummy_password_hash(bcrypt_rounds), password)
        raise LoginRejected(INVALID_CREDENTIALS)

    if not await verify_password(user.password, password):
        raise LoginRejected(INVALID_CREDENTIALS)

    if user.status != UserStatus.ACTIVE.value:
        raise LoginRejected(ACCOUNT_INACTIVE, "account_inactive")

    if parse_role(user.role) is None:
        logger.warning("User %s has unknown role %r; login refused", user.email, user.role)
        raise LoginRejected(UNKNOWN_ROLE, "unknown_role")

    if not user.is_super_admin:
        await check_tenant_admits_login(session, user.tenant_id)

    user.last_login = utc_now()
    await session.commit()
    logger.info("User %s logged in", user.email)
    return user


async def domain_taken(session: AsyncSession, domain: str, *, exclude_id: Optional[str] = None) -> bool:
    query = select(Tenant.id).where(Tenant.domain == domain, Tenant.is_deleted.is_(False))
    if exclude_id:
        query = query.where(Tenant.id != exclude_id)
    result = await session.execute(query)
    return result.first() is not None


async def email_taken(session: AsyncSession, email: str) -> bool:
    result = await session.execute(select(User.id).where(User.email == normalize_email(email)))
    return result.first() is not None


async def register(
    session: AsyncSession,
    provisioner: SchemaProvisioner,
    data: UserRegister,
    *,
    bcrypt_rounds: int,
    default_plan: str,
    default_price: float,
    currency: str,
) -> Registration:
    """Create a pending tenant, its schema and its first tenant_admin.

    Tenant and subscription rows are only flushed until the schema exists, so a
    provisioning failure rolls everything back in one step.
    """
    email = normalize_email(data.email)
    if await email_taken(session, email):
        raise RegistrationConflict("User already exists")

    company = (data.company_name or "").strip() or f"{data.first_name} {data.last_name}".strip() or email
    domain = slugify_domain(data.domain or company)
    if not domain:
        raise RegistrationConflict("Organization domain is required")
    if await domain_taken(session, domain):
        raise RegistrationConflict("Organization domain already exists")

    now = utc_now()
    tenant = Tenant(name=company, domain=domain, status=TenantStatus.PENDING.value, config={})
    session.add(tenant)
    await session.flush()

    subscription = Subscription(
        tenant_id=tenant.id,
        plan_type=default_plan,
        status=SubscriptionStatus.PENDING.value,
        start_date=now,
        end_date=None,
        price=default_price,
        currency=currency,
    )
    session.add(subscription)
    await session.flush()

    try:
        await provisioner.provision(tenant.id)
    except ProvisioningError:
        await session.rollback()
        logger.error("Registration for %s rolled back: schema provisioning failed", email)
        raise

    user = User(
        tenant_id=tenant.id,
        email=email,
        password=await hash_password(data.password, bcrypt_rounds),
        first_name=data.first_name,
        last_name=data.last_name,
        role=Role.TENANT_ADMIN.value,
        status=UserStatus.ACTIVE.value,
        is_super_admin=False,
    )
    session.add(user)

    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        await provisioner.teardown(tenant.id)
        raise

    logger.info("Registered tenant %s (%s) pending activation", tenant.id, domain)
    return Registration(tenant=tenant, subscription=subscription, user=user)

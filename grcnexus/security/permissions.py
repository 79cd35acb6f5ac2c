"""Static role and permission catalog.

Roles and permissions are closed enumerations whose values are the on-wire
identifiers. ``ROLE_PERMISSIONS`` is total over ``Role`` and read-only; there
is no per-tenant override and no dynamic grant.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    PLATFORM_OWNER = "platform_owner"
    TENANT_ADMIN = "tenant_admin"
    COMPLIANCE_OFFICER = "compliance_officer"
    COMPLIANCE_ANALYST = "compliance_analyst"
    PRIVACY_OFFICER = "privacy_officer"
    DATA_PROTECTION_OFFICER = "data_protection_officer"
    RISK_MANAGER = "risk_manager"
    RISK_ANALYST = "risk_analyst"
    AUDITOR = "auditor"
    AUDIT_ANALYST = "audit_analyst"
    SECURITY_OFFICER = "security_officer"
    SYSTEM_ADMINISTRATOR = "system_administrator"
    REGULAR_USER = "regular_user"


class Permission(str, Enum):
    TENANT_VIEW = "tenant.view"
    TENANT_CREATE = "tenant.create"
    TENANT_UPDATE = "tenant.update"
    TENANT_DELETE = "tenant.delete"

    USER_VIEW = "user.view"
    USER_CREATE = "user.create"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"
    USER_ASSIGN_ROLE = "user.assign_role"

    REGOPS_VIEW = "regops.view"
    REGOPS_CREATE = "regops.create"
    REGOPS_UPDATE = "regops.update"
    REGOPS_DELETE = "regops.delete"
    REGOPS_RESTORE = "regops.restore"
    REGOPS_PERMANENT_DELETE = "regops.permanent_delete"

    PRIVACYOPS_VIEW = "privacyops.view"
    PRIVACYOPS_CREATE = "privacyops.create"
    PRIVACYOPS_UPDATE = "privacyops.update"
    PRIVACYOPS_DELETE = "privacyops.delete"

    RISKOPS_VIEW = "riskops.view"
    RISKOPS_CREATE = "riskops.create"
    RISKOPS_UPDATE = "riskops.update"
    RISKOPS_DELETE = "riskops.delete"

    AUDITOPS_VIEW = "auditops.view"
    AUDITOPS_CREATE = "auditops.create"
    AUDITOPS_UPDATE = "auditops.update"
    AUDITOPS_DELETE = "auditops.delete"

    AI_VIEW = "ai.view"
    AI_UPDATE = "ai.update"
    AI_CHAT = "ai.chat"
    AI_GENERATE = "ai.generate"
    AI_ANALYZE = "ai.analyze"
    AI_AUTOFILL = "ai.autofill"

    DOCUMENT_VIEW = "document.view"
    DOCUMENT_CREATE = "document.create"
    DOCUMENT_UPDATE = "document.update"
    DOCUMENT_DELETE = "document.delete"
    DOCUMENT_ANALYZE = "document.analyze"
    DOCUMENT_AUTOFILL = "document.autofill"

    DASHBOARD_VIEW = "dashboard.view"
    DASHBOARD_CUSTOMIZE = "dashboard.customize"

    @property
    def area(self) -> str:
        return self.value.split(".", 1)[0]

    @classmethod
    def for_area(cls, area: str, verb: str) -> Permission:
        """Look up ``<area>.<verb>``; raises ``ValueError`` when it is not in the catalog."""
        return cls(f"{area}.{verb}")


P = Permission

_AI_FULL = (P.AI_VIEW, P.AI_UPDATE, P.AI_CHAT, P.AI_GENERATE, P.AI_ANALYZE, P.AI_AUTOFILL)
_DOCUMENT_CRUD = (P.DOCUMENT_VIEW, P.DOCUMENT_CREATE, P.DOCUMENT_UPDATE, P.DOCUMENT_DELETE)
_REGOPS_CRUD = (P.REGOPS_VIEW, P.REGOPS_CREATE, P.REGOPS_UPDATE, P.REGOPS_DELETE)
_PRIVACYOPS_CRUD = (P.PRIVACYOPS_VIEW, P.PRIVACYOPS_CREATE, P.PRIVACYOPS_UPDATE, P.PRIVACYOPS_DELETE)
_RISKOPS_CRUD = (P.RISKOPS_VIEW, P.RISKOPS_CREATE, P.RISKOPS_UPDATE, P.RISKOPS_DELETE)
_AUDITOPS_CRUD = (P.AUDITOPS_VIEW, P.AUDITOPS_CREATE, P.AUDITOPS_UPDATE, P.AUDITOPS_DELETE)
_ALL_VIEWS = (P.REGOPS_VIEW, P.PRIVACYOPS_VIEW, P.RISKOPS_VIEW, P.AUDITOPS_VIEW)

# document.analyze and document.autofill are catalogued but granted to no role.
_ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.SUPER_ADMIN: frozenset({
        P.TENANT_VIEW, P.TENANT_CREATE, P.TENANT_UPDATE, P.TENANT_DELETE,
        P.USER_VIEW, P.USER_CREATE, P.USER_UPDATE, P.USER_DELETE, P.USER_ASSIGN_ROLE,
        *_REGOPS_CRUD, P.REGOPS_RESTORE, P.REGOPS_PERMANENT_DELETE,
        *_PRIVACYOPS_CRUD, *_RISKOPS_CRUD, *_AUDITOPS_CRUD,
        *_AI_FULL, *_DOCUMENT_CRUD,
        P.DASHBOARD_VIEW, P.DASHBOARD_CUSTOMIZE,
    }),
    Role.PLATFORM_OWNER: frozenset({
        P.TENANT_VIEW, P.TENANT_CREATE, P.TENANT_UPDATE,
        P.USER_VIEW, P.USER_CREATE, P.USER_UPDATE, P.USER_DELETE,
        *_REGOPS_CRUD, *_PRIVACYOPS_CRUD, *_RISKOPS_CRUD, *_AUDITOPS_CRUD,
        *_AI_FULL, *_DOCUMENT_CRUD,
        P.DASHBOARD_VIEW, P.DASHBOARD_CUSTOMIZE,
    }),
    Role.TENANT_ADMIN: frozenset({
        P.USER_VIEW, P.USER_CREATE, P.USER_UPDATE, P.USER_DELETE, P.USER_ASSIGN_ROLE,
        *_REGOPS_CRUD, P.REGOPS_RESTORE,
        *_PRIVACYOPS_CRUD, *_RISKOPS_CRUD, *_AUDITOPS_CRUD,
        *_AI_FULL, *_DOCUMENT_CRUD,
        P.DASHBOARD_VIEW, P.DASHBOARD_CUSTOMIZE,
    }),
    Role.COMPLIANCE_OFFICER: frozenset({
        *_REGOPS_CRUD, *_PRIVACYOPS_CRUD, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW,
    }),
    Role.COMPLIANCE_ANALYST: frozenset({
        *_ALL_VIEWS, P.AI_VIEW, P.AI_CHAT, P.AI_ANALYZE, P.DOCUMENT_VIEW, P.DASHBOARD_VIEW,
    }),
    Role.PRIVACY_OFFICER: frozenset({
        *_PRIVACYOPS_CRUD, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW,
    }),
    Role.DATA_PROTECTION_OFFICER: frozenset({
        *_PRIVACYOPS_CRUD, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW,
    }),
    Role.RISK_MANAGER: frozenset({
        *_RISKOPS_CRUD, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW, P.DASHBOARD_CUSTOMIZE,
    }),
    Role.RISK_ANALYST: frozenset({
        P.RISKOPS_VIEW, P.AI_VIEW, P.AI_CHAT, P.AI_ANALYZE, P.DOCUMENT_VIEW, P.DASHBOARD_VIEW,
    }),
    Role.AUDITOR: frozenset({
        *_AUDITOPS_CRUD, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW,
    }),
    Role.AUDIT_ANALYST: frozenset({
        P.AUDITOPS_VIEW,
        P.AI_VIEW, P.AI_CHAT, P.AI_GENERATE, P.AI_ANALYZE, P.AI_AUTOFILL,
        *_DOCUMENT_CRUD, P.DASHBOARD_VIEW,
    }),
    Role.SECURITY_OFFICER: frozenset({
        *_RISKOPS_CRUD, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW,
    }),
    Role.SYSTEM_ADMINISTRATOR: frozenset({
        *_ALL_VIEWS, *_AI_FULL, *_DOCUMENT_CRUD, P.DASHBOARD_VIEW, P.DASHBOARD_CUSTOMIZE,
    }),
    Role.REGULAR_USER: frozenset({
        *_ALL_VIEWS, P.AI_VIEW, P.AI_CHAT, P.DOCUMENT_VIEW, P.DASHBOARD_VIEW,
    }),
}

_missing_roles = set(Role) - set(_ROLE_PERMISSIONS)
if _missing_roles:
    raise RuntimeError(f"Role catalog is missing permission sets for: {sorted(r.value for r in _missing_roles)}")

ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType(_ROLE_PERMISSIONS)

ROLE_DESCRIPTIONS: Mapping[Role, str] = MappingProxyType({
    Role.SUPER_ADMIN: "Full system access across all tenants and domains",
    Role.PLATFORM_OWNER: "Manage platform-level configuration, tenants, and licensing",
    Role.TENANT_ADMIN: "Full administrative access within tenant",
    Role.COMPLIANCE_OFFICER: "Manage compliance workflows and assessments",
    Role.COMPLIANCE_ANALYST: "View and analyze compliance data",
    Role.PRIVACY_OFFICER: "Manage privacy governance and DSR workflows",
    Role.DATA_PROTECTION_OFFICER: "Oversight of privacy compliance and regulatory reporting",
    Role.RISK_MANAGER: "Manage risk register and mitigation strategies",
    Role.RISK_ANALYST: "View and analyze risk data",
    Role.AUDITOR: "Conduct audits and manage audit plans",
    Role.AUDIT_ANALYST: "Execute audits and collect evidence",
    Role.SECURITY_OFFICER: "Manage security operations and vulnerabilities",
    Role.SYSTEM_ADMINISTRATOR: "Technical operations and system maintenance",
    Role.REGULAR_USER: "Standard user access to assigned domains",
})

PERMISSION_DESCRIPTIONS: Mapping[Permission, str] = MappingProxyType({
    P.TENANT_VIEW: "View tenant information",
    P.TENANT_CREATE: "Create new tenant",
    P.TENANT_UPDATE: "Update tenant information",
    P.TENANT_DELETE: "Delete tenant (soft delete)",
    P.USER_VIEW: "View user information",
    P.USER_CREATE: "Create new user",
    P.USER_UPDATE: "Update user information",
    P.USER_DELETE: "Delete user (soft delete)",
    P.USER_ASSIGN_ROLE: "Assign roles to users",
    P.REGOPS_VIEW: "View RegOps data",
    P.REGOPS_CREATE: "Create RegOps entities",
    P.REGOPS_UPDATE: "Update RegOps entities",
    P.REGOPS_DELETE: "Delete RegOps entities",
    P.REGOPS_RESTORE: "Restore deleted RegOps entities",
    P.REGOPS_PERMANENT_DELETE: "Permanently delete RegOps entities",
    P.PRIVACYOPS_VIEW: "View PrivacyOps data",
    P.PRIVACYOPS_CREATE: "Create PrivacyOps entities",
    P.PRIVACYOPS_UPDATE: "Update PrivacyOps entities",
    P.PRIVACYOPS_DELETE: "Delete PrivacyOps entities",
    P.RISKOPS_VIEW: "View RiskOps data",
    P.RISKOPS_CREATE: "Create RiskOps entities",
    P.RISKOPS_UPDATE: "Update RiskOps entities",
    P.RISKOPS_DELETE: "Delete RiskOps entities",
    P.AUDITOPS_VIEW: "View AuditOps data",
    P.AUDITOPS_CREATE: "Create AuditOps entities",
    P.AUDITOPS_UPDATE: "Update AuditOps entities",
    P.AUDITOPS_DELETE: "Delete AuditOps entities",
    P.AI_VIEW: "View AI settings",
    P.AI_UPDATE: "Update AI settings",
    P.AI_CHAT: "Use AI chat assistant",
    P.AI_GENERATE: "Generate documents with AI",
    P.AI_ANALYZE: "Analyze documents with AI",
    P.AI_AUTOFILL: "Auto-fill forms with AI",
    P.DOCUMENT_VIEW: "View documents",
    P.DOCUMENT_CREATE: "Create documents",
    P.DOCUMENT_UPDATE: "Update documents",
    P.DOCUMENT_DELETE: "Delete documents",
    P.DOCUMENT_ANALYZE: "Analyze documents",
    P.DOCUMENT_AUTOFILL: "Auto-fill documents",
    P.DASHBOARD_VIEW: "View dashboard",
    P.DASHBOARD_CUSTOMIZE: "Customize dashboard widgets",
})

_PERMISSION_CATEGORIES = {"user": "system", "ai": "system", "document": "system", "dashboard": "system"}

# Roles admitted to each operational domain in addition to the admin floor.
ADMIN_FLOOR: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.PLATFORM_OWNER, Role.TENANT_ADMIN})

DOMAIN_ROLES: Mapping[str, frozenset[Role]] = MappingProxyType({
    "regops": ADMIN_FLOOR | {Role.COMPLIANCE_OFFICER, Role.COMPLIANCE_ANALYST},
    "privacyops": ADMIN_FLOOR | {Role.PRIVACY_OFFICER, Role.DATA_PROTECTION_OFFICER},
    "riskops": ADMIN_FLOOR | {Role.RISK_MANAGER, Role.RISK_ANALYST, Role.SECURITY_OFFICER},
    "auditops": ADMIN_FLOOR | {Role.AUDITOR, Role.AUDIT_ANALYST},
})


def parse_role(value: object) -> Role | None:
    """Return the ``Role`` for ``value`` or ``None`` when it is not in the catalog."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value))
    except ValueError:
        return None


def permissions_for(role: object) -> frozenset[Permission]:
    """Permission set of ``role``; unknown roles get the empty set."""
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def permits(role: object, permission: Permission | str) -> bool:
    try:
        wanted = Permission(permission)
    except ValueError:
        return False
    return wanted in permissions_for(role)


def domain_roles(domain: str) -> frozenset[Role]:
    """Roles allowed into ``domain``; unknown domains admit only the admin floor."""
    return DOMAIN_ROLES.get(domain, ADMIN_FLOOR)


def permission_category(permission: Permission) -> str:
    return _PERMISSION_CATEGORIES.get(permission.area, permission.area)

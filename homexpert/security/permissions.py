"""
Permission catalog and resolver.

Permissions are ``module:action`` strings. The static role table below is only
used to seed the database; at request time a user's permissions come from the
role stored in the database, flattened into the access token and the
permission cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
UNKNOWN_ROLE_LEVEL = 999


class PermissionCode(str, Enum):
    """Every grantable capability, grouped by module."""

    # Dashboard & Analytics
    DASHBOARD_VIEW = "dashboard:view"
    DASHBOARD_ANALYTICS = "dashboard:analytics"
    DASHBOARD_EXPORT_REPORTS = "dashboard:export_reports"

    # Employee Management (admin panel users)
    EMPLOYEES_VIEW = "employees:view"
    EMPLOYEES_CREATE = "employees:create"
    EMPLOYEES_EDIT = "employees:edit"
    EMPLOYEES_DELETE = "employees:delete"
    EMPLOYEES_SEARCH = "employees:search"
    EMPLOYEES_EXPORT = "employees:export"
    EMPLOYEES_IMPORT = "employees:import"

    # Vendor Management (partners)
    VENDORS_VIEW = "vendors:view"
    VENDORS_CREATE = "vendors:create"
    VENDORS_EDIT = "vendors:edit"
    VENDORS_DELETE = "vendors:delete"
    VENDORS_ACTIVATE = "vendors:activate"
    VENDORS_DEACTIVATE = "vendors:deactivate"
    VENDORS_SEARCH = "vendors:search"
    VENDORS_MANAGE_LEADS = "vendors:manage_leads"
    VENDORS_VIEW_PROFILE = "vendors:view_profile"

    # Booking Management
    BOOKINGS_VIEW = "bookings:view"
    BOOKINGS_CREATE = "bookings:create"
    BOOKINGS_EDIT = "bookings:edit"
    BOOKINGS_DELETE = "bookings:delete"
    BOOKINGS_ASSIGN = "bookings:assign"
    BOOKINGS_EXPORT = "bookings:export"
    BOOKINGS_IMPORT = "bookings:import"
    BOOKINGS_MANAGE_STATUS = "bookings:manage_status"

    # Lead Management
    LEADS_VIEW = "leads:view"
    LEADS_CREATE = "leads:create"
    LEADS_EDIT = "leads:edit"
    LEADS_DELETE = "leads:delete"
    LEADS_ASSIGN = "leads:assign"
    LEADS_ADD_TO_VENDOR = "leads:add_to_vendor"
    LEADS_REMOVE_FROM_VENDOR = "leads:remove_from_vendor"
    LEADS_VIEW_HISTORY = "leads:view_history"

    # Subscription Management
    SUBSCRIPTIONS_VIEW = "subscriptions:view"
    SUBSCRIPTIONS_CREATE = "subscriptions:create"
    SUBSCRIPTIONS_EDIT = "subscriptions:edit"
    SUBSCRIPTIONS_DELETE = "subscriptions:delete"
    SUBSCRIPTIONS_ACTIVATE = "subscriptions:activate"
    SUBSCRIPTIONS_DEACTIVATE = "subscriptions:deactivate"
    SUBSCRIPTIONS_MANAGE_VENDOR_SUBSCRIPTIONS = "subscriptions:manage_vendor_subscriptions"
    SUBSCRIPTIONS_VIEW_ANALYTICS = "subscriptions:view_analytics"

    # Payment Management
    PAYMENTS_VIEW = "payments:view"
    PAYMENTS_PROCESS = "payments:process"
    PAYMENTS_VIEW_TRANSACTIONS = "payments:view_transactions"
    PAYMENTS_MANAGE_REFUNDS = "payments:manage_refunds"
    PAYMENTS_VIEW_SETTLEMENTS = "payments:view_settlements"
    PAYMENTS_EXPORT_REPORTS = "payments:export_reports"
    PAYMENTS_RECONCILE = "payments:reconcile"

    # Notifications & Support
    NOTIFICATIONS_VIEW = "notifications:view"
    NOTIFICATIONS_CREATE = "notifications:create"
    NOTIFICATIONS_EDIT = "notifications:edit"
    NOTIFICATIONS_DELETE = "notifications:delete"
    NOTIFICATIONS_SEND = "notifications:send"
    NOTIFICATIONS_MANAGE_SUPPORT = "notifications:manage_support"

    # System Administration
    SYSTEM_ROLE_MANAGEMENT = "system:role_management"
    SYSTEM_PERMISSION_MANAGEMENT = "system:permission_management"
    SYSTEM_USER_MANAGEMENT = "system:user_management"
    SYSTEM_SETTINGS = "system:settings"
    SYSTEM_AUDIT_LOGS = "system:audit_logs"
    SYSTEM_BACKUP_RESTORE = "system:backup_restore"

    @property
    def module(self) -> str:
        """Extract module from permission string"""
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        """Extract action from permission string"""
        return self.value.split(":", 1)[1]

    @classmethod
    def from_string(cls, permission_str: str) -> PermissionCode:
        """Create PermissionCode from string with validation"""
        try:
            return cls(permission_str)
        except ValueError:
            for perm in cls:
                if perm.value.lower() == permission_str.lower():
                    return perm
            raise ValueError(f"Invalid permission: {permission_str}")


# Human readable resource label per module, stored on Permission rows
MODULE_RESOURCES: Dict[str, str] = {
    "dashboard": "Dashboard",
    "employees": "Employees",
    "vendors": "Vendors",
    "bookings": "Bookings",
    "leads": "Leads",
    "subscriptions": "Subscriptions",
    "payments": "Payments",
    "notifications": "Notifications",
    "system": "System",
}

ALL_PERMISSIONS: List[str] = [perm.value for perm in PermissionCode]

PermissionLike = Union[PermissionCode, str]


def flatten_permission(module: str, action: str) -> str:
    return f"{module}:{action}"


def _as_string(permission: PermissionLike) -> str:
    if isinstance(permission, PermissionCode):
        return permission.value
    return permission


@dataclass(frozen=True)
class RoleDefinition:
    """Seed definition for a system role."""

    id: str
    name: str
    description: str
    level: int
    permissions: FrozenSet[str] = field(default_factory=frozenset)


def _codes(*perms: PermissionCode) -> FrozenSet[str]:
    return frozenset(p.value for p in perms)


P = PermissionCode

ROLES: Dict[str, RoleDefinition] = {
    "admin": RoleDefinition(
        id="admin",
        name="Admin",
        description="Complete system access with all permissions",
        level=1,
        permissions=frozenset(ALL_PERMISSIONS),
    ),
    "helpline": RoleDefinition(
        id="helpline",
        name="Helpline",
        description="Create bookings and provide support to vendors and partners",
        level=2,
        permissions=_codes(
            P.DASHBOARD_VIEW,
            P.BOOKINGS_VIEW, P.BOOKINGS_CREATE, P.BOOKINGS_EDIT,
            P.BOOKINGS_EXPORT, P.BOOKINGS_IMPORT,
            P.NOTIFICATIONS_VIEW, P.NOTIFICATIONS_MANAGE_SUPPORT,
            P.LEADS_VIEW, P.LEADS_CREATE, P.LEADS_EDIT, P.LEADS_VIEW_HISTORY,
            P.VENDORS_VIEW, P.VENDORS_VIEW_PROFILE,
        ),
    ),
    "telecaller": RoleDefinition(
        id="telecaller",
        name="Telecaller",
        description="Manage vendors, subscriptions, and lead assignments",
        level=3,
        permissions=_codes(
            P.DASHBOARD_VIEW,
            P.VENDORS_VIEW, P.VENDORS_CREATE, P.VENDORS_EDIT, P.VENDORS_ACTIVATE,
            P.VENDORS_DEACTIVATE, P.VENDORS_SEARCH, P.VENDORS_MANAGE_LEADS,
            P.VENDORS_VIEW_PROFILE,
            P.BOOKINGS_VIEW, P.BOOKINGS_ASSIGN, P.BOOKINGS_MANAGE_STATUS,
            P.SUBSCRIPTIONS_VIEW, P.SUBSCRIPTIONS_MANAGE_VENDOR_SUBSCRIPTIONS,
            P.SUBSCRIPTIONS_VIEW_ANALYTICS,
            P.LEADS_VIEW, P.LEADS_CREATE, P.LEADS_EDIT, P.LEADS_ASSIGN,
            P.LEADS_ADD_TO_VENDOR, P.LEADS_REMOVE_FROM_VENDOR, P.LEADS_VIEW_HISTORY,
            P.NOTIFICATIONS_VIEW, P.NOTIFICATIONS_MANAGE_SUPPORT,
            P.PAYMENTS_VIEW, P.PAYMENTS_PROCESS,
        ),
    ),
    "vendor": RoleDefinition(
        id="vendor",
        name="Vendor",
        description="Partner app user with limited access to own profile and leads",
        level=4,
        permissions=_codes(
            P.VENDORS_VIEW_PROFILE,
            P.LEADS_VIEW,
            P.BOOKINGS_VIEW,
            P.SUBSCRIPTIONS_VIEW,
        ),
    ),
}

ROUTE_PERMISSIONS: Dict[str, Sequence[str]] = {
    "/admin": [P.DASHBOARD_VIEW.value],
    "/admin/dashboard": [P.DASHBOARD_VIEW.value],
    "/admin/employees": [P.EMPLOYEES_VIEW.value],
    "/admin/vendors": [P.VENDORS_VIEW.value],
    "/admin/bookings": [P.BOOKINGS_VIEW.value],
    "/admin/leads": [P.LEADS_VIEW.value],
    "/admin/subscriptions": [P.SUBSCRIPTIONS_VIEW.value],
    "/admin/payments": [P.PAYMENTS_VIEW.value],
    "/admin/notifications": [P.NOTIFICATIONS_VIEW.value],
    "/admin/roles": [P.SYSTEM_ROLE_MANAGEMENT.value],
    "/admin/settings": [P.SYSTEM_SETTINGS.value],
    "/profile": [],
}

BULK_OPERATION_PERMISSIONS = (
    P.EMPLOYEES_IMPORT,
    P.VENDORS_CREATE,
    P.BOOKINGS_IMPORT,
    P.LEADS_CREATE,
)

FINANCIAL_PERMISSIONS = (
    P.PAYMENTS_PROCESS,
    P.PAYMENTS_MANAGE_REFUNDS,
    P.PAYMENTS_VIEW_SETTLEMENTS,
    P.PAYMENTS_RECONCILE,
)


def is_admin_role(role: Optional[str]) -> bool:
    return bool(role) and role.lower() == ADMIN_ROLE


class PermissionManager:
    """
    Stateless permission evaluator over a role name and a flattened
    permission list.

    The admin role is allowed everything. Every other role is checked only
    against ``permissions``; an empty list denies everything instead of
    falling back to the static ``ROLES`` table, so permissions removed in the
    database stop working as soon as the caller's list is refreshed.
    """

    def __init__(self, role: Optional[str], permissions: Optional[Iterable[str]] = None):
        self.role = (role or "").lower()
        self.permissions: FrozenSet[str] = frozenset(permissions or ())

    @property
    def is_admin(self) -> bool:
        return is_admin_role(self.role)

    def has_permission(self, permission: PermissionLike) -> bool:
        if self.is_admin:
            return True

        if not self.permissions:
            return False

        return _as_string(permission) in self.permissions

    def has_any_permission(self, permissions: Iterable[PermissionLike]) -> bool:
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: Iterable[PermissionLike]) -> bool:
        return all(self.has_permission(p) for p in permissions)

    def get_all_permissions(self) -> List[str]:
        if self.is_admin:
            return list(ALL_PERMISSIONS)
        return sorted(self.permissions)

    def can_access_route(self, route: str) -> bool:
        required = ROUTE_PERMISSIONS.get(route)
        if not required:
            return True
        return self.has_any_permission(required)

    def get_permission_level(self) -> int:
        role = ROLES.get(self.role)
        return role.level if role else UNKNOWN_ROLE_LEVEL

    def can_perform_bulk_operations(self) -> bool:
        return self.has_any_permission(BULK_OPERATION_PERMISSIONS)

    def can_manage_financials(self) -> bool:
        return self.has_any_permission(FINANCIAL_PERMISSIONS)

    def __repr__(self) -> str:
        return f"<PermissionManager role={self.role!r} permissions={len(self.permissions)}>"


def catalog_by_module() -> Dict[str, List[str]]:
    """Catalog grouped by module, in declaration order."""
    grouped: Dict[str, List[str]] = {}
    for perm in PermissionCode:
        grouped.setdefault(perm.module, []).append(perm.value)
    return grouped

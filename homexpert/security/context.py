from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from homexpert.security.permissions import PermissionLike, PermissionManager


@dataclass(frozen=True)
class AuthorizationContext:
    """Who is calling and what they may do, built once per request."""

    user_id: str
    role: str
    user_type: str
    permissions: Tuple[str, ...] = field(default_factory=tuple)
    vendor_id: Optional[str] = None

    @classmethod
    def from_claims(
        cls,
        user_id: str,
        claims: Mapping[str, Any],
        permissions: Optional[Iterable[str]] = None,
        role: Optional[str] = None,
    ) -> AuthorizationContext:
        if permissions is None:
            permissions = claims.get("permissions") or ()
        if role is None:
            role = claims.get("role")
        return cls(
            user_id=str(user_id),
            role=(role or "").lower(),
            user_type=claims.get("user_type") or "employee",
            permissions=tuple(permissions),
            vendor_id=claims.get("vendor_id"),
        )

    @property
    def manager(self) -> PermissionManager:
        return PermissionManager(self.role, self.permissions)

    @property
    def is_admin(self) -> bool:
        return self.manager.is_admin

    @property
    def is_vendor(self) -> bool:
        return self.user_type == "vendor"

    def has_permission(self, permission: PermissionLike) -> bool:
        return self.manager.has_permission(permission)

    def has_any_permission(self, permissions: Iterable[PermissionLike]) -> bool:
        return self.manager.has_any_permission(permissions)

    def has_all_permissions(self, permissions: Iterable[PermissionLike]) -> bool:
        return self.manager.has_all_permissions(permissions)

    def can_access_route(self, route: str) -> bool:
        return self.manager.can_access_route(route)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "role": self.role,
            "userType": self.user_type,
            "vendorId": self.vendor_id,
            "permissions": self.manager.get_all_permissions(),
        }

import logging

from homexpert.errors import NotFoundError, UnauthorizedError
from homexpert.extensions import db
from homexpert.models import Permission, Role, User
from homexpert.security.permissions import MODULE_RESOURCES, ROLES, PermissionCode, catalog_by_module
from homexpert.security.tokens import issue_access_token

logger = logging.getLogger(__name__)


class PermissionService:
    """Seeding and resolution of database-backed permissions."""

    @staticmethod
    def seed_permissions():
        """Insert any catalog permission that is missing. Returns the number created."""
        existing = {p.key: p for p in Permission.query.all()}
        created = 0
        for code in PermissionCode:
            if code.value in existing:
                continue
            db.session.add(Permission(
                module=code.module,
                action=code.action,
                resource=MODULE_RESOURCES.get(code.module, code.module.title()),
                description=f"{code.action.replace('_', ' ').capitalize()} {code.module}",
            ))
            created += 1
        db.session.flush()
        return created

    @staticmethod
    def seed_roles():
        """Create the system roles and sync their permission sets."""
        by_key = {p.key: p for p in Permission.query.all()}
        created = 0
        for key, definition in ROLES.items():
            role = Role.find_by_name(key)
            if role is None:
                role = Role(name=key, description=definition.description, is_system_role=True)
                db.session.add(role)
                created += 1
            role.is_system_role = True
            role.permissions = [by_key[code] for code in sorted(definition.permissions) if code in by_key]
        db.session.flush()
        return created

    @classmethod
    def seed_all(cls):
        permissions = cls.seed_permissions()
        roles = cls.seed_roles()
        db.session.commit()
        logger.info("Seeded %d permissions and %d roles", permissions, roles)
        return {"permissionsCreated": permissions, "rolesCreated": roles}

    @staticmethod
    def grouped_permissions():
        grouped = {}
        for permission in Permission.query.order_by(Permission.module, Permission.action).all():
            grouped.setdefault(permission.module, []).append(permission.to_dict())
        return grouped

    @staticmethod
    def catalog():
        return catalog_by_module()

    @staticmethod
    def resolve(user_id):
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")
        return user, user.permission_strings()

    @classmethod
    def refresh(cls, user_id, cache):
        """
        Re-read the caller's permissions from the database, replace their
        cache entry and return ``(permissions, access_token)``.
        """
        user, permissions = cls.resolve(user_id)
        cache.clear(user.id)
        cache.set(user.id, permissions, role=user.role_name)
        vendor_id = user.vendor.id if user.vendor else None
        token = issue_access_token(user, permissions=permissions, vendor_id=vendor_id)
        logger.info("Permissions refreshed for user %s (%d granted)", user.id, len(permissions))
        return permissions, token

    @staticmethod
    def prime_cache_for_role(role, cache):
        """Replace cached grants for every user holding ``role``."""
        permissions = role.permission_keys()
        count = 0
        for user in role.users:
            cache.clear(user.id)
            cache.set(user.id, permissions, role=user.role_name)
            count += 1
        return count

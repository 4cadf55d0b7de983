import logging

from homexpert.errors import ConflictError, NotFoundError, ValidationError
from homexpert.extensions import db
from homexpert.models import Permission, Role, User
from homexpert.models.base import is_valid_id
from homexpert.services.permission_service import PermissionService

logger = logging.getLogger(__name__)


def _permissions_from_ids(permission_ids):
    if permission_ids is None:
        return []
    if not isinstance(permission_ids, list):
        raise ValidationError("permissions must be a list of permission ids")
    unique_ids = list(dict.fromkeys(permission_ids))
    permissions = Permission.query.filter(Permission.id.in_(unique_ids)).all() if unique_ids else []
    if len(permissions) != len(unique_ids):
        found = {p.id for p in permissions}
        unknown = [pid for pid in unique_ids if pid not in found]
        raise ValidationError(f"Invalid permission ids: {', '.join(map(str, unknown))}")
    return permissions


class RoleService:

    @staticmethod
    def get(role_id):
        role = db.session.get(Role, role_id) if is_valid_id(role_id) else None
        if role is None:
            raise NotFoundError("Role not found")
        return role

    @staticmethod
    def search(search=None):
        query = Role.query
        if search:
            term = f"%{search}%"
            query = query.filter(db.or_(Role.name.ilike(term), Role.description.ilike(term)))
        return query.order_by(Role.is_system_role.desc(), Role.name.asc())

    @staticmethod
    def user_count(role):
        return User.query.filter_by(role_id=role.id).count()

    @staticmethod
    def create(data, created_by=None):
        name = (data.get("name") or "").strip().lower()
        if not name:
            raise ValidationError("Role name is required")
        if Role.find_by_name(name):
            raise ConflictError("Role with this name already exists")

        role = Role(
            name=name,
            description=data.get("description"),
            is_system_role=False,
            permissions=_permissions_from_ids(data.get("permissions")),
        )
        db.session.add(role)
        db.session.commit()
        logger.info("Role %s created by %s with %d permissions", role.name, created_by, role.permission_count)
        return role

    @classmethod
    def update(cls, role_id, data, cache, updated_by=None):
        role = cls.get(role_id)
        if "name" in data:
            name = (data["name"] or "").strip().lower()
            if role.is_system_role and name != role.name:
                raise ValidationError("System roles cannot be renamed")
            if not name:
                raise ValidationError("Role name is required")
            other = Role.find_by_name(name)
            if other and other.id != role.id:
                raise ConflictError("Role with this name already exists")
            role.name = name
        if "description" in data:
            role.description = data["description"]
        if "permissions" in data:
            role.permissions = _permissions_from_ids(data["permissions"])

        db.session.commit()
        primed = PermissionService.prime_cache_for_role(role, cache)
        logger.info(
            "Role %s updated by %s (%d permissions, %d cached users refreshed)",
            role.name, updated_by, role.permission_count, primed,
        )
        return role

    @classmethod
    def delete(cls, role_id, deleted_by=None):
        role = cls.get(role_id)
        if role.is_system_role:
            raise ValidationError("System roles cannot be deleted")
        assigned = cls.user_count(role)
        if assigned:
            raise ValidationError(f"Cannot delete role. It is assigned to {assigned} user(s)")
        db.session.delete(role)
        db.session.commit()
        logger.info("Role %s deleted by %s", role.name, deleted_by)

import logging

from flask import current_app

from homexpert.errors import ConflictError, NotFoundError, ValidationError
from homexpert.extensions import db
from homexpert.models import Role, User
from homexpert.models.base import is_valid_id
from homexpert.utils.validation import normalize_email, normalize_phone, parse_bool, require_fields

logger = logging.getLogger(__name__)


def _administrative_role(value):
    role = Role.find_by_name(value) if value else None
    allowed = current_app.config["ADMINISTRATIVE_ROLES"]
    if role is None or role.name.lower() not in allowed:
        raise ValidationError(f"Role must be one of: {', '.join(allowed)}")
    return role


class EmployeeService:
    """Admin panel users: everyone with ``user_type == "employee"``."""

    @staticmethod
    def get(user_id):
        user = db.session.get(User, user_id) if is_valid_id(user_id) else None
        if user is None or user.user_type != "employee":
            raise NotFoundError("Employee not found")
        return user

    @staticmethod
    def search(search=None, role=None, is_active=None):
        query = User.query.filter(User.user_type == "employee")
        if search:
            term = f"%{search}%"
            query = query.filter(db.or_(User.name.ilike(term), User.email.ilike(term), User.phone.ilike(term)))
        if role:
            query = query.join(Role).filter(db.func.lower(Role.name) == role.lower())
        if is_active is not None:
            query = query.filter(User.is_active == parse_bool(is_active))
        return query.order_by(User.created_at.desc())

    @staticmethod
    def create(data, created_by=None):
        require_fields(data, ("name", "email", "password", "role"))
        email = normalize_email(data["email"])
        if User.find_by_email(email):
            raise ConflictError("A user with this email already exists")
        if len(data["password"]) < 8:
            raise ValidationError("Password must be at least 8 characters")

        user = User(
            name=data["name"].strip(),
            email=email,
            phone=normalize_phone(data["phone"]) if data.get("phone") else None,
            user_type="employee",
            role=_administrative_role(data["role"]),
        )
        user.set_password(data["password"])
        db.session.add(user)
        db.session.commit()
        logger.info("Employee %s (%s) created by %s", user.id, user.role_name, created_by)
        return user

    @classmethod
    def update(cls, user_id, data, cache=None):
        user = cls.get(user_id)
        if "name" in data:
            if not data["name"]:
                raise ValidationError("Name cannot be empty")
            user.name = data["name"].strip()
        if "email" in data:
            email = normalize_email(data["email"])
            other = User.find_by_email(email)
            if other and other.id != user.id:
                raise ConflictError("A user with this email already exists")
            user.email = email
        if "phone" in data:
            user.phone = normalize_phone(data["phone"]) if data["phone"] else None
        if "password" in data and data["password"]:
            user.set_password(data["password"])
        if "isActive" in data:
            user.is_active = parse_bool(data["isActive"])

        role_changed = False
        if "role" in data:
            role = _administrative_role(data["role"])
            role_changed = role.id != user.role_id
            user.role = role

        db.session.commit()
        if cache is not None and (role_changed or not user.is_active):
            cache.clear(user.id)
        if role_changed:
            logger.info("Employee %s moved to role %s", user.id, user.role_name)
        return user

    @classmethod
    def delete(cls, user_id, performed_by=None):
        user = cls.get(user_id)
        if user.id == performed_by:
            raise ValidationError("You cannot delete your own account")
        db.session.delete(user)
        db.session.commit()
        logger.info("Employee %s deleted by %s", user_id, performed_by)

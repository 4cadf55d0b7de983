import logging

from flask import Blueprint, jsonify, request

from homexpert.errors import ConflictError, ValidationError
from homexpert.extensions import db
from homexpert.models import Role, User
from homexpert.security.tokens import issue_access_token
from homexpert.services.permission_service import PermissionService
from homexpert.utils.validation import get_json_body, normalize_email, require_fields

setup_bp = Blueprint("setup", __name__, url_prefix="/api/setup")
logger = logging.getLogger(__name__)


def _admin_exists():
    role = Role.find_by_name("admin")
    if role is None:
        return False, "No admin role found"
    if User.query.filter_by(role_id=role.id).first() is None:
        return False, "No admin user found"
    return True, "Admin exists"


@setup_bp.route("/check", methods=["GET"])
def check():
    exists, reason = _admin_exists()
    return jsonify({"success": True, "needsSetup": not exists, "reason": reason}), 200


@setup_bp.route("/admin", methods=["POST"])
def create_first_admin():
    """Seed permissions and roles, then create the first admin. Only works once."""
    exists, _ = _admin_exists()
    if exists:
        raise ConflictError("Admin user already exists")

    data = get_json_body(request)
    require_fields(data, ("name", "email", "password"))
    if len(data["password"]) < 8:
        raise ValidationError("Password must be at least 8 characters")

    PermissionService.seed_all()
    email = normalize_email(data["email"])
    if User.find_by_email(email):
        raise ConflictError("A user with this email already exists")

    admin = User(
        name=data["name"].strip(),
        email=email,
        phone=data.get("phone"),
        user_type="employee",
        role=Role.find_by_name("admin"),
    )
    admin.set_password(data["password"])
    db.session.add(admin)
    db.session.commit()
    logger.info("Initial admin %s created", admin.email)

    return jsonify({
        "success": True,
        "message": "Admin user created successfully",
        "data": {"user": admin.to_dict(), "accessToken": issue_access_token(admin)},
    }), 201

from flask import Blueprint, current_app, jsonify

from homexpert.extensions import get_permission_cache
from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import authenticated, require_any_permission, require_permission
from homexpert.services.permission_service import PermissionService

permissions_bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")
user_permissions_bp = Blueprint("user_permissions", __name__, url_prefix="/api/user/permissions")


@permissions_bp.route("", methods=["GET"])
@require_any_permission(PermissionCode.SYSTEM_ROLE_MANAGEMENT, PermissionCode.SYSTEM_PERMISSION_MANAGEMENT)
def list_permissions(auth):
    """All stored permissions grouped by module."""
    return jsonify({
        "success": True,
        "data": {
            "permissions": PermissionService.grouped_permissions(),
            "catalog": PermissionService.catalog(),
        },
    }), 200


@permissions_bp.route("/seed", methods=["POST"])
@require_permission(PermissionCode.SYSTEM_PERMISSION_MANAGEMENT)
def seed_permissions(auth):
    result = PermissionService.seed_all()
    get_permission_cache(current_app).clear()
    return jsonify({"success": True, "message": "Permissions seeded successfully", "data": result}), 200


@user_permissions_bp.route("/refresh", methods=["GET"])
@authenticated
def current_permissions(auth):
    return jsonify({"success": True, "data": auth.to_dict()}), 200


@user_permissions_bp.route("/refresh", methods=["POST"])
@authenticated
def refresh_permissions(auth):
    """Re-read permissions from the database and issue a new token carrying them."""
    permissions, token = PermissionService.refresh(auth.user_id, get_permission_cache(current_app))
    return jsonify({
        "success": True,
        "message": "Permissions refreshed successfully",
        "data": {"permissions": permissions, "accessToken": token},
    }), 200

from flask import Blueprint, current_app, jsonify, request

from homexpert.extensions import get_permission_cache
from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.role_service import RoleService
from homexpert.utils.pagination import page_args, paginate_query
from homexpert.utils.validation import get_json_body, parse_bool

roles_bp = Blueprint("roles", __name__, url_prefix="/api/roles")

ROLE_MANAGEMENT = PermissionCode.SYSTEM_ROLE_MANAGEMENT


def _role_payload(role, expand=False):
    data = role.to_dict(expand_permissions=expand)
    data["userCount"] = RoleService.user_count(role)
    return data


@roles_bp.route("", methods=["GET"])
@require_permission(ROLE_MANAGEMENT)
def list_roles(auth):
    page, limit = page_args(request.args)
    expand = parse_bool(request.args.get("includePermissions"))
    roles, pagination = paginate_query(RoleService.search(request.args.get("search")), page, limit)
    return jsonify({
        "success": True,
        "data": {"roles": [_role_payload(r, expand) for r in roles], "pagination": pagination},
    }), 200


@roles_bp.route("", methods=["POST"])
@require_permission(ROLE_MANAGEMENT)
def create_role(auth):
    role = RoleService.create(get_json_body(request), created_by=auth.user_id)
    return jsonify({"success": True, "message": "Role created successfully", "data": _role_payload(role, True)}), 201


@roles_bp.route("/<role_id>", methods=["GET"])
@require_permission(ROLE_MANAGEMENT)
def get_role(role_id, auth):
    return jsonify({"success": True, "data": _role_payload(RoleService.get(role_id), True)}), 200


@roles_bp.route("/<role_id>", methods=["PUT"])
@require_permission(ROLE_MANAGEMENT)
def update_role(role_id, auth):
    role = RoleService.update(
        role_id, get_json_body(request), get_permission_cache(current_app), updated_by=auth.user_id
    )
    return jsonify({"success": True, "message": "Role updated successfully", "data": _role_payload(role, True)}), 200


@roles_bp.route("/<role_id>", methods=["DELETE"])
@require_permission(ROLE_MANAGEMENT)
def delete_role(role_id, auth):
    RoleService.delete(role_id, deleted_by=auth.user_id)
    return jsonify({"success": True, "message": "Role deleted successfully"}), 200

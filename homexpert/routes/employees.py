from flask import Blueprint, current_app, jsonify, request

from homexpert.extensions import get_permission_cache
from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.employee_service import EmployeeService
from homexpert.utils.pagination import page_args, paginate_query
from homexpert.utils.validation import get_json_body

employees_bp = Blueprint("employees", __name__, url_prefix="/api/admin/employees")


@employees_bp.route("", methods=["GET"])
@require_permission(PermissionCode.EMPLOYEES_VIEW)
def list_employees(auth):
    page, limit = page_args(request.args)
    query = EmployeeService.search(
        search=request.args.get("search"),
        role=request.args.get("role"),
        is_active=request.args.get("isActive"),
    )
    employees, pagination = paginate_query(query, page, limit)
    return jsonify({
        "success": True,
        "data": {"employees": [e.to_dict() for e in employees], "pagination": pagination},
    }), 200


@employees_bp.route("", methods=["POST"])
@require_permission(PermissionCode.EMPLOYEES_CREATE)
def create_employee(auth):
    employee = EmployeeService.create(get_json_body(request), created_by=auth.user_id)
    return jsonify({"success": True, "message": "Employee created successfully", "data": employee.to_dict()}), 201


@employees_bp.route("/<user_id>", methods=["GET"])
@require_permission(PermissionCode.EMPLOYEES_VIEW)
def get_employee(user_id, auth):
    return jsonify({"success": True, "data": EmployeeService.get(user_id).to_dict()}), 200


@employees_bp.route("/<user_id>", methods=["PUT"])
@require_permission(PermissionCode.EMPLOYEES_EDIT)
def update_employee(user_id, auth):
    employee = EmployeeService.update(user_id, get_json_body(request), cache=get_permission_cache(current_app))
    return jsonify({"success": True, "message": "Employee updated successfully", "data": employee.to_dict()}), 200


@employees_bp.route("/<user_id>", methods=["DELETE"])
@require_permission(PermissionCode.EMPLOYEES_DELETE)
def delete_employee(user_id, auth):
    EmployeeService.delete(user_id, performed_by=auth.user_id)
    get_permission_cache(current_app).clear(user_id)
    return jsonify({"success": True, "message": "Employee deleted successfully"}), 200

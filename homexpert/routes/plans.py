from flask import Blueprint, jsonify, request

from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.plan_service import PlanService
from homexpert.utils.validation import get_json_body, parse_bool

plans_bp = Blueprint("plans", __name__, url_prefix="/api/admin/subscriptions")


@plans_bp.route("", methods=["GET"])
@require_permission(PermissionCode.SUBSCRIPTIONS_VIEW)
def list_plans(auth):
    plans = PlanService.list_plans(
        active_only=parse_bool(request.args.get("activeOnly")),
        duration=request.args.get("duration"),
        search=request.args.get("search"),
    )
    return jsonify({"success": True, "data": {"plans": [p.to_dict() for p in plans]}}), 200


@plans_bp.route("", methods=["POST"])
@require_permission(PermissionCode.SUBSCRIPTIONS_CREATE)
def create_plan(auth):
    plan = PlanService.create(get_json_body(request), created_by=auth.user_id)
    return jsonify({"success": True, "message": "Subscription plan created successfully", "data": plan.to_dict()}), 201


@plans_bp.route("/<plan_id>", methods=["GET"])
@require_permission(PermissionCode.SUBSCRIPTIONS_VIEW)
def get_plan(plan_id, auth):
    return jsonify({"success": True, "data": PlanService.get(plan_id).to_dict()}), 200


@plans_bp.route("/<plan_id>", methods=["PUT"])
@require_permission(PermissionCode.SUBSCRIPTIONS_EDIT)
def update_plan(plan_id, auth):
    plan = PlanService.update(plan_id, get_json_body(request))
    return jsonify({"success": True, "message": "Subscription plan updated successfully", "data": plan.to_dict()}), 200


@plans_bp.route("/<plan_id>", methods=["DELETE"])
@require_permission(PermissionCode.SUBSCRIPTIONS_DELETE)
def delete_plan(plan_id, auth):
    PlanService.delete(plan_id)
    return jsonify({"success": True, "message": "Subscription plan deleted successfully"}), 200


@plans_bp.route("/<plan_id>/toggle", methods=["PATCH"])
@require_permission(PermissionCode.SUBSCRIPTIONS_EDIT)
def toggle_plan(plan_id, auth):
    plan = PlanService.toggle(plan_id)
    state = "activated" if plan.is_active else "deactivated"
    return jsonify({"success": True, "message": f"Subscription plan {state}", "data": plan.to_dict()}), 200

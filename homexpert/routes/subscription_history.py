from flask import Blueprint, jsonify, request

from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.subscription_service import SubscriptionService
from homexpert.utils.pagination import page_args, paginate_list
from homexpert.utils.validation import get_json_body

subscription_history_bp = Blueprint(
    "subscription_history", __name__, url_prefix="/api/admin/subscriptions/history"
)


@subscription_history_bp.route("", methods=["GET"])
@require_permission(PermissionCode.SUBSCRIPTIONS_VIEW)
def list_history(auth):
    """All vendor purchases with a usage summary. Overdue ones are expired on the way."""
    page, limit = page_args(request.args)
    subscriptions = SubscriptionService.list_history(
        status=request.args.get("status"),
        user_id=request.args.get("userId"),
    )
    items, pagination = paginate_list(subscriptions, page, limit)
    return jsonify({
        "success": True,
        "data": {
            "subscriptions": [s.to_dict() for s in items],
            "summary": SubscriptionService.usage_summary(subscriptions),
            "pagination": pagination,
        },
    }), 200


@subscription_history_bp.route("/adjust-leads", methods=["PATCH"])
@require_permission(PermissionCode.SUBSCRIPTIONS_MANAGE_VENDOR_SUBSCRIPTIONS)
def adjust_leads(auth):
    data = get_json_body(request)
    result = SubscriptionService.adjust_leads(data, performed_by=auth.user_id)
    return jsonify({
        "success": True,
        "message": f"Leads {result['adjustmentType']} successfully",
        "data": result,
    }), 200


@subscription_history_bp.route("/<subscription_id>/cancel", methods=["POST"])
@require_permission(PermissionCode.SUBSCRIPTIONS_DEACTIVATE)
def cancel_subscription(subscription_id, auth):
    data = request.get_json(silent=True) or {}
    subscription = SubscriptionService.cancel(subscription_id, data.get("reason"), performed_by=auth.user_id)
    return jsonify({"success": True, "message": "Subscription cancelled", "data": subscription.to_dict()}), 200

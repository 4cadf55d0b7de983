from flask import Blueprint, jsonify

from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.dashboard_service import DashboardService

dashboard_bp = Blueprint("admin_dashboard", __name__, url_prefix="/api/admin/dashboard")


@dashboard_bp.route("/stats", methods=["GET"])
@require_permission(PermissionCode.DASHBOARD_VIEW)
def stats(auth):
    return jsonify({"success": True, "data": DashboardService.admin_stats()}), 200

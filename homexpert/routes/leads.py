from flask import Blueprint, current_app, jsonify, request

from homexpert.extensions import limiter
from homexpert.security.permissions import PermissionCode
from homexpert.security.require_permission import require_permission
from homexpert.services.lead_service import LeadService
from homexpert.utils.pagination import page_args, paginate_query
from homexpert.utils.validation import get_json_body

leads_bp = Blueprint("leads", __name__, url_prefix="/api/leads")
admin_leads_bp = Blueprint("admin_leads", __name__, url_prefix="/api/admin/leads")


def _intake_limit():
    return current_app.config["LEAD_INTAKE_RATE_LIMIT"]


@leads_bp.route("", methods=["POST"])
@limiter.limit(_intake_limit)
def submit_lead():
    """Public enquiry form submission."""
    lead = LeadService.create(get_json_body(request))
    return jsonify({
        "success": True,
        "message": "Thank you! Our team will contact you shortly.",
        "data": {"id": lead.id, "status": lead.status},
    }), 201


@admin_leads_bp.route("", methods=["GET"])
@require_permission(PermissionCode.LEADS_VIEW)
def list_leads(auth):
    page, limit = page_args(request.args)
    query = LeadService.search(
        status=request.args.get("status"),
        service=request.args.get("service"),
        city=request.args.get("city"),
        search=request.args.get("search"),
    )
    leads, pagination = paginate_query(query, page, limit)
    return jsonify({
        "success": True,
        "data": {"leads": [lead.to_dict() for lead in leads], "pagination": pagination},
    }), 200


@admin_leads_bp.route("", methods=["POST"])
@require_permission(PermissionCode.LEADS_CREATE)
def create_lead(auth):
    lead = LeadService.create(get_json_body(request), created_by=auth.user_id)
    return jsonify({"success": True, "message": "Lead created successfully", "data": lead.to_dict()}), 201


@admin_leads_bp.route("/assign", methods=["POST"])
@require_permission(PermissionCode.LEADS_ASSIGN)
def assign_leads(auth):
    data = get_json_body(request)
    leads = LeadService.assign(data.get("leadIds"), data.get("vendorIds"), user_id=auth.user_id)
    return jsonify({
        "success": True,
        "message": f"{len(leads)} lead(s) made available to vendors",
        "data": {"leads": [lead.to_dict() for lead in leads]},
    }), 200


@admin_leads_bp.route("/<lead_id>", methods=["GET"])
@require_permission(PermissionCode.LEADS_VIEW)
def get_lead(lead_id, auth):
    return jsonify({"success": True, "data": LeadService.get(lead_id).to_dict()}), 200


@admin_leads_bp.route("/<lead_id>", methods=["PUT"])
@require_permission(PermissionCode.LEADS_EDIT)
def update_lead(lead_id, auth):
    lead = LeadService.update(lead_id, get_json_body(request), user_id=auth.user_id)
    return jsonify({"success": True, "message": "Lead updated successfully", "data": lead.to_dict()}), 200


@admin_leads_bp.route("/<lead_id>", methods=["DELETE"])
@require_permission(PermissionCode.LEADS_DELETE)
def delete_lead(lead_id, auth):
    LeadService.delete(lead_id)
    return jsonify({"success": True, "message": "Lead deleted successfully"}), 200

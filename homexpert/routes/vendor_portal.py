"""Routes used by the vendor (partner) app."""

from flask import Blueprint, jsonify, request

from homexpert.domain.subscriptions import DURATION_DAYS
from homexpert.errors import NotFoundError, PermissionDeniedError
from homexpert.extensions import db
from homexpert.models import Vendor
from homexpert.security.require_permission import vendor_required
from homexpert.services.dashboard_service import DashboardService
from homexpert.services.lead_service import LeadService
from homexpert.services.plan_service import PlanService
from homexpert.services.subscription_service import SubscriptionService
from homexpert.utils.dates import isoformat
from homexpert.utils.pagination import page_args, paginate_list, paginate_query
from homexpert.utils.validation import get_json_body

vendor_portal_bp = Blueprint("vendor_portal", __name__, url_prefix="/api/vendors")


def _current_vendor(auth):
    vendor = db.session.get(Vendor, auth.vendor_id)
    if vendor is None or vendor.user_id != auth.user_id:
        raise NotFoundError("Vendor profile not found")
    if not vendor.is_active:
        raise PermissionDeniedError("Vendor account is inactive")
    return vendor


def _plan_card(plan, current):
    data = plan.to_dict()
    data["isCurrentPlan"] = bool(current and current.plan_id == plan.id)
    data["canUpgradeTo"] = plan.effective_price > current.snapshot.effective_price if current else True
    return data


@vendor_portal_bp.route("/profile", methods=["GET"])
@vendor_required
def profile(auth):
    return jsonify({"success": True, "data": _current_vendor(auth).to_dict()}), 200


@vendor_portal_bp.route("/subscriptions", methods=["GET"])
@vendor_required
def list_plans(auth):
    """Active plans, the vendor's current subscription and a few recommendations."""
    vendor = _current_vendor(auth)
    current = SubscriptionService.get_active_subscription(vendor.user_id)
    plans = [_plan_card(p, current) for p in PlanService.list_plans(active_only=True)]

    return jsonify({
        "success": True,
        "data": {
            "currentSubscription": {
                "id": current.id,
                "planName": current.snapshot.plan_name,
                "status": current.status,
                "startDate": isoformat(current.start_date),
                "endDate": isoformat(current.end_date),
                "daysRemaining": current.days_remaining(),
                "usage": current.to_dict(include_logs=False)["usage"],
            } if current else None,
            "plans": plans,
            "plansByDuration": {d: [p for p in plans if p["duration"] == d] for d in DURATION_DAYS},
            "recommendations": {
                "mostPopular": next((p for p in plans if p["duration"] == "3-month"), None),
                "bestValue": min(plans, key=lambda p: p["pricePerLead"]) if plans else None,
                "longestDuration": next((p for p in plans if p["duration"] == "12-month"), None),
            },
        },
    }), 200


@vendor_portal_bp.route("/subscriptions", methods=["POST"])
@vendor_required
def purchase(auth):
    vendor = _current_vendor(auth)
    subscription = SubscriptionService.purchase(vendor.user, vendor, get_json_body(request))
    return jsonify({
        "success": True,
        "message": "Subscription purchased successfully!",
        "data": SubscriptionService.purchase_response(subscription),
    }), 200


@vendor_portal_bp.route("/subscriptions/history", methods=["GET"])
@vendor_required
def purchase_history(auth):
    vendor = _current_vendor(auth)
    subscriptions = SubscriptionService.history_for_user(vendor.user_id)
    return jsonify({
        "success": True,
        "data": {
            "subscriptions": [s.to_dict(include_logs=False) for s in subscriptions],
            "summary": SubscriptionService.usage_summary(subscriptions),
        },
    }), 200


@vendor_portal_bp.route("/subscriptions/<subscription_id>", methods=["GET"])
@vendor_required
def subscription_detail(subscription_id, auth):
    vendor = _current_vendor(auth)
    subscription = SubscriptionService.get_for_user(subscription_id, vendor.user_id)
    return jsonify({"success": True, "data": subscription.to_dict()}), 200


@vendor_portal_bp.route("/subscriptions/<subscription_id>", methods=["DELETE"])
@vendor_required
def cancel_subscription(subscription_id, auth):
    vendor = _current_vendor(auth)
    subscription = SubscriptionService.cancel_for_user(subscription_id, vendor.user_id)
    return jsonify({
        "success": True,
        "message": "Subscription cancelled successfully",
        "data": {
            "subscriptionId": subscription.id,
            "status": subscription.status,
            "cancelledAt": subscription.history[-1]["date"],
            "refundEligible": False,
        },
    }), 200


@vendor_portal_bp.route("/available-leads", methods=["GET"])
@vendor_required
def available_leads(auth):
    vendor = _current_vendor(auth)
    subscription = SubscriptionService.require_usable_subscription(vendor.user_id)
    page, limit = page_args(request.args)
    leads = LeadService.available_for_vendor(
        vendor,
        service=request.args.get("service"),
        location=request.args.get("location"),
        max_price=request.args.get("maxPrice"),
    )
    items, pagination = paginate_list(leads, page, limit)
    return jsonify({
        "success": True,
        "data": {
            "leads": [
                dict(lead.to_dict(include_contact=False), vendorCount=len(lead.available_to_vendors or []))
                for lead in items
            ],
            "pagination": pagination,
            "subscription": {
                "id": subscription.id,
                "planName": subscription.snapshot.plan_name,
                "leadsRemaining": subscription.leads_remaining,
                "leadsConsumed": subscription.leads_consumed,
            },
        },
    }), 200


@vendor_portal_bp.route("/leads", methods=["GET"])
@vendor_required
def taken_leads(auth):
    vendor = _current_vendor(auth)
    page, limit = page_args(request.args)
    leads, pagination = paginate_query(LeadService.vendor_leads(vendor, status=request.args.get("status")), page, limit)
    return jsonify({
        "success": True,
        "data": {"leads": [lead.to_dict() for lead in leads], "pagination": pagination},
    }), 200


@vendor_portal_bp.route("/leads", methods=["POST"])
@vendor_required
def take_lead(auth):
    """Take a lead. Uses one lead from the vendor's subscription."""
    vendor = _current_vendor(auth)
    data = get_json_body(request)
    lead, subscription = LeadService.take(vendor, data.get("leadId"))
    return jsonify({
        "success": True,
        "message": "Lead taken successfully",
        "data": {
            "lead": lead.to_dict(),
            "subscription": {
                "id": subscription.id,
                "leadsConsumed": subscription.leads_consumed,
                "leadsRemaining": subscription.leads_remaining,
            },
        },
    }), 200


def _lead_info(lead):
    return {"id": lead.id, "customerName": lead.customer_name, "service": lead.service, "status": lead.status}


@vendor_portal_bp.route("/leads/<lead_id>", methods=["GET"])
@vendor_required
def lead_detail(lead_id, auth):
    lead = LeadService.taken_by(_current_vendor(auth), lead_id)
    return jsonify({"success": True, "data": LeadService.vendor_detail(lead)}), 200


@vendor_portal_bp.route("/leads/<lead_id>", methods=["PUT"])
@vendor_required
def update_lead(lead_id, auth):
    data = get_json_body(request)
    lead = LeadService.vendor_update(_current_vendor(auth), lead_id, data)
    detail = LeadService.vendor_detail(lead)
    return jsonify({
        "success": True,
        "message": "Lead status updated successfully" if data.get("status") else "Lead updated successfully",
        "data": {"lead": detail, "nextSteps": detail["progress"]["nextSteps"]},
    }), 200


@vendor_portal_bp.route("/leads/<lead_id>/notes", methods=["GET"])
@vendor_required
def lead_notes(lead_id, auth):
    lead = LeadService.taken_by(_current_vendor(auth), lead_id)
    page, limit = page_args(request.args)
    notes, pagination = paginate_list(LeadService.notes_newest_first(lead), page, limit)
    return jsonify({
        "success": True,
        "data": {"leadInfo": _lead_info(lead), "notes": notes, "pagination": pagination},
    }), 200


@vendor_portal_bp.route("/leads/<lead_id>/notes", methods=["POST"])
@vendor_required
def add_lead_note(lead_id, auth):
    lead, note = LeadService.add_note(_current_vendor(auth), lead_id, get_json_body(request))
    return jsonify({
        "success": True,
        "message": "Note added successfully",
        "data": {"note": note, "leadInfo": _lead_info(lead)},
    }), 201


@vendor_portal_bp.route("/leads/<lead_id>/follow-ups", methods=["GET"])
@vendor_required
def lead_follow_ups(lead_id, auth):
    lead = LeadService.taken_by(_current_vendor(auth), lead_id)
    page, limit = page_args(request.args)
    views, summary = LeadService.follow_up_views(lead, status=request.args.get("status"))
    follow_ups, pagination = paginate_list(views, page, limit)
    return jsonify({
        "success": True,
        "data": {
            "leadInfo": _lead_info(lead),
            "followUps": follow_ups,
            "summary": summary,
            "pagination": pagination,
        },
    }), 200


@vendor_portal_bp.route("/leads/<lead_id>/follow-ups", methods=["POST"])
@vendor_required
def add_lead_follow_up(lead_id, auth):
    lead, follow_up = LeadService.add_follow_up(_current_vendor(auth), lead_id, get_json_body(request))
    return jsonify({
        "success": True,
        "message": "Follow-up scheduled successfully",
        "data": {"followUp": follow_up, "leadInfo": _lead_info(lead)},
    }), 201


@vendor_portal_bp.route("/leads/<lead_id>/follow-ups", methods=["PUT"])
@vendor_required
def update_lead_follow_up(lead_id, auth):
    lead, follow_up = LeadService.update_follow_up(_current_vendor(auth), lead_id, get_json_body(request))
    return jsonify({
        "success": True,
        "message": "Follow-up updated successfully",
        "data": {"followUp": follow_up, "leadInfo": _lead_info(lead)},
    }), 200


@vendor_portal_bp.route("/dashboard", methods=["GET"])
@vendor_required
def dashboard(auth):
    vendor = _current_vendor(auth)
    return jsonify({"success": True, "data": DashboardService.vendor_dashboard(vendor)}), 200

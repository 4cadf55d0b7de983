from datetime import timedelta
from unittest.mock import patch

import pytest

from homexpert.extensions import db
from homexpert.models import Lead, SubscriptionHistory
from homexpert.services.lead_service import LeadService
from homexpert.services.subscription_service import SubscriptionService
from homexpert.utils.dates import utcnow


@pytest.fixture()
def subscribed_vendor(vendor, plan):
    SubscriptionService.purchase(vendor.user, vendor, {"planId": plan.id})
    return vendor


@pytest.fixture()
def make_lead(lead_payload):
    def _make(vendors=(), **changes):
        lead = LeadService.create(dict(lead_payload, **changes))
        if vendors:
            LeadService.assign([lead.id], [v.id for v in vendors], user_id=None)
        return lead
    return _make


def _active_subscription(vendor):
    return SubscriptionHistory.query.filter_by(user_id=vendor.user_id, status="active").one()


# ========== PURCHASE ==========

@pytest.mark.db
def test_purchase_response_shape(client, vendor_headers, plan):
    """Test a purchase activates immediately and reports the subscription"""
    response = client.post("/api/vendors/subscriptions", json={"planId": plan.id}, headers=vendor_headers)

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["message"] == "Subscription purchased successfully!"

    subscription = body["data"]["subscription"]
    assert subscription["planName"] == "Starter"
    assert subscription["status"] == "active"
    assert subscription["totalLeads"] == 10
    assert subscription["leadsRemaining"] == 10
    assert subscription["daysRemaining"] == 30
    assert subscription["payment"]["amount"] == 999
    assert subscription["payment"]["currency"] == "INR"
    assert subscription["payment"]["status"] == "completed"
    assert subscription["payment"]["transactionId"].startswith("TXN")
    assert body["data"]["message"] == "Your subscription is now active! You can start receiving leads."
    assert len(body["data"]["nextSteps"]) == 3


@pytest.mark.db
def test_purchase_uses_discounted_price(client, vendor_headers, make_plan):
    """Test the effective price is charged"""
    plan = make_plan(price=2000, discountedPrice=1500)

    response = client.post("/api/vendors/subscriptions", json={"planId": plan.id}, headers=vendor_headers)

    assert response.get_json()["data"]["subscription"]["payment"]["amount"] == 1500


def test_purchase_errors(client, vendor_headers, plan, make_plan):
    """Test missing, unknown, inactive and duplicate purchases"""
    response = client.post("/api/vendors/subscriptions", json={}, headers=vendor_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Subscription plan ID is required"

    response = client.post("/api/vendors/subscriptions", json={"planId": "missing"}, headers=vendor_headers)
    assert response.status_code == 404
    assert response.get_json()["error"] == "Subscription plan not found or inactive"

    inactive = make_plan(isActive=False)
    response = client.post("/api/vendors/subscriptions", json={"planId": inactive.id}, headers=vendor_headers)
    assert response.status_code == 404

    assert client.post("/api/vendors/subscriptions", json={"planId": plan.id}, headers=vendor_headers).status_code == 200
    response = client.post("/api/vendors/subscriptions", json={"planId": plan.id}, headers=vendor_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == (
        "You already have an active subscription. Please upgrade or wait for it to expire."
    )


def test_plan_listing_marks_current_plan(client, vendor_headers, subscribed_vendor, plan, make_plan):
    """Test the vendor plan page shows the current subscription"""
    other = make_plan(duration="12-month", totalLeads=240, price=8000)

    response = client.get("/api/vendors/subscriptions", headers=vendor_headers)

    data = response.get_json()["data"]
    assert data["currentSubscription"]["planName"] == "Starter"
    cards = {p["id"]: p for p in data["plans"]}
    assert cards[plan.id]["isCurrentPlan"] is True
    assert cards[other.id]["canUpgradeTo"] is True
    assert data["recommendations"]["longestDuration"]["id"] == other.id


def test_purchase_history(client, vendor_headers, subscribed_vendor):
    """Test the vendor sees its own purchases"""
    response = client.get("/api/vendors/subscriptions/history", headers=vendor_headers)

    data = response.get_json()["data"]
    assert len(data["subscriptions"]) == 1
    assert data["summary"]["activeSubscriptions"] == 1
    assert data["summary"]["totalLeadsRemaining"] == 10


# ========== LEADS ==========

def test_available_leads_need_a_subscription(client, vendor_headers):
    """Test browsing leads without a subscription is refused"""
    response = client.get("/api/vendors/available-leads", headers=vendor_headers)

    assert response.status_code == 403
    assert response.get_json()["requiresSubscription"] is True


def test_available_leads_are_scoped_to_vendor(client, subscribed_vendor, vendor_headers, make_vendor, make_lead):
    """Test vendors only see leads offered to them that match their services"""
    other = make_vendor()
    mine = make_lead(vendors=[subscribed_vendor])
    make_lead(vendors=[other])
    make_lead(vendors=[subscribed_vendor], service="Painting")
    make_lead()

    response = client.get("/api/vendors/available-leads", headers=vendor_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert [lead["id"] for lead in data["leads"]] == [mine.id]
    assert "customerPhone" not in data["leads"][0]
    assert data["subscription"]["leadsRemaining"] == 10


def test_take_lead_consumes_one_lead(client, subscribed_vendor, vendor_headers, make_lead):
    """Test taking a lead reveals it and uses one lead"""
    lead = make_lead(vendors=[subscribed_vendor])

    response = client.post("/api/vendors/leads", json={"leadId": lead.id}, headers=vendor_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["lead"]["status"] == "taken"
    assert data["lead"]["takenBy"] == subscribed_vendor.id
    assert data["lead"]["customerPhone"] == lead.customer_phone
    assert data["subscription"]["leadsConsumed"] == 1
    assert data["subscription"]["leadsRemaining"] == 9

    subscription = _active_subscription(subscribed_vendor)
    assert subscription.lead_assignments[0]["leadId"] == lead.id

    response = client.get("/api/vendors/leads", headers=vendor_headers)
    assert [item["id"] for item in response.get_json()["data"]["leads"]] == [lead.id]


def test_lead_can_only_be_taken_once(client, plan, subscribed_vendor, vendor_headers, make_vendor, make_lead, headers_for):
    """Test a second vendor cannot take a lead that is gone"""
    rival = make_vendor()
    SubscriptionService.purchase(rival.user, rival, {"planId": plan.id})
    lead = make_lead(vendors=[subscribed_vendor, rival])

    assert client.post("/api/vendors/leads", json={"leadId": lead.id}, headers=vendor_headers).status_code == 200

    response = client.post("/api/vendors/leads", json={"leadId": lead.id}, headers=headers_for(rival.user))

    assert response.status_code == 404
    assert response.get_json()["alreadyTaken"] is True
    assert _active_subscription(rival).leads_remaining == 10


def test_take_lead_race_is_a_conflict(client, subscribed_vendor, vendor_headers, make_lead):
    """Test the conditional update refuses when another vendor won first"""
    lead = make_lead(vendors=[subscribed_vendor])

    with patch("homexpert.services.lead_service.Lead.query") as query:
        query.filter.return_value.update.return_value = 0
        response = client.post("/api/vendors/leads", json={"leadId": lead.id}, headers=vendor_headers)

    assert response.status_code == 409
    assert _active_subscription(subscribed_vendor).leads_consumed == 0


def test_take_lead_with_no_leads_left(client, subscribed_vendor, vendor_headers, make_lead):
    """Test an exhausted subscription asks the vendor to upgrade"""
    subscription = _active_subscription(subscribed_vendor)
    subscription.leads_consumed, subscription.leads_remaining = 10, 0
    db.session.commit()
    lead = make_lead(vendors=[subscribed_vendor])

    response = client.post("/api/vendors/leads", json={"leadId": lead.id}, headers=vendor_headers)

    assert response.status_code == 403
    assert response.get_json()["needsUpgrade"] is True
    assert db.session.get(Lead, lead.id).taken_by_id is None


def test_vendor_dashboard_alerts(client, subscribed_vendor, vendor_headers):
    """Test the dashboard flags low lead balances"""
    subscription = _active_subscription(subscribed_vendor)
    subscription.leads_consumed, subscription.leads_remaining = 7, 3
    db.session.commit()

    response = client.get("/api/vendors/dashboard", headers=vendor_headers)

    data = response.get_json()["data"]
    assert data["subscription"]["leadsRemaining"] == 3
    assert [alert["type"] for alert in data["alerts"]] == ["low_leads"]


def test_vendor_dashboard_without_subscription(client, vendor_headers):
    """Test the dashboard prompts vendors without a plan"""
    response = client.get("/api/vendors/dashboard", headers=vendor_headers)

    data = response.get_json()["data"]
    assert data["subscription"] is None
    assert data["alerts"][0]["type"] == "no_subscription"


def test_deactivated_vendor_is_blocked(client, vendor, vendor_headers):
    """Test a vendor deactivated after login loses access"""
    vendor.is_active = False
    db.session.commit()

    response = client.get("/api/vendors/profile", headers=vendor_headers)

    assert response.status_code == 403


# ========== TAKEN LEAD FOLLOW-THROUGH ==========

@pytest.fixture()
def taken_lead(subscribed_vendor, make_lead):
    lead = make_lead(vendors=[subscribed_vendor])
    LeadService.take(subscribed_vendor, lead.id)
    return lead


@pytest.mark.db
def test_taken_lead_detail(client, vendor_headers, taken_lead):
    """Test the detail view reports progress and next steps for a fresh lead"""
    response = client.get(f"/api/vendors/leads/{taken_lead.id}", headers=vendor_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["status"] == "taken"
    assert data["customerPhone"] == taken_lead.customer_phone
    assert data["flags"]["canContact"] is True
    assert data["flags"]["isClosed"] is False
    assert data["timing"]["isOverdue"] is False
    assert data["progress"]["completion"] == 17
    assert data["progress"]["milestones"][0]["completed"] is True
    assert data["progress"]["milestones"][1]["completed"] is False
    assert data["progress"]["nextSteps"][0] == "Call the customer immediately"


def test_lead_detail_only_for_the_taker(client, subscribed_vendor, taken_lead, make_lead, make_vendor, headers_for):
    """Test other vendors and untaken leads get a 404"""
    other = make_vendor()
    response = client.get(f"/api/vendors/leads/{taken_lead.id}", headers=headers_for(other.user))
    assert response.status_code == 404
    assert response.get_json()["error"] == "Lead not found or not accessible"

    untaken = make_lead(vendors=[subscribed_vendor])
    response = client.get(f"/api/vendors/leads/{untaken.id}", headers=headers_for(subscribed_vendor.user))
    assert response.status_code == 404


@pytest.mark.db
def test_vendor_moves_lead_to_conversion(client, subscribed_vendor, vendor_headers, taken_lead):
    """Test status updates are recorded and a conversion closes the assignment"""
    url = f"/api/vendors/leads/{taken_lead.id}"

    response = client.put(url, json={"status": "contacted", "reason": "Called customer"}, headers=vendor_headers)
    assert response.status_code == 200
    assert response.get_json()["message"] == "Lead status updated successfully"

    response = client.put(
        url,
        json={"status": "scheduled", "scheduledDate": "2026-11-02", "scheduledTime": "10:00", "note": "Bring ladder"},
        headers=vendor_headers,
    )
    lead = response.get_json()["data"]["lead"]
    assert lead["scheduledDate"] == "2026-11-02"
    assert lead["vendorNotes"][-1]["note"] == "Bring ladder"

    response = client.put(url, json={"status": "converted", "conversionValue": 2500}, headers=vendor_headers)
    lead = response.get_json()["data"]["lead"]
    assert lead["status"] == "converted"
    assert lead["conversionValue"] == 2500
    assert lead["flags"]["isCompleted"] is True
    assert [(e["from"], e["to"]) for e in lead["progressHistory"][-3:]] == [
        ("taken", "contacted"), ("contacted", "scheduled"), ("scheduled", "converted"),
    ]
    assert lead["progressHistory"][-3]["note"] == "Called customer"
    assert lead["progressHistory"][-1]["changedBy"] == subscribed_vendor.user_id

    assignment = _active_subscription(subscribed_vendor).lead_assignments[0]
    assert assignment["leadId"] == taken_lead.id
    assert assignment["status"] == "completed"
    assert assignment["revenue"] == 2500


@pytest.mark.parametrize("payload, message", [
    ({"status": "available"}, "Status must be one of"),
    ({"conversionValue": "lots"}, "Price must be a number"),
    ({"note": "x" * 1001}, "Note content cannot exceed 1000 characters"),
])
def test_vendor_lead_update_validation(client, vendor_headers, taken_lead, payload, message):
    """Test invalid vendor updates are rejected without touching the lead"""
    response = client.put(f"/api/vendors/leads/{taken_lead.id}", json=payload, headers=vendor_headers)

    assert response.status_code == 400
    assert response.get_json()["error"].startswith(message)
    assert db.session.get(Lead, taken_lead.id).status == "taken"


def test_lead_notes(client, subscribed_vendor, vendor_headers, taken_lead):
    """Test notes are added by the vendor and listed newest first"""
    url = f"/api/vendors/leads/{taken_lead.id}/notes"
    LeadService.add_note(subscribed_vendor, taken_lead.id, {"note": "First call"}, now=utcnow() - timedelta(hours=2))

    response = client.post(url, json={"note": "  Quoted 1200  ", "type": "quote"}, headers=vendor_headers)
    assert response.status_code == 201
    note = response.get_json()["data"]["note"]
    assert note["note"] == "Quoted 1200"
    assert note["type"] == "quote"
    assert note["createdBy"] == subscribed_vendor.user_id

    response = client.post(url, json={"note": "   "}, headers=vendor_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Note content is required"

    data = client.get(url, headers=vendor_headers).get_json()["data"]
    assert [n["note"] for n in data["notes"]] == ["Quoted 1200", "First call"]
    assert data["pagination"]["totalCount"] == 2
    assert data["leadInfo"]["id"] == taken_lead.id


def test_lead_follow_ups(client, subscribed_vendor, vendor_headers, taken_lead):
    """Test scheduling, listing and completing follow-ups"""
    url = f"/api/vendors/leads/{taken_lead.id}/follow-ups"
    LeadService.add_follow_up(
        subscribed_vendor, taken_lead.id, {"followUp": "Missed callback", "date": (utcnow() - timedelta(days=1)).isoformat()}
    )

    response = client.post(
        url,
        json={"followUp": "Confirm visit", "date": (utcnow() + timedelta(days=2)).isoformat(), "priority": "high"},
        headers=vendor_headers,
    )
    assert response.status_code == 201
    follow_up = response.get_json()["data"]["followUp"]
    assert follow_up["priority"] == "high"
    assert follow_up["completed"] is False

    data = client.get(url, headers=vendor_headers).get_json()["data"]
    assert [f["status"] for f in data["followUps"]] == ["pending", "overdue"]
    assert data["summary"] == {"total": 2, "pending": 1, "overdue": 1, "completed": 0}

    response = client.put(
        url, json={"followUpId": follow_up["id"], "completed": True, "completionNote": "Visit booked"},
        headers=vendor_headers,
    )
    assert response.status_code == 200
    updated = response.get_json()["data"]["followUp"]
    assert updated["completed"] is True
    assert updated["completionNote"] == "Visit booked"
    assert updated["completedBy"] == subscribed_vendor.user_id

    data = client.get(f"{url}?status=completed", headers=vendor_headers).get_json()["data"]
    assert [f["followUp"] for f in data["followUps"]] == ["Confirm visit"]


@pytest.mark.parametrize("method, payload, status, message", [
    ("post", {"followUp": "Call back"}, 400, "Follow-up date is required"),
    ("post", {"followUp": "Call back", "date": "next week"}, 400, "Invalid follow-up date"),
    ("post", {"date": "2026-11-01T10:00:00"}, 400, "Follow-up content is required"),
    ("put", {"completed": True}, 400, "Follow-up ID is required"),
    ("put", {"followUpId": "unknown", "completed": True}, 404, "Follow-up not found"),
])
def test_lead_follow_up_errors(client, vendor_headers, taken_lead, method, payload, status, message):
    """Test follow-up input errors"""
    url = f"/api/vendors/leads/{taken_lead.id}/follow-ups"

    response = getattr(client, method)(url, json=payload, headers=vendor_headers)

    assert response.status_code == status
    assert response.get_json()["error"] == message


# ========== VENDOR SUBSCRIPTION DETAIL ==========

@pytest.mark.db
def test_subscription_detail(client, subscribed_vendor, vendor_headers, make_vendor, headers_for):
    """Test a vendor can read their own subscription and nobody else's"""
    subscription = _active_subscription(subscribed_vendor)

    response = client.get(f"/api/vendors/subscriptions/{subscription.id}", headers=vendor_headers)
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["id"] == subscription.id
    assert data["planName"] == "Starter"
    assert data["usage"]["leadsRemaining"] == 10
    assert [entry["action"] for entry in data["history"]] == ["purchased", "activated"]

    other = make_vendor()
    response = client.get(f"/api/vendors/subscriptions/{subscription.id}", headers=headers_for(other.user))
    assert response.status_code == 404
    assert response.get_json()["error"] == "Subscription not found"


@pytest.mark.db
def test_vendor_cancels_own_subscription(client, subscribed_vendor, vendor_headers):
    """Test self-cancellation ends access to leads"""
    subscription_id = _active_subscription(subscribed_vendor).id
    url = f"/api/vendors/subscriptions/{subscription_id}"

    response = client.delete(url, headers=vendor_headers)
    assert response.status_code == 200
    body = response.get_json()
    assert body["message"] == "Subscription cancelled successfully"
    assert body["data"]["status"] == "cancelled"
    assert body["data"]["refundEligible"] is False

    stored = db.session.get(SubscriptionHistory, subscription_id)
    assert stored.history[-1]["reason"] == "Cancelled by user"
    assert stored.history[-1]["performed_by"] == subscribed_vendor.user_id

    response = client.delete(url, headers=vendor_headers)
    assert response.status_code == 404
    assert response.get_json()["error"] == "Active subscription not found"

    response = client.get("/api/vendors/available-leads", headers=vendor_headers)
    assert response.status_code == 403
    assert response.get_json()["requiresSubscription"] is True


# ========== ADMIN SUBSCRIPTION MANAGEMENT ==========

def test_adjust_leads_response_shape(client, telecaller_user, headers_for, subscribed_vendor):
    """Test the lead adjustment endpoint reports before and after counters"""
    subscription = _active_subscription(subscribed_vendor)
    subscription.leads_consumed, subscription.leads_remaining = 4, 6
    db.session.commit()

    response = client.patch("/api/admin/subscriptions/history/adjust-leads", json={
        "subscriptionId": subscription.id,
        "type": "increase",
        "amount": 2,
        "reason": "Duplicate leads refunded",
    }, headers=headers_for(telecaller_user))

    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "message": "Leads increase successfully",
        "data": {
            "subscriptionId": subscription.id,
            "adjustmentType": "increase",
            "adjustmentAmount": 2,
            "previousLeadsConsumed": 4,
            "previousLeadsRemaining": 6,
            "newLeadsConsumed": 2,
            "newLeadsRemaining": 8,
        },
    }


def test_adjust_leads_errors(client, admin_headers, subscribed_vendor):
    """Test validation, missing subscriptions and the plan limit"""
    subscription = _active_subscription(subscribed_vendor)
    url = "/api/admin/subscriptions/history/adjust-leads"
    valid = {"subscriptionId": subscription.id, "type": "increase", "amount": 1, "reason": "Bonus"}

    response = client.patch(url, json={"type": "increase"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Missing required fields: subscriptionId, type, amount, reason"

    response = client.patch(url, json=dict(valid, type="double"), headers=admin_headers)
    assert response.status_code == 400

    response = client.patch(url, json=dict(valid, subscriptionId="missing"), headers=admin_headers)
    assert response.status_code == 400

    response = client.patch(
        url, json=dict(valid, subscriptionId="00000000-0000-4000-8000-000000000000"), headers=admin_headers
    )
    assert response.status_code == 404

    response = client.patch(url, json=valid, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Adjustment would exceed original plan limit of 10 leads"

    db.session.expire_all()
    stored = db.session.get(SubscriptionHistory, subscription.id)
    assert (stored.leads_consumed, stored.leads_remaining) == (0, 10)


def test_adjust_leads_requires_permission(client, helpline_user, headers_for, subscribed_vendor):
    """Test helpline staff cannot adjust leads"""
    subscription = _active_subscription(subscribed_vendor)

    response = client.patch("/api/admin/subscriptions/history/adjust-leads", json={
        "subscriptionId": subscription.id, "type": "decrease", "amount": 1, "reason": "x",
    }, headers=headers_for(helpline_user))

    assert response.status_code == 403


def test_admin_history_and_cancel(client, admin_headers, subscribed_vendor):
    """Test listing purchases and cancelling one"""
    response = client.get("/api/admin/subscriptions/history", headers=admin_headers)

    data = response.get_json()["data"]
    assert data["summary"]["totalSubscriptions"] == 1
    assert data["summary"]["totalRevenue"] == 999
    subscription_id = data["subscriptions"][0]["id"]

    response = client.post(
        f"/api/admin/subscriptions/history/{subscription_id}/cancel",
        json={"reason": "Requested by vendor"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "cancelled"

    response = client.get("/api/admin/subscriptions/history?status=active", headers=admin_headers)
    assert response.get_json()["data"]["subscriptions"] == []

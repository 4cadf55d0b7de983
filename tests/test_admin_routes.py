import pytest
from faker import Faker

from homexpert.extensions import db
from homexpert.models import Lead, Permission, Role, SubscriptionPlan, User, Vendor

fake = Faker()


def _permission_ids(*keys):
    by_key = {p.key: p.id for p in Permission.query.all()}
    return [by_key[key] for key in keys]


# ========== AUTHORIZATION ==========

def test_permission_denied_shape(client, helpline_user, headers_for):
    """Test a missing permission returns 403 in the error shape"""
    response = client.get("/api/roles", headers=headers_for(helpline_user))

    assert response.status_code == 403
    assert response.get_json() == {"success": False, "error": "Permission denied"}


def test_vendors_cannot_use_admin_routes(client, vendor_headers):
    """Test vendor tokens are refused on admin endpoints"""
    response = client.get("/api/admin/leads", headers=vendor_headers)

    assert response.status_code == 403
    assert response.get_json()["error"] == "Admin access required"


def test_employees_cannot_use_vendor_routes(client, admin_headers):
    """Test employee tokens are refused on vendor endpoints"""
    response = client.get("/api/vendors/profile", headers=admin_headers)

    assert response.status_code == 403
    assert response.get_json()["error"] == "Vendor access required"


def test_role_with_no_permissions_is_denied_everything(client, make_employee, headers_for, admin_headers):
    """Test a custom role with an empty permission set gets no access"""
    response = client.post("/api/roles", json={"name": "Intern", "permissions": []}, headers=admin_headers)
    assert response.status_code == 201

    intern = make_employee("intern")
    response = client.get("/api/admin/leads", headers=headers_for(intern))

    assert response.status_code == 403


def test_role_update_applies_to_existing_tokens(client, make_employee, headers_for, admin_headers):
    """Test removing a permission from a role takes effect before token renewal"""
    response = client.post(
        "/api/roles",
        json={"name": "Auditor", "description": "Read only", "permissions": _permission_ids("leads:view")},
        headers=admin_headers,
    )
    role_id = response.get_json()["data"]["id"]
    auditor = make_employee("auditor")
    headers = headers_for(auditor)

    assert client.get("/api/admin/leads", headers=headers).status_code == 200

    response = client.put(
        f"/api/roles/{role_id}",
        json={"permissions": _permission_ids("dashboard:view")},
        headers=admin_headers,
    )
    assert response.status_code == 200

    assert client.get("/api/admin/leads", headers=headers).status_code == 403
    assert client.get("/api/admin/dashboard/stats", headers=headers).status_code == 200


# ========== ROLES ==========

def test_role_crud_rules(client, admin_headers, helpline_user):
    """Test duplicate names, system role protection and assigned-role deletion"""
    response = client.post("/api/roles", json={"name": "Admin"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["error"] == "Role with this name already exists"

    response = client.post("/api/roles", json={"name": "Bad", "permissions": ["nope"]}, headers=admin_headers)
    assert response.status_code == 400

    admin_role = Role.find_by_name("admin")
    response = client.put(f"/api/roles/{admin_role.id}", json={"name": "root"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "System roles cannot be renamed"

    response = client.delete(f"/api/roles/{admin_role.id}", headers=admin_headers)
    assert response.status_code == 400

    response = client.post("/api/roles", json={"name": "Temp"}, headers=admin_headers)
    temp_id = response.get_json()["data"]["id"]
    assert client.delete(f"/api/roles/{temp_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/roles/{temp_id}", headers=admin_headers).status_code == 404


def test_list_roles_with_user_counts(client, admin_headers, helpline_user):
    """Test role listing includes user counts"""
    response = client.get("/api/roles", headers=admin_headers)

    assert response.status_code == 200
    roles = {r["name"]: r for r in response.get_json()["data"]["roles"]}
    assert set(roles) >= {"admin", "helpline", "telecaller", "vendor"}
    assert roles["helpline"]["userCount"] == 1
    assert roles["admin"]["isSystemRole"] is True


def test_list_permissions_grouped(client, admin_headers):
    """Test the permission listing is grouped by module"""
    response = client.get("/api/permissions", headers=admin_headers)

    data = response.get_json()["data"]
    assert response.status_code == 200
    assert {p["key"] for p in data["permissions"]["leads"]} >= {"leads:view", "leads:assign"}
    assert "system:settings" in data["catalog"]["system"]


def test_seed_is_idempotent(client, admin_headers):
    """Test re-seeding creates nothing new"""
    response = client.post("/api/permissions/seed", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["data"] == {"permissionsCreated": 0, "rolesCreated": 0}


# ========== EMPLOYEES ==========

def test_employee_lifecycle(client, admin_user, admin_headers):
    """Test creating, updating and deleting an employee"""
    payload = {
        "name": fake.name(),
        "email": fake.unique.email(),
        "password": "password123",
        "role": "telecaller",
    }
    response = client.post("/api/admin/employees", json=payload, headers=admin_headers)
    assert response.status_code == 201
    employee_id = response.get_json()["data"]["id"]

    response = client.post(
        "/api/admin/employees", json=dict(payload, email=fake.unique.email(), role="vendor"), headers=admin_headers
    )
    assert response.status_code == 400
    assert response.get_json()["error"].startswith("Role must be one of")

    response = client.put(f"/api/admin/employees/{employee_id}", json={"role": "helpline"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()["data"]["role"] == "helpline"

    response = client.delete(f"/api/admin/employees/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 400

    assert client.delete(f"/api/admin/employees/{employee_id}", headers=admin_headers).status_code == 200
    assert db.session.get(User, employee_id) is None


# ========== VENDORS ==========

def test_vendor_management(client, telecaller_user, headers_for):
    """Test a telecaller can create and deactivate vendors"""
    headers = headers_for(telecaller_user)
    response = client.post("/api/admin/vendors", json={
        "name": fake.name(),
        "email": fake.unique.email(),
        "phone": "9876543210",
        "businessName": "Sparkle Cleaners",
        "services": ["Cleaning"],
    }, headers=headers)
    assert response.status_code == 201
    vendor_id = response.get_json()["data"]["id"]

    response = client.put(f"/api/admin/vendors/{vendor_id}", json={"isActive": False}, headers=headers)
    assert response.status_code == 200

    vendor = db.session.get(Vendor, vendor_id)
    assert vendor.is_active is False
    assert vendor.user.is_active is False

    # telecallers may not delete vendors
    assert client.delete(f"/api/admin/vendors/{vendor_id}", headers=headers).status_code == 403


def test_vendor_activation_needs_matching_permission(client, make_employee, headers_for, admin_headers, vendor):
    """Test toggling isActive needs vendors:activate or vendors:deactivate"""
    client.post(
        "/api/roles",
        json={"name": "Editor", "permissions": _permission_ids("vendors:edit")},
        headers=admin_headers,
    )
    editor = make_employee("editor")

    response = client.put(f"/api/admin/vendors/{vendor.id}", json={"isActive": False}, headers=headers_for(editor))
    assert response.status_code == 403

    response = client.put(
        f"/api/admin/vendors/{vendor.id}", json={"businessName": "Renamed"}, headers=headers_for(editor)
    )
    assert response.status_code == 200


# ========== LEADS ==========

def test_public_lead_intake(client, lead_payload):
    """Test the public enquiry form creates a pending lead"""
    response = client.post("/api/leads", json=lead_payload)

    assert response.status_code == 201
    lead = db.session.get(Lead, response.get_json()["data"]["id"])
    assert lead.status == "pending"
    assert lead.customer_phone == lead_payload["phone"]
    assert lead.created_by is None


@pytest.mark.parametrize("changes, message", [
    ({"name": ""}, "Name and phone number are required"),
    ({"phone": None}, "Name and phone number are required"),
    ({"phone": "5123456789"}, "Please enter a valid 10-digit mobile number"),
    ({"service": ""}, "Service is required"),
])
def test_public_lead_intake_validation(client, lead_payload, changes, message):
    """Test the enquiry form rejects incomplete submissions"""
    response = client.post("/api/leads", json=dict(lead_payload, **changes))

    assert response.status_code == 400
    assert response.get_json()["error"] == message


def test_admin_lead_crud_and_assignment(client, telecaller_user, headers_for, lead_payload, make_vendor):
    """Test creating, assigning and updating a lead from the admin panel"""
    headers = headers_for(telecaller_user)
    first, second = make_vendor(), make_vendor()

    response = client.post("/api/admin/leads", json=lead_payload, headers=headers)
    assert response.status_code == 201
    lead_id = response.get_json()["data"]["id"]

    response = client.post(
        "/api/admin/leads/assign",
        json={"leadIds": [lead_id], "vendorIds": [first.id, second.id]},
        headers=headers,
    )
    assert response.status_code == 200
    lead = response.get_json()["data"]["leads"][0]
    assert lead["status"] == "available"
    assert set(lead["availableToVendors"]) == {first.id, second.id}

    response = client.post(
        "/api/admin/leads/assign",
        json={"leadIds": [lead_id], "vendorIds": ["missing-vendor"]},
        headers=headers,
    )
    assert response.status_code == 400

    response = client.put(
        f"/api/admin/leads/{lead_id}",
        json={"status": "contacted", "statusNote": "Called customer"},
        headers=headers,
    )
    assert response.status_code == 200
    history = response.get_json()["data"]["progressHistory"]
    assert history[-1]["to"] == "contacted"

    response = client.put(f"/api/admin/leads/{lead_id}", json={"status": "teleported"}, headers=headers)
    assert response.status_code == 400

    # telecallers may not delete leads
    assert client.delete(f"/api/admin/leads/{lead_id}", headers=headers).status_code == 403


def test_lead_listing_filters(client, admin_headers, lead_payload):
    """Test lead search with pagination"""
    client.post("/api/leads", json=lead_payload)
    client.post("/api/leads", json=dict(lead_payload, service="Painting", name="Asha Rao"))

    response = client.get("/api/admin/leads?service=paint&limit=10", headers=admin_headers)

    data = response.get_json()["data"]
    assert [lead["service"] for lead in data["leads"]] == ["Painting"]
    assert data["pagination"]["totalCount"] == 1

    response = client.get("/api/admin/leads?search=Asha", headers=admin_headers)
    assert len(response.get_json()["data"]["leads"]) == 1


def test_get_unknown_lead(client, admin_headers):
    """Test unknown lead ids return 404"""
    response = client.get("/api/admin/leads/not-a-real-id", headers=admin_headers)

    assert response.status_code == 404
    assert response.get_json()["error"] == "Lead not found"


# ========== PLANS ==========

def test_plan_crud(client, admin_headers):
    """Test plan creation derives allocation and can be toggled"""
    response = client.post("/api/admin/subscriptions", json={
        "planName": "Quarterly",
        "duration": "3-month",
        "totalLeads": 100,
        "price": 3000,
        "discountedPrice": 2400,
    }, headers=admin_headers)
    assert response.status_code == 201
    plan = response.get_json()["data"]
    assert plan["durationInDays"] == 90
    assert plan["leadsPerMonth"] == 34
    assert plan["discountPercentage"] == 20
    assert plan["pricePerLead"] == 24

    response = client.patch(f"/api/admin/subscriptions/{plan['id']}/toggle", headers=admin_headers)
    assert response.get_json()["data"]["isActive"] is False

    response = client.post("/api/admin/subscriptions", json={
        "planName": "Broken", "duration": "2-week", "totalLeads": 5, "price": 10,
    }, headers=admin_headers)
    assert response.status_code == 400

    assert client.delete(f"/api/admin/subscriptions/{plan['id']}", headers=admin_headers).status_code == 200
    assert SubscriptionPlan.query.count() == 0


def test_purchased_plan_cannot_be_deleted(client, admin_headers, plan, vendor_headers):
    """Test a plan with purchases is kept"""
    client.post("/api/vendors/subscriptions", json={"planId": plan.id}, headers=vendor_headers)

    response = client.delete(f"/api/admin/subscriptions/{plan.id}", headers=admin_headers)

    assert response.status_code == 400


def test_dashboard_stats(client, admin_headers, lead_payload, vendor):
    """Test admin dashboard counters"""
    client.post("/api/leads", json=lead_payload)

    response = client.get("/api/admin/dashboard/stats", headers=admin_headers)

    data = response.get_json()["data"]
    assert data["leads"]["total"] == 1
    assert data["leads"]["byStatus"]["pending"] == 1
    assert data["vendors"]["total"] == 1

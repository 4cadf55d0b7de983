import pytest
from faker import Faker

from homexpert import create_app
from homexpert.extensions import db
from homexpert.models import Role, User
from homexpert.security.tokens import issue_access_token
from homexpert.services.auth_service import AuthService
from homexpert.services.permission_service import PermissionService
from homexpert.services.plan_service import PlanService

# Initialize Faker for generating test data
fake = Faker()


def pytest_configure(config):
    config.addinivalue_line("markers", "db: mark test as database-intensive")
    config.addinivalue_line("markers", "auth: mark test as authentication-related")


def indian_mobile():
    return "9" + fake.numerify("#########")


@pytest.fixture()
def app():
    """Fresh app and in-memory database with the permission catalog seeded"""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        PermissionService.seed_all()

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_employee(app):
    def _make(role_name="admin", password="password123", **overrides):
        user = User(
            name=overrides.pop("name", fake.name()),
            email=overrides.pop("email", fake.unique.email()),
            phone=overrides.pop("phone", indian_mobile()),
            user_type="employee",
            role=Role.find_by_name(role_name),
            **overrides,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def admin_user(make_employee):
    return make_employee("admin", email="admin@homexpert.test")


@pytest.fixture()
def telecaller_user(make_employee):
    return make_employee("telecaller")


@pytest.fixture()
def helpline_user(make_employee):
    return make_employee("helpline")


@pytest.fixture()
def make_vendor(app):
    def _make(services=None, password="vendorpass123", **overrides):
        data = {
            "name": fake.name(),
            "email": fake.unique.email(),
            "phone": indian_mobile(),
            "businessName": fake.company(),
            "services": services if services is not None else ["Plumbing"],
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560001",
        }
        data.update(overrides)
        vendor = AuthService.create_vendor(data, password=password)
        db.session.commit()
        return vendor
    return _make


@pytest.fixture()
def vendor(make_vendor):
    return make_vendor()


@pytest.fixture()
def make_plan(app):
    def _make(**overrides):
        data = {
            "planName": f"{fake.word().title()} {fake.unique.random_int(1, 99999)}",
            "duration": "1-month",
            "totalLeads": 10,
            "price": 1000,
        }
        data.update(overrides)
        return PlanService.create(data)
    return _make


@pytest.fixture()
def plan(make_plan):
    return make_plan(planName="Starter", totalLeads=10, price=999)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers_for(app):
    """Build bearer headers for a user (vendors get their vendor id claim)"""
    def _headers(user):
        vendor_id = user.vendor.id if user.vendor else None
        return bearer(issue_access_token(user, vendor_id=vendor_id))
    return _headers


@pytest.fixture()
def admin_headers(admin_user, headers_for):
    return headers_for(admin_user)


@pytest.fixture()
def vendor_headers(vendor, headers_for):
    return headers_for(vendor.user)


@pytest.fixture()
def lead_payload():
    return {
        "name": fake.name(),
        "phone": indian_mobile(),
        "email": fake.email(),
        "service": "Plumbing",
        "selectedSubService": "Tap repair",
        "address": fake.street_address(),
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
        "description": fake.sentence(),
        "price": 499,
    }

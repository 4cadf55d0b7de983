from homexpert.routes.auth import auth_bp, vendor_auth_bp
from homexpert.routes.dashboard import dashboard_bp
from homexpert.routes.employees import employees_bp
from homexpert.routes.health import health_bp
from homexpert.routes.leads import admin_leads_bp, leads_bp
from homexpert.routes.permissions import permissions_bp, user_permissions_bp
from homexpert.routes.plans import plans_bp
from homexpert.routes.roles import roles_bp
from homexpert.routes.setup import setup_bp
from homexpert.routes.subscription_history import subscription_history_bp
from homexpert.routes.vendor_portal import vendor_portal_bp
from homexpert.routes.vendors import vendors_bp

BLUEPRINTS = (
    health_bp,
    setup_bp,
    auth_bp,
    vendor_auth_bp,
    user_permissions_bp,
    permissions_bp,
    roles_bp,
    employees_bp,
    vendors_bp,
    leads_bp,
    admin_leads_bp,
    subscription_history_bp,
    plans_bp,
    dashboard_bp,
    vendor_portal_bp,
)


def register_blueprints(app):
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

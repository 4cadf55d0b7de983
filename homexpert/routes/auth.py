from flask import Blueprint, current_app, jsonify, request

from homexpert.extensions import limiter
from homexpert.services.auth_service import AuthService
from homexpert.utils.validation import get_json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
vendor_auth_bp = Blueprint("vendor_auth", __name__, url_prefix="/api/vendors/auth")


def _login_limit():
    return current_app.config["LOGIN_RATE_LIMIT"]


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(_login_limit)
def login():
    """Employee login for the admin panel."""
    session = AuthService.login_employee(get_json_body(request))
    return jsonify({"success": True, "message": "Login successful", "data": session}), 200


@vendor_auth_bp.route("/register", methods=["POST"])
@limiter.limit(_login_limit)
def register_vendor():
    session = AuthService.register_vendor(get_json_body(request))
    return jsonify({"success": True, "message": "Vendor registered successfully", "data": session}), 201


@vendor_auth_bp.route("/login", methods=["POST"])
@limiter.limit(_login_limit)
def login_vendor():
    session = AuthService.login_vendor(get_json_body(request))
    return jsonify({"success": True, "message": "Login successful", "data": session}), 200

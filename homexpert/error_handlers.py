# homexpert/error_handlers.py
import logging
import traceback

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from homexpert.errors import AppError
from homexpert.extensions import jwt

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register all error handlers for the application"""

    @app.errorhandler(AppError)
    def handle_app_error(error):
        if error.status_code >= 500:
            logger.error(f"{error.__class__.__name__}: {error.message} - Path: {request.path}")
        else:
            logger.info(f"{error.__class__.__name__}: {error.message} - Path: {request.path}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """
        Handles known HTTP errors (404, 405, 429, ...)
        """
        if e.code == 404:
            logger.info(f"Not found: {request.path}")
        else:
            logger.warning(f"{e.name}: {e.description} - Path: {request.path}")
        return jsonify({
            "success": False,
            "error": e.description or e.name,
            "path": request.path,
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """
        Handles all unexpected server errors.
        Prevents stack trace leakage in the response.
        """
        logger.error(f"Unhandled exception on {request.method} {request.path}: {e}")
        logger.error(traceback.format_exc())
        return jsonify({
            "success": False,
            "error": "Internal server error",
        }), 500


def register_jwt_callbacks():
    """Render flask-jwt-extended failures in the application's error shape."""

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"success": False, "error": "Unauthorized", "detail": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"success": False, "error": "Invalid token", "detail": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"success": False, "error": "Token has expired"}), 401

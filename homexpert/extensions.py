# homexpert/extensions.py
"""
Flask extensions initialization module.
Extensions are created unbound here and attached to the app in ``init_extensions``.
"""

import logging

import sentry_sdk
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sentry_sdk.integrations.flask import FlaskIntegration

from homexpert.security.cache import PermissionCache

# Initialize extensions
db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address)

logger = logging.getLogger(__name__)


def init_extensions(app):
    """Initialize all Flask extensions against ``app``."""

    db.init_app(app)
    logger.info("SQLAlchemy initialized")

    migrate.init_app(app, db)
    logger.info("Flask-Migrate initialized")

    jwt.init_app(app)
    logger.info("JWT Manager initialized")

    cors.init_app(
        app,
        origins=app.config.get("CORS_ORIGINS", []),
        supports_credentials=app.config.get("CORS_SUPPORTS_CREDENTIALS", False),
    )
    logger.info("CORS initialized")

    limiter.init_app(app)
    if app.config.get("RATELIMIT_ENABLED", True):
        logger.info("Rate limiter initialized (%s)", app.config.get("RATELIMIT_STORAGE_URI"))

    # One permission cache per application, handed to whoever needs it
    app.extensions["permission_cache"] = PermissionCache(
        ttl_seconds=app.config.get("PERMISSION_CACHE_TTL", 300)
    )

    init_sentry(app)

    return app


def init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        environment="production" if not app.debug else "development",
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


def get_permission_cache(app):
    """Return the permission cache owned by ``app``."""
    return app.extensions["permission_cache"]

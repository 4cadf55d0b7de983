"""HomeXpert marketplace backend."""

import logging

from flask import Flask

from homexpert.config import get_config
from homexpert.error_handlers import register_error_handlers, register_jwt_callbacks
from homexpert.extensions import init_extensions
from homexpert.logging_config import setup_logging
from homexpert.middleware.request_id import init_request_id_middleware

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Application factory."""
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # request id first so every later hook can log it
    init_request_id_middleware(app)
    setup_logging(app)

    init_extensions(app)
    register_jwt_callbacks()
    register_error_handlers(app)

    # models must be imported before Flask-Migrate or create_all sees the metadata
    from homexpert import models  # noqa: F401
    from homexpert.routes import register_blueprints

    register_blueprints(app)

    logger.info("HomeXpert app created (%s)", config_name or app.config.get("APP_NAME"))
    return app

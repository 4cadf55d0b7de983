"""
JSON logging for the API.

Every record carries the request correlation id and, inside a request, the
method and path. Set ``LOG_REQUESTS`` to also log one line per response.
"""

import logging
import logging.config
import time

from flask import g, has_request_context, request
from pythonjsonlogger import jsonlogger

from homexpert.middleware.request_id import current_request_id

JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(method)s %(path)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s: %(message)s"

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "urllib3")


class RequestContextFilter(logging.Filter):
    def filter(self, record):
        record.request_id = current_request_id()
        if has_request_context():
            record.method = request.method
            record.path = request.path
        else:
            record.method = record.path = None
        return True


def build_logging_config(level="INFO", fmt="json"):
    formatter = (
        {"()": jsonlogger.JsonFormatter, "fmt": JSON_FORMAT}
        if fmt == "json"
        else {"format": TEXT_FORMAT}
    )
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": RequestContextFilter}},
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["request_context"],
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(app):
    """Configure logging for the application"""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    fmt = str(app.config.get("LOG_FORMAT", "json")).lower()
    logging.config.dictConfig(build_logging_config(level, fmt))

    if not app.config.get("LOG_REQUESTS", False):
        return

    access_log = logging.getLogger("homexpert.access")

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_response(response):
        started = g.get("request_started")
        duration_ms = round((time.perf_counter() - started) * 1000, 2) if started else None
        access_log.info(
            "%s %s %s",
            request.method, request.path, response.status_code,
            extra={
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
            },
        )
        return response

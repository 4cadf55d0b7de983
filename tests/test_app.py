import logging

import pytest

from homexpert import create_app
from homexpert.config import ConfigurationError, ProductionConfig, TestingConfig, get_config
from homexpert.extensions import get_permission_cache
from homexpert.logging_config import JSON_FORMAT, TEXT_FORMAT, build_logging_config


def test_get_config_resolves_environments(monkeypatch):
    """Test config lookup by name and by APP_ENV"""
    assert get_config("testing") is TestingConfig

    monkeypatch.setenv("APP_ENV", "TESTING")
    assert get_config() is TestingConfig

    with pytest.raises(ConfigurationError):
        get_config("staging")


def test_production_requires_secrets(monkeypatch):
    """Test production refuses to start without secrets"""
    monkeypatch.setattr(ProductionConfig, "SECRET_KEY", None)

    with pytest.raises(ConfigurationError):
        get_config("production")


def test_app_wiring(app):
    """Test the factory configures the app for testing"""
    assert app.config["TESTING"] is True
    assert get_permission_cache(app).ttl_seconds == app.config["PERMISSION_CACHE_TTL"]
    assert "vendor_portal" in app.blueprints


def test_request_id_is_echoed(client):
    """Test the request id header is returned, or generated when absent"""
    response = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"

    response = client.get("/api/health", headers={"X-Request-ID": "not a safe id; drop table"})
    generated = response.headers["X-Request-ID"]
    assert len(generated) == 32
    assert generated != "not a safe id; drop table"


def test_unexpected_errors_are_hidden():
    """Test unhandled exceptions become a generic 500"""
    app = create_app("testing")

    @app.route("/boom")
    def boom():
        raise RuntimeError("secret details")

    response = app.test_client().get("/boom")

    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Internal server error"}


def test_permission_denials_are_logged(client, helpline_user, headers_for, caplog):
    """Test denied requests leave a warning with the user and permission"""
    with caplog.at_level(logging.WARNING, logger="homexpert.security.require_permission"):
        client.get("/api/roles", headers=headers_for(helpline_user))

    messages = [r.getMessage() for r in caplog.records if r.name == "homexpert.security.require_permission"]
    assert any(helpline_user.id in m and "system:role_management" in m for m in messages)


def test_logging_config_formats():
    """Test JSON and text logging configurations"""
    json_config = build_logging_config("INFO")
    text_config = build_logging_config("DEBUG", fmt="text")

    assert json_config["formatters"]["default"]["fmt"] == JSON_FORMAT
    assert text_config["formatters"]["default"]["format"] == TEXT_FORMAT
    assert text_config["root"]["level"] == "DEBUG"
    assert json_config["loggers"]["werkzeug"]["level"] == "WARNING"

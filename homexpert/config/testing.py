from datetime import timedelta

from .base import BaseConfig


class TestingConfig(BaseConfig):
    """
    Test configuration: in-memory database, no rate limits.
    """

    TESTING = True

    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"

    RATELIMIT_ENABLED = False
    SENTRY_DSN = None
    LOG_LEVEL = "WARNING"

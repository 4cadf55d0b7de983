from .base import BaseConfig


class DevelopmentConfig(BaseConfig):
    """Local development: debug on, readable logs, fallback secrets."""

    DEBUG = True

    SECRET_KEY = BaseConfig.SECRET_KEY or "dev-secret-key"
    JWT_SECRET_KEY = BaseConfig.JWT_SECRET_KEY or "dev-jwt-secret-key-change-me"

    LOG_LEVEL = "DEBUG"
    LOG_FORMAT = "text"
    LOG_REQUESTS = True

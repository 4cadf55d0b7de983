from .base import BaseConfig, ConfigurationError


class ProductionConfig(BaseConfig):
    """
    Production configuration.
    """

    DEBUG = False

    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        # MUST be set via environment variable in real production
        if not cls.SECRET_KEY:
            raise ConfigurationError("SECRET_KEY is required in production")
        if not cls.JWT_SECRET_KEY:
            raise ConfigurationError("JWT_SECRET_KEY is required in production")
        if cls.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            raise ConfigurationError("SQLite is not suitable for production")

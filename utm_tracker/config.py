"""
UTM Tracker Configuration.

Configuration for PyDAL, the geolocation provider, client IP resolution
and the management API.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Config:
    """Base configuration."""

    # Application
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"
    TESTING = False

    # Production mode geolocates the extracted client IP as-is.
    # Outside production a private client IP is swapped for the host's
    # public IP so geolocation can be exercised locally.
    PRODUCTION = _env_bool("PRODUCTION", "false")

    # JWT bearer tokens for the management endpoints
    AUTH_ENABLED = _env_bool("AUTH_ENABLED", "true")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)

    # Database - PyDAL compatible
    DB_TYPE = os.getenv("DB_TYPE", "postgres")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "utm_tracker")
    DB_USER = os.getenv("DB_USER", "app_user")
    DB_PASS = os.getenv("DB_PASS", "app_pass")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_FOLDER = os.getenv("DB_FOLDER", "databases")

    # ASGI Server (Hypercorn)
    ASGI_HOST = os.getenv("ASGI_HOST", "0.0.0.0")
    ASGI_PORT = int(os.getenv("ASGI_PORT", "5000"))
    ASGI_WORKERS = int(os.getenv("ASGI_WORKERS", "1"))

    # Geolocation provider
    GEO_PROVIDER_URL = os.getenv("GEO_PROVIDER_URL", "http://ipapi.co/{ip}/json/")
    GEO_USER_AGENT = os.getenv("GEO_USER_AGENT", "UTM-Tracker/1.0")
    GEO_REQUEST_TIMEOUT = float(os.getenv("GEO_REQUEST_TIMEOUT", "2.0"))
    GEO_OUTER_TIMEOUT = float(os.getenv("GEO_OUTER_TIMEOUT", "1.5"))

    # Public IP lookup (non-production only)
    PUBLIC_IP_URL = os.getenv("PUBLIC_IP_URL", "https://api.ipify.org")
    PUBLIC_IP_TIMEOUT = float(os.getenv("PUBLIC_IP_TIMEOUT", "1.0"))

    # Client IP resolution policy, highest priority first. The right order
    # depends on the reverse-proxy topology in front of the service.
    CLIENT_IP_HEADERS = _env_list(
        "CLIENT_IP_HEADERS",
        "X-Client-Real-IP,X-Forwarded-For,X-Real-IP,CF-Connecting-IP,X-Client-IP",
    )

    # Short codes
    CODE_LENGTH = int(os.getenv("CODE_LENGTH", "8"))
    CODE_MAX_RETRIES = int(os.getenv("CODE_MAX_RETRIES", "10"))

    # Analytics
    ANALYTICS_TIMEZONE = os.getenv("ANALYTICS_TIMEZONE", "UTC")

    # Pagination
    PAGE_DEFAULT_LIMIT = int(os.getenv("PAGE_DEFAULT_LIMIT", "10"))
    PAGE_MAX_LIMIT = int(os.getenv("PAGE_MAX_LIMIT", "100"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Monitoring
    PROMETHEUS_ENABLED = _env_bool("PROMETHEUS_ENABLED", "true")

    @classmethod
    def get_db_uri(cls) -> str:
        """Build PyDAL-compatible database URI."""
        db_type = cls.DB_TYPE

        # Map common aliases to PyDAL format
        type_map = {
            "postgresql": "postgres",
            "mysql": "mysql",
            "sqlite": "sqlite",
            "mssql": "mssql",
            "mariadb": "mysql",  # MariaDB uses MySQL driver
        }
        db_type = type_map.get(db_type, db_type)

        if db_type == "sqlite":
            if cls.DB_NAME == ":memory:":
                return "sqlite:memory"
            return f"sqlite://{cls.DB_NAME}.db"

        return (
            f"{db_type}://{cls.DB_USER}:{cls.DB_PASS}@"
            f"{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}"
        )


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    LOG_LEVEL = "DEBUG"
    AUTH_ENABLED = _env_bool("AUTH_ENABLED", "false")


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
    PRODUCTION = True
    LOG_LEVEL = "INFO"

    SECRET_KEY = os.getenv("SECRET_KEY")  # Required
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)

    @classmethod
    def validate(cls) -> None:
        """Validate production configuration."""
        if (
            not cls.SECRET_KEY
            or cls.SECRET_KEY == "dev-secret-key-change-in-production"
        ):
            raise ValueError("SECRET_KEY must be set in production")
        if not cls.JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY must be set in production")


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DEBUG = True
    PRODUCTION = True
    DB_TYPE = "sqlite"
    DB_NAME = "utm_tracker_test"
    DB_POOL_SIZE = 0

    AUTH_ENABLED = False
    JWT_SECRET_KEY = "testing-secret"

    # Never reach real providers from tests
    GEO_PROVIDER_URL = "http://geo.test/{ip}/json/"
    PUBLIC_IP_URL = "http://public-ip.test/"

    # Disable Prometheus in tests to avoid duplicate metric registration
    PROMETHEUS_ENABLED = False


def get_config() -> type[Config]:
    """Get configuration based on environment."""
    env = os.getenv("FLASK_ENV", "development").lower()
    config_map = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
    }
    return config_map.get(env, DevelopmentConfig)

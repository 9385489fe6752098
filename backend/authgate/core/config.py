"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


def store_engine_options(database_uri: str, timeout_seconds: int) -> dict[str, Any]:
    """Build ``SQLALCHEMY_ENGINE_OPTIONS`` bounding every store interaction.

    Parameters
    ----------
    database_uri: str
        SQLAlchemy URL; the backend name selects the timeout knobs.
    timeout_seconds: int
        Upper bound for lock waits, statements and connection checkout.

    Returns
    -------
    dict[str, Any]
        Keyword arguments forwarded to :func:`sqlalchemy.create_engine`.

    Notes
    -----
    SQLite only understands the busy ``timeout``. PostgreSQL also receives
    ``statement_timeout``/``lock_timeout`` so a blocked ``FOR UPDATE`` fails
    instead of waiting forever.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}

    options: dict[str, Any] = {"pool_pre_ping": True, "pool_timeout": timeout_seconds}
    if database_uri.startswith("postgresql"):
        millis = timeout_seconds * 1000
        options["connect_args"] = {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={millis} -c lock_timeout={millis}",
        }
    return options


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str | None
        Symmetric HMAC key shared by the access-token issuer and verifier.
        Required; startup fails when it is missing or too short.
    JWT_ISSUER / JWT_AUDIENCE: str
        ``iss``/``aud`` claims written on issue and enforced on decode.
    ACCESS_TOKEN_TTL_MINUTES: int
        Lifetime of access tokens.
    REFRESH_TOKEN_TTL_DAYS: int
        Lifetime of refresh tokens.
    REFRESH_TOKEN_RETENTION_DAYS: int
        Age after which revoked/expired refresh tokens are purged.
    STORE_TIMEOUT_SECONDS: int
        Bound applied to database locks, statements and pool checkout.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    AUTH_LOGIN_RATE_LIMIT: str
        Flask-Limiter expression applied to the login endpoint.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "authgate")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authgate-clients")
    JWT_ALGORITHM = "HS256"

    # Token lifetimes
    ACCESS_TOKEN_TTL_MINUTES = env_int("ACCESS_TOKEN_TTL_MINUTES", 15)
    REFRESH_TOKEN_TTL_DAYS = env_int("REFRESH_TOKEN_TTL_DAYS", 30)
    REFRESH_TOKEN_RETENTION_DAYS = env_int("REFRESH_TOKEN_RETENTION_DAYS", 30)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./authgate.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    STORE_TIMEOUT_SECONDS = env_int("STORE_TIMEOUT_SECONDS", 5)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & rate limiting
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per minute")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_ENABLED = True

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Falls back to a fixed, clearly non-production signing key so the app boots
    without a ``.env`` file.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-only-signing-key-change-me-0123456789")


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables rate limiting.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-signing-key-with-enough-entropy-0123456789"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    PROPAGATE_EXCEPTIONS = True
    RATELIMIT_ENABLED = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    ``JWT_SECRET_KEY`` has no default here: a missing key aborts startup.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)

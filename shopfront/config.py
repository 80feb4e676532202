import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv


_SHOPFRONT_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _SHOPFRONT_DIR.parent

# Root .env is canonical; shopfront/.env remains a fallback.
load_dotenv(_PROJECT_ROOT / ".env")
load_dotenv(_SHOPFRONT_DIR / ".env")

_PLACEHOLDER_SECRET = "change-me-in-production"
MIN_PBKDF2_ITERATIONS = 10_000


def _first_non_empty_env(*names: str, default: str) -> str:
    """Returns the first non-empty env var value from `names`, else `default`."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value != "":
            return value
    return default


def _parse_int_env(*names: str, default: int) -> int:
    """Parses the first non-empty env var in `names` as int, else returns `default`."""
    raw = _first_non_empty_env(*names, default=str(default))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _session_ttl_seconds() -> int:
    """
    Resolves the login session TTL in seconds.

    Preferred var:
      SESSION_TTL_SECONDS (seconds)

    Convenience alias:
      SESSION_TTL_DAYS (days); deployments have used 1 or 3
    """
    if os.getenv("SESSION_TTL_SECONDS"):
        return _parse_int_env("SESSION_TTL_SECONDS", default=86400)

    if os.getenv("SESSION_TTL_DAYS"):
        days = _parse_int_env("SESSION_TTL_DAYS", default=1)
        return days * 86400

    return 86400


class BaseConfig:

    SECRET_KEY: str = _first_non_empty_env("SECRET_KEY", default=_PLACEHOLDER_SECRET)

    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    JSON_SORT_KEYS: bool = False
    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="INFO")

    # ── Sessions & cookies ──────────────────────────────────────────────────
    SESSION_TTL: timedelta = timedelta(seconds=_session_ttl_seconds())
    AUTH_COOKIE_NAME: str = "session_id"
    COOKIE_SECURE: bool = _parse_bool_env("COOKIE_SECURE", True)

    # ── CSRF ────────────────────────────────────────────────────────────────
    CSRF_COOKIE_NAME: str = "csrf_token"
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    CSRF_TOKEN_TTL: timedelta = timedelta(
        seconds=_parse_int_env("CSRF_TOKEN_TTL_SECONDS", default=7200)
    )
    # Keep the first token seen in a logged-in session as the only one accepted.
    CSRF_SESSION_PINNING: bool = _parse_bool_env("CSRF_SESSION_PINNING", True)

    # ── Passwords ───────────────────────────────────────────────────────────
    PBKDF2_ITERATIONS: int = _parse_int_env("PBKDF2_ITERATIONS", default=MIN_PBKDF2_ITERATIONS)
    MIN_PASSWORD_LENGTH: int = 8

    # ── Checkout ────────────────────────────────────────────────────────────
    CURRENCY_CODE: str = _first_non_empty_env("CURRENCY_CODE", default="USD")
    PAYPAL_BUSINESS_EMAIL: str = _first_non_empty_env(
        "PAYPAL_BUSINESS_EMAIL",
        default="merchant@example.com",
    )
    PAYPAL_CHECKOUT_URL: str = _first_non_empty_env(
        "PAYPAL_CHECKOUT_URL",
        default="https://www.sandbox.paypal.com/cgi-bin/webscr",
    )


class DevelopmentConfig(BaseConfig):
    DEBUG:   bool = True
    TESTING: bool = False

    SQLALCHEMY_DATABASE_URI: str = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{_PROJECT_ROOT / 'shopfront.db'}",
    )
    SQLALCHEMY_ECHO: bool = False
    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="DEBUG")
    # Local dev usually runs over plain http.
    COOKIE_SECURE: bool = _parse_bool_env("COOKIE_SECURE", False)


class TestingConfig(BaseConfig):

    DEBUG:   bool = True
    TESTING: bool = True

    SQLALCHEMY_DATABASE_URI: str = os.getenv("TEST_DATABASE_URL", "sqlite://")
    SQLALCHEMY_ECHO: bool = False

    SECRET_KEY: str = "testing-secret-key"
    # Fast hashing for the test suite only; production enforces the minimum.
    PBKDF2_ITERATIONS: int = 1_000
    COOKIE_SECURE: bool = False
    CSRF_SESSION_PINNING: bool = True


class ProductionConfig(BaseConfig):

    DEBUG:   bool = False
    TESTING: bool = False
    SQLALCHEMY_ECHO: bool = False

    # Heroku / Render return 'postgres://' which SQLAlchemy 1.4+ rejects;
    # normalise to 'postgresql://'.
    _raw_db_url: str = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI: str = (
        _raw_db_url.replace("postgres://", "postgresql://", 1)
        if _raw_db_url.startswith("postgres://")
        else _raw_db_url
    )


def validate_production_config(app) -> None:
    """
    Fail-fast guard for production configuration.

    Raises ValueError if any required production value is missing or insecure.
    """
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        raise ValueError(
            "DATABASE_URL environment variable is required in production. "
            "Set it to a valid PostgreSQL connection string."
        )
    if app.config.get("SECRET_KEY") == _PLACEHOLDER_SECRET:
        raise ValueError(
            "SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )
    if app.config.get("PBKDF2_ITERATIONS", 0) < MIN_PBKDF2_ITERATIONS:
        raise ValueError(
            f"PBKDF2_ITERATIONS must be at least {MIN_PBKDF2_ITERATIONS} in production."
        )
    if not app.config.get("COOKIE_SECURE"):
        raise ValueError("COOKIE_SECURE must be enabled in production.")


config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing":     TestingConfig,
    "production":  ProductionConfig,
}

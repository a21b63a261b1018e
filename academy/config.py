"""
Centralized configuration for the course assessment service.

Every setting is read from the environment on each call, so tests can
monkeypatch variables without reloading modules.
"""

import os

_TRUTHY = ("true", "1", "yes")


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in _TRUTHY


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def is_sql_echo() -> bool:
    return os.getenv("SQL_ECHO", "").lower() in _TRUTHY


def get_db_pool_size() -> int:
    """Persistent connections per process; overflow allows as many again."""
    return max(1, int(os.getenv("DB_POOL_SIZE", "5")))


def get_sentry_dsn() -> str | None:
    """Sentry DSN, or None when error reporting is disabled."""
    return os.environ.get("SENTRY_DSN") or None


def is_strict_answer_validation() -> bool:
    """
    Reject malformed quiz submissions instead of grading them as unanswered.

    Off by default: unknown question ids and selections that don't fit the
    question type are treated as "no answer".
    """
    return os.getenv("STRICT_ANSWER_VALIDATION", "").lower() in _TRUTHY


def get_start_attempt_max_retries() -> int:
    """How many times the API retries a start that lost the attempt-number race."""
    return max(1, int(os.getenv("START_ATTEMPT_MAX_RETRIES", "3")))


def get_allowed_origins() -> list[str]:
    """
    Get list of allowed CORS origins.

    Includes localhost variants for dev and the production frontend URL.
    """
    hosts = ["localhost", "127.0.0.1"]
    ports = [get_api_port(), 3000, 5173]
    origins = [f"http://{host}:{port}" for host in hosts for port in ports]

    env_frontend = os.environ.get("FRONTEND_URL")
    if env_frontend and env_frontend.rstrip("/") not in origins:
        origins.append(env_frontend.rstrip("/"))

    return origins


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for JWT session tokens", True),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"{name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"{name}: Not set ({description})")

    if errors:
        return False, errors + warnings

    return True, warnings

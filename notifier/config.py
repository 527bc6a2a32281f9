"""
Centralized configuration for the event notifier.

Settings are read from the environment at call time so tests can patch
os.environ without reloading modules.
"""

import os

DEFAULT_TIMEZONE = "Africa/Cairo"
DEFAULT_FROM_EMAIL = "hello@web-events-two.vercel.app"
DEFAULT_EMAIL_SUBJECT = "Event Notification"


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_timezone_name() -> str:
    """Named timezone every submitted date is interpreted in."""
    return os.getenv("NOTIFIER_TIMEZONE", DEFAULT_TIMEZONE)


def get_sendgrid_api_key() -> str | None:
    return os.getenv("SENDGRID_API_KEY") or None


def get_from_email() -> str:
    return os.getenv("FROM_EMAIL", DEFAULT_FROM_EMAIL)


def get_from_name() -> str | None:
    return os.getenv("FROM_NAME") or None


def get_email_subject() -> str:
    return os.getenv("EMAIL_SUBJECT", DEFAULT_EMAIL_SUBJECT)


def get_send_timeout() -> float:
    """Upper bound in seconds for a single recipient send."""
    return float(os.getenv("SEND_TIMEOUT_SECONDS", "30"))


def get_retry_max_attempts() -> int:
    """Automatic dispatch retries after a timer fires (0 disables retries)."""
    return int(os.getenv("DISPATCH_RETRY_MAX_ATTEMPTS", "0"))


def get_max_message_length() -> int:
    return int(os.getenv("MAX_MESSAGE_LENGTH", "1000"))


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("SENDGRID_API_KEY", "SendGrid API key for outgoing email", False),
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
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings

"""
Centralized configuration for the meeting scheduler.

Every setting comes from the environment; .env files are loaded by main.py
(and the root conftest.py for tests) before anything here is called.
"""

import os


def is_dev_mode() -> bool:
    """Check if running in development mode (DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running in the production environment."""
    return os.getenv("APP_ENV", "").lower() == "production"


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_app_url() -> str:
    """
    Get the public base URL of the application.

    Used to build meeting and RSVP links embedded in emails.
    """
    return os.environ.get("APP_URL", f"http://localhost:{get_api_port()}").rstrip("/")


def get_app_timezone() -> str:
    """
    Get the timezone that meeting dates and times are expressed in.

    Meeting date/time fields are wall-clock strings; the reminder sweep
    compares them against "now" in this timezone.
    """
    return os.environ.get("APP_TIMEZONE", "UTC")


def get_cron_secret() -> str:
    """Get the bearer secret required by the cron trigger endpoint."""
    secret = os.environ.get("CRON_SECRET")
    if not secret:
        raise ValueError("CRON_SECRET environment variable not set")
    return secret


def get_reminder_lead_minutes() -> int:
    """Minutes before a meeting's start that its reminder goes out."""
    return int(os.getenv("REMINDER_LEAD_MINUTES", "15"))


def get_reminder_slack_minutes() -> int:
    """Width of the reminder window after the lead time."""
    return int(os.getenv("REMINDER_SLACK_MINUTES", "5"))


def get_reminder_sweep_interval_minutes() -> int:
    """
    Interval for the in-process reminder sweep.

    0 disables it; an external cron calling /api/cron/reminders is then
    the only trigger.
    """
    return int(os.getenv("REMINDER_SWEEP_INTERVAL_MINUTES", "0"))


def get_allowed_origins() -> list[str]:
    """
    Get list of allowed CORS origins.

    Includes localhost variants for dev and the configured APP_URL.
    """
    hosts = ["localhost", "127.0.0.1"]
    ports = [3000, get_api_port()]
    origins = [f"http://{host}:{port}" for host in hosts for port in ports]

    app_url = get_app_url()
    if app_url not in origins:
        origins.append(app_url)

    return origins


# Required environment variables
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "Database connection string", True),
    ("JWT_SECRET", "Secret key for verifying session tokens", True),
    ("CRON_SECRET", "Bearer secret for the reminder cron endpoint", False),
    ("FROM_EMAIL", "Default sender address for notifications", False),
    ("APP_URL", "Public base URL used in email links", False),
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

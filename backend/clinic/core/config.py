"""
Centralized configuration module for application-wide settings.

This module provides centralized configuration for timezone handling,
clinic working hours and validation bounds, ensuring consistency across
all scheduling and billing operations.
"""

import os
import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# ===========================
# Database Configuration
# ===========================

DEFAULT_DATABASE_URL = "sqlite:///./clinic.db"


def get_database_url() -> str:
    """Return the configured DATABASE_URL (SQLite file by default)."""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the clinic timezone from environment variable.

    Returns:
        ZoneInfo: Clinic timezone (defaults to UTC if not configured)

    Environment Variables:
        TZ: Timezone identifier (e.g., 'Africa/Cairo', 'UTC')
            Default: 'UTC' (safe fallback)

    Examples:
        >>> # In .env file:
        >>> # TZ=Africa/Cairo
        >>> tz = get_app_timezone()
        >>> print(tz)  # Africa/Cairo
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


# Global timezone instance - initialized once at import time
APP_TZ = get_app_timezone()


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive clinic wall-clock time.

    Naive datetimes are assumed to already be clinic-local and are returned
    unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(APP_TZ).replace(tzinfo=None)


def now_local() -> datetime:
    """Default clock: current clinic wall-clock time as a naive datetime."""
    return datetime.now(APP_TZ).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def log_timezone_config():
    """
    Log the active timezone configuration.

    Should be called during application startup to provide visibility
    into the timezone being used for scheduling decisions.
    """
    logger.info(
        "Timezone configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "tz_env_var": os.getenv("TZ", "UTC"),
            }
        },
    )


# ===========================
# Working Hours Configuration
# ===========================


def _get_hour(env_name: str, default: int) -> int:
    raw = os.getenv(env_name, str(default))
    try:
        hour = int(raw)
    except (TypeError, ValueError):
        logger.warning(
            f"Invalid value '{raw}' for {env_name}. Falling back to {default}."
        )
        return default
    if not 0 <= hour <= 24:
        logger.warning(
            f"Out of range value '{raw}' for {env_name}. Falling back to {default}."
        )
        return default
    return hour


def get_working_hours() -> tuple[int, int]:
    """
    Get the clinic working hours as a ``(start_hour, end_hour)`` pair.

    Environment Variables:
        WORKING_HOURS_START: First hour an appointment may start (default 8)
        WORKING_HOURS_END: Hour at which bookings stop being accepted (default 20)

    An appointment start hour ``h`` is accepted when ``start <= h < end``.
    """
    start = _get_hour("WORKING_HOURS_START", 8)
    end = _get_hour("WORKING_HOURS_END", 20)
    if start >= end:
        logger.warning(
            "WORKING_HOURS_START must be before WORKING_HOURS_END. Using 8-20.",
            extra={"context": {"start": start, "end": end}},
        )
        return 8, 20
    return start, end


WORKING_HOURS_START, WORKING_HOURS_END = get_working_hours()


# ===========================
# Validation Bounds
# ===========================

APPOINTMENT_REASON_MAX_LENGTH = 500
ITEM_DESCRIPTION_MIN_LENGTH = 3
ITEM_DESCRIPTION_MAX_LENGTH = 500
TRANSACTION_REF_MIN_LENGTH = 3
TRANSACTION_REF_MAX_LENGTH = 50


# ===========================
# Logging Configuration
# ===========================


def _flag(env_name: str, default: str) -> bool:
    return os.getenv(env_name, default).strip().lower() in ("true", "1", "yes")


def get_logging_options() -> dict:
    """Return keyword arguments for ``setup_logging`` read from the environment."""
    return {
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "enable_sql_echo": _flag("SQL_ECHO", "false"),
        "log_to_file": _flag("LOG_TO_FILE", "true"),
        "use_json_format": _flag("LOG_JSON", "false"),
    }


def get_slow_query_settings() -> tuple[bool, int]:
    """Whether slow query alerts are on, and their threshold in milliseconds.

    Read on every check so tests and operators can change them at runtime.
    """
    try:
        threshold_ms = int(os.getenv("ALERT_QUERY_MS_THRESHOLD", "100"))
    except ValueError:
        threshold_ms = 100
    return _flag("ALERT_SLOW_QUERY_ENABLED", "true"), threshold_ms

"""
Centralized configuration with environment variable overrides.

Scheduling constants (generation interval, scan horizon, fetch timeouts) and
the defaults used to materialize a provider's first availability profile are
configurable here. Nothing is hardcoded in the engine or booking logic.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag such as ``true``/``0``/``off`` from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot generation and date scanning parameters."""

    slot_interval_minutes: int = _safe_int("SLOT_INTERVAL_MINUTES", "15")
    default_days_ahead: int = _safe_int("DEFAULT_DAYS_AHEAD", "30")
    max_days_ahead: int = _safe_int("MAX_DAYS_AHEAD", "365")
    scan_concurrency: int = _safe_int("SCAN_CONCURRENCY", "10")
    fetch_timeout_sec: float = _safe_float("FETCH_TIMEOUT_SEC", "5.0")
    enforce_booking_window: bool = _safe_bool("ENFORCE_BOOKING_WINDOW", "false")


@dataclass(frozen=True)
class ProfileDefaults:
    """Values used when a provider's availability profile is created lazily."""

    timezone: str = os.getenv("DEFAULT_TIMEZONE", "America/New_York")
    workday_start: str = os.getenv("DEFAULT_WORKDAY_START", "09:00")
    workday_end: str = os.getenv("DEFAULT_WORKDAY_END", "17:00")
    buffer_minutes: int = _safe_int("DEFAULT_BUFFER_MINUTES", "30")
    max_bookings_per_slot: int = _safe_int("DEFAULT_MAX_BOOKINGS_PER_SLOT", "1")
    min_advance_booking_hours: int = _safe_int("DEFAULT_MIN_ADVANCE_HOURS", "2")
    max_advance_booking_days: int = _safe_int("DEFAULT_MAX_ADVANCE_DAYS", "30")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    profile_defaults: ProfileDefaults = field(default_factory=ProfileDefaults)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "slotbook")


def _validate_hhmm(name: str, value: str) -> None:
    try:
        datetime.strptime(value, "%H:%M")
    except ValueError:
        raise ValueError(f"{name} must be HH:MM, got {value!r}") from None


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    scheduling = config.scheduling
    if not 1 <= scheduling.slot_interval_minutes <= 240:
        raise ValueError(
            "SLOT_INTERVAL_MINUTES must be between 1 and 240, "
            f"got {scheduling.slot_interval_minutes}"
        )
    if scheduling.max_days_ahead < 1:
        raise ValueError(f"MAX_DAYS_AHEAD must be >= 1, got {scheduling.max_days_ahead}")
    if not 1 <= scheduling.default_days_ahead <= scheduling.max_days_ahead:
        raise ValueError(
            "DEFAULT_DAYS_AHEAD must be between 1 and MAX_DAYS_AHEAD, "
            f"got {scheduling.default_days_ahead}"
        )
    if scheduling.scan_concurrency < 1:
        raise ValueError(f"SCAN_CONCURRENCY must be >= 1, got {scheduling.scan_concurrency}")
    if scheduling.fetch_timeout_sec < 0:
        raise ValueError(
            f"FETCH_TIMEOUT_SEC must be >= 0, got {scheduling.fetch_timeout_sec}"
        )

    defaults = config.profile_defaults
    try:
        ZoneInfo(defaults.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"DEFAULT_TIMEZONE is not a valid IANA zone: {defaults.timezone!r}") from None
    _validate_hhmm("DEFAULT_WORKDAY_START", defaults.workday_start)
    _validate_hhmm("DEFAULT_WORKDAY_END", defaults.workday_end)
    if defaults.workday_start >= defaults.workday_end:
        raise ValueError(
            "DEFAULT_WORKDAY_START must be before DEFAULT_WORKDAY_END, "
            f"got {defaults.workday_start}-{defaults.workday_end}"
        )
    if defaults.buffer_minutes < 0:
        raise ValueError(f"DEFAULT_BUFFER_MINUTES must be >= 0, got {defaults.buffer_minutes}")
    if defaults.max_bookings_per_slot < 1:
        raise ValueError(
            f"DEFAULT_MAX_BOOKINGS_PER_SLOT must be >= 1, got {defaults.max_bookings_per_slot}"
        )
    if defaults.min_advance_booking_hours < 0:
        raise ValueError(
            f"DEFAULT_MIN_ADVANCE_HOURS must be >= 0, got {defaults.min_advance_booking_hours}"
        )
    if defaults.max_advance_booking_days < 1:
        raise ValueError(
            f"DEFAULT_MAX_ADVANCE_DAYS must be >= 1, got {defaults.max_advance_booking_days}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()

"""Shared utilities used across the scheduling engine and booking service."""

import re
from datetime import date, datetime, time, timezone

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def as_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC; naive datetimes are ambiguous and rejected."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"datetime must be timezone-aware, got naive {value.isoformat()}")
    return value.astimezone(timezone.utc)


def parse_hhmm(value: str) -> time:
    """Parse a wall-clock ``HH:MM`` string.

    Examples:
        >>> parse_hhmm("09:30")
        datetime.time(9, 30)
    """
    return datetime.strptime(value.strip(), "%H:%M").time()


def format_hhmm(value: time) -> str:
    """Format a wall-clock time as ``HH:MM``.

    Examples:
        >>> format_hhmm(time(7, 5))
        '07:05'
    """
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_between(start: time, end: time) -> int:
    """Wall-clock minutes from ``start`` to ``end`` on the same day."""
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def parse_iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, raising ValueError on anything else."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def normalize_phone(value: str) -> str:
    """Strip everything except digits from a phone number.

    Examples:
        >>> normalize_phone("(212) 555-0147")
        '2125550147'
        >>> normalize_phone("+1 212 555 0147")
        '12125550147'
    """
    return re.sub(r"[^\d]", "", value.strip())


def is_valid_phone(value: str) -> bool:
    """US numbers: 10 digits, or 11 digits with a leading country code 1."""
    digits = normalize_phone(value)
    return len(digits) == 10 or (len(digits) == 11 and digits.startswith("1"))


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value.strip()))

"""
Timezone-aware conversions and interval primitives.

All stored and compared instants are aware UTC datetimes. Provider-authored
times (working hours, breaks) are naive wall-clock values in the provider's
IANA timezone and must be localized with ``to_utc`` before they are compared
with bookings or blocked periods.

DST policy:
    Ambiguous wall-clock times (the repeated hour when clocks fall back)
    resolve to the earlier occurrence (``fold=0``). Nonexistent times (the
    skipped hour when clocks spring forward) are read with the offset in
    force before the transition, which moves them forward by the gap:
    02:30 on a spring-forward night becomes 03:30 local.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotbook.exceptions import InvalidInputError
from slotbook.utils import as_utc

logger = logging.getLogger(__name__)

UTC = timezone.utc


def utc_now() -> datetime:
    """Default clock for the engine; tests inject a frozen one."""
    return datetime.now(UTC)


def get_zone(timezone_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising InvalidInputError when unknown."""
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise InvalidInputError(f"Unknown timezone: {timezone_name!r}") from None


def ensure_utc(instant: datetime) -> datetime:
    """Return ``instant`` in UTC; naive datetimes are rejected."""
    try:
        return as_utc(instant)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from None


def to_utc(local: datetime, timezone_name: str) -> datetime:
    """Interpret a naive wall-clock datetime in ``timezone_name`` as a UTC instant."""
    if local.tzinfo is not None:
        raise InvalidInputError(
            f"to_utc expects a naive wall-clock datetime, got {local.isoformat()}"
        )
    zone = get_zone(timezone_name)
    return local.replace(tzinfo=zone, fold=0).astimezone(UTC)


def from_utc(instant: datetime, timezone_name: str) -> datetime:
    """Inverse of ``to_utc``: the naive wall-clock reading of ``instant``."""
    zone = get_zone(timezone_name)
    return ensure_utc(instant).astimezone(zone).replace(tzinfo=None)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test; empty or inverted intervals overlap nothing."""
    if a_start >= a_end or b_start >= b_end:
        return False
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class Interval:
    """A half-open [start, end) span of UTC instants."""

    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def local_day_bounds(day: date, timezone_name: str) -> Interval:
    """UTC interval covering ``day`` from local midnight to the next local midnight."""
    start = to_utc(datetime.combine(day, time.min), timezone_name)
    end = to_utc(datetime.combine(day + timedelta(days=1), time.min), timezone_name)
    return Interval(start, end)


def working_window(day: date, start: time, end: time, timezone_name: str) -> Interval:
    """Localize a wall-clock [start, end) on ``day`` to a UTC interval."""
    return Interval(
        to_utc(datetime.combine(day, start), timezone_name),
        to_utc(datetime.combine(day, end), timezone_name),
    )


def today_in(timezone_name: str, now: datetime) -> date:
    """The calendar date it currently is in ``timezone_name``."""
    return from_utc(now, timezone_name).date()


def is_window_fully_blocked(window: Interval, blocked: Iterable[Interval]) -> bool:
    """
    Check whether the union of ``blocked`` covers ``window`` without a gap.

    Sweeps the overlapping periods in start order, carrying the instant up to
    which the window is known to be covered. Any period starting after that
    instant leaves a gap.
    """
    relevant = sorted((b for b in blocked if b.overlaps(window)), key=lambda b: b.start)
    covered_until = window.start
    for block in relevant:
        if block.start > covered_until:
            return False
        if block.end > covered_until:
            covered_until = block.end
        if covered_until >= window.end:
            return True
    return covered_until >= window.end

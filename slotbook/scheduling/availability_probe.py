"""
Cheap per-date availability check used by fast date scans.

The probe never enumerates slots. It answers from the day's working hours,
a whole-day blocked sweep and a booking count, so it can be wrong in the
optimistic direction: breaks are ignored and the capacity heuristic treats
every booking as one interval-sized unit. A date it reports true may still
have no slot; a date it reports false really has none. Use the precise scan
mode when exactness matters.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable

from slotbook.config import SchedulingConfig, settings
from slotbook.scheduling.time_arithmetic import (
    is_window_fully_blocked,
    local_day_bounds,
    today_in,
    utc_now,
    working_window,
)
from slotbook.schemas.availability_schema import AvailabilityProfile, Weekday
from slotbook.schemas.booking_schema import Service
from slotbook.storage.constraint_sources import ConstraintSources

logger = logging.getLogger(__name__)


class FastAvailabilityProbe:
    """Answers "does this date have any availability?" without generating slots."""

    def __init__(
        self,
        sources: ConstraintSources,
        config: SchedulingConfig = settings.scheduling,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sources = sources
        self.config = config
        self.clock = clock

    async def has_availability(
        self, profile: AvailabilityProfile, service: Service, day: date
    ) -> bool:
        if not service.active:
            return False

        tz = profile.timezone
        today = today_in(tz, self.clock())
        if day < today:
            return False
        if self.config.enforce_booking_window and day > today + timedelta(
            days=profile.max_advance_booking_days
        ):
            return False

        hours = self.sources.get_working_hours(profile, Weekday.of(day))
        if hours is None or not hours.enabled:
            return False

        # Absolute minutes, so spring-forward days lose their missing hour.
        window = working_window(day, hours.start, hours.end, tz)
        span = int(window.duration.total_seconds() // 60)
        if service.slot_minutes(profile) > span:
            return False

        blocked = await self.sources.get_blocked_periods(profile, window.start, window.end)
        if is_window_fully_blocked(window, blocked):
            logger.debug("Provider %s fully blocked on %s", profile.provider_id, day)
            return False

        bounds = local_day_bounds(day, tz)
        bookings = await self.sources.get_active_bookings(
            profile.provider_id, bounds.start, bounds.end
        )
        max_slots = span // self.config.slot_interval_minutes
        return len(bookings) < max_slots

"""
Candidate slot generation for one provider, service and date.

Candidates start at the localized working-hours start and advance in fixed
interval steps of absolute time. Each candidate spans the service duration
plus its effective buffer and is emitted only while it fits inside working
hours. A candidate is then marked unavailable by the first failing check:

    past -> booking window (when enforced) -> break -> blocked -> capacity

The resulting list always contains every candidate, available or not, so
callers can render a full day grid.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from slotbook.config import SchedulingConfig, settings
from slotbook.scheduling.time_arithmetic import (
    Interval,
    ensure_utc,
    from_utc,
    local_day_bounds,
    overlaps,
    utc_now,
    working_window,
)
from slotbook.schemas.availability_schema import AvailabilityProfile, BreakTime, DayHours, Weekday
from slotbook.schemas.booking_schema import Service, TimeSlot
from slotbook.storage.constraint_sources import ActiveBooking, ConstraintSources

logger = logging.getLogger(__name__)


class SlotRejection(str, Enum):
    """First check that made a candidate unavailable."""

    PAST = "past"
    OUTSIDE_BOOKING_WINDOW = "outside_booking_window"
    BREAK = "break"
    BLOCKED = "blocked"
    CAPACITY = "capacity"


@dataclass(frozen=True)
class SlotVerdict:
    slot: TimeSlot
    rejection: Optional[SlotRejection] = None


@dataclass
class DayConstraints:
    """Everything evaluate_day needs for one local date, already fetched."""

    day: date
    hours: Optional[DayHours]
    breaks: list[BreakTime] = field(default_factory=list)
    blocked: list[Interval] = field(default_factory=list)
    bookings: list[ActiveBooking] = field(default_factory=list)


class SlotGenerator:
    """Produces the ordered candidate slots of one date with availability flags."""

    def __init__(
        self,
        sources: ConstraintSources,
        config: SchedulingConfig = settings.scheduling,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sources = sources
        self.config = config
        self.clock = clock

    async def load_constraints(self, profile: AvailabilityProfile, day: date) -> DayConstraints:
        """Fetch blocks and bookings for the local day; skip the fetch on days off."""
        weekday = Weekday.of(day)
        hours = self.sources.get_working_hours(profile, weekday)
        if hours is None or not hours.enabled:
            return DayConstraints(day=day, hours=None)
        bounds = local_day_bounds(day, profile.timezone)
        blocked = await self.sources.get_blocked_periods(profile, bounds.start, bounds.end)
        bookings = await self.sources.get_active_bookings(
            profile.provider_id, bounds.start, bounds.end
        )
        return DayConstraints(
            day=day,
            hours=hours,
            breaks=self.sources.get_break_times(profile, weekday),
            blocked=blocked,
            bookings=bookings,
        )

    async def generate_verdicts(
        self,
        profile: AvailabilityProfile,
        service: Service,
        day: date,
        exclude_booking_id: Optional[str] = None,
        display_timezone: Optional[str] = None,
    ) -> list[SlotVerdict]:
        if not service.active:
            return []
        constraints = await self.load_constraints(profile, day)
        return self.evaluate_day(
            profile,
            service,
            constraints,
            now=self.clock(),
            exclude_booking_id=exclude_booking_id,
            display_timezone=display_timezone,
        )

    async def generate(
        self,
        profile: AvailabilityProfile,
        service: Service,
        day: date,
        display_timezone: Optional[str] = None,
    ) -> list[TimeSlot]:
        """Every candidate slot of ``day`` ordered by start, with ``available`` set."""
        verdicts = await self.generate_verdicts(
            profile, service, day, display_timezone=display_timezone
        )
        return [verdict.slot for verdict in verdicts]

    async def has_available_slot(
        self, profile: AvailabilityProfile, service: Service, day: date
    ) -> bool:
        slots = await self.generate(profile, service, day)
        return any(slot.available for slot in slots)

    def evaluate_day(
        self,
        profile: AvailabilityProfile,
        service: Service,
        constraints: DayConstraints,
        now: datetime,
        exclude_booking_id: Optional[str] = None,
        display_timezone: Optional[str] = None,
    ) -> list[SlotVerdict]:
        """Pure candidate walk over already-fetched constraints."""
        hours = constraints.hours
        if not service.active or hours is None or not hours.enabled:
            return []

        now = ensure_utc(now)
        tz = profile.timezone
        display_tz = display_timezone or tz
        window = working_window(constraints.day, hours.start, hours.end, tz)
        # Walking absolute time keeps every slot exactly slot_length long on DST days.
        slot_length = timedelta(minutes=service.slot_minutes(profile))
        step = timedelta(minutes=self.config.slot_interval_minutes)

        earliest = latest = None
        if self.config.enforce_booking_window:
            earliest = now + timedelta(hours=profile.min_advance_booking_hours)
            latest = now + timedelta(days=profile.max_advance_booking_days)

        # Breaks are timezone-naive rules, compared in wall-clock time.
        day = constraints.day
        breaks = [
            Interval(datetime.combine(day, b.start), datetime.combine(day, b.end))
            for b in constraints.breaks
        ]
        taken = Counter(
            booking.start
            for booking in constraints.bookings
            if booking.booking_id != exclude_booking_id
        )

        verdicts: list[SlotVerdict] = []
        start = window.start
        while True:
            end = start + slot_length
            if end > window.end:
                break
            rejection = self._first_rejection(
                start,
                end,
                now=now,
                earliest=earliest,
                latest=latest,
                breaks=breaks,
                tz=tz,
                blocked=constraints.blocked,
                taken=taken,
                capacity=profile.max_bookings_per_slot,
            )
            slot = TimeSlot(
                start=start,
                end=end,
                available=rejection is None,
                display_timezone=display_tz,
            )
            verdicts.append(SlotVerdict(slot, rejection))
            start += step

        logger.debug(
            "Generated %d candidates for provider %s on %s (%d available)",
            len(verdicts),
            profile.provider_id,
            constraints.day.isoformat(),
            sum(1 for v in verdicts if v.rejection is None),
        )
        return verdicts

    @staticmethod
    def _first_rejection(
        start: datetime,
        end: datetime,
        *,
        now: datetime,
        earliest: Optional[datetime],
        latest: Optional[datetime],
        breaks: list[Interval],
        tz: str,
        blocked: list[Interval],
        taken: Counter,
        capacity: int,
    ) -> Optional[SlotRejection]:
        if start <= now:
            return SlotRejection.PAST
        if earliest is not None and (start < earliest or start > latest):
            return SlotRejection.OUTSIDE_BOOKING_WINDOW
        if breaks:
            # The end reading is derived from the start so fall-back nights never invert it.
            local_start = from_utc(start, tz)
            local_end = local_start + (end - start)
            if any(overlaps(local_start, local_end, b.start, b.end) for b in breaks):
                return SlotRejection.BREAK
        if any(overlaps(start, end, b.start, b.end) for b in blocked):
            return SlotRejection.BLOCKED
        if taken[start] >= capacity:
            return SlotRejection.CAPACITY
        return None

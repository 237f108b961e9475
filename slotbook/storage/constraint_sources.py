"""
Adapter between the store port and the scheduling engine.

ConstraintSources only translates shapes: it resolves the provider profile
and service, expands recurring blocked periods into UTC intervals and
reduces bookings to the fields capacity checks need. It makes no
availability decisions.

Every store call is bounded by the configured fetch timeout. Storage
failures surface as ConstraintSourceError so callers can tell "no slots"
apart from "could not determine".
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Optional, TypeVar

from slotbook.config import ProfileDefaults, SchedulingConfig, settings
from slotbook.exceptions import (
    ConstraintSourceError,
    ProviderNotFoundError,
    SchedulingError,
    ServiceNotFoundError,
)
from slotbook.scheduling.time_arithmetic import Interval, from_utc, to_utc
from slotbook.schemas.availability_schema import (
    AvailabilityProfile,
    BlockedPeriod,
    BreakTime,
    DayHours,
    RecurrenceFrequency,
    Weekday,
)
from slotbook.schemas.booking_schema import ACTIVE_STATUSES, Service
from slotbook.storage.store import AvailabilityStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ActiveBooking:
    """The slice of a booking that capacity checks look at."""

    booking_id: str
    start: datetime
    service_id: str


async def guarded_call(awaitable: Awaitable[T], what: str, timeout: float) -> T:
    """
    Await a store call under ``timeout`` seconds (0 disables the bound).

    Timeouts and unexpected store exceptions are raised as
    ConstraintSourceError. Errors already in the SchedulingError family pass
    through, and task cancellation is never intercepted.
    """
    try:
        if timeout > 0:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        return await awaitable
    except SchedulingError:
        raise
    except asyncio.TimeoutError:
        logger.error("Store call timed out after %.1fs: %s", timeout, what)
        raise ConstraintSourceError(f"Timed out fetching {what}") from None
    except Exception as exc:
        logger.error("Store call failed: %s (%s)", what, exc)
        raise ConstraintSourceError(f"Could not fetch {what}: {exc}") from exc


def expand_occurrences(
    period: BlockedPeriod, timezone_name: str, range_start: datetime, range_end: datetime
) -> list[Interval]:
    """
    UTC intervals of ``period`` that overlap [range_start, range_end).

    Recurrences repeat in the provider's wall-clock time, so a weekly
    09:00-12:00 block stays at 09:00 local across DST changes. ``until`` is
    inclusive on the local start date of an occurrence. Yearly occurrences
    that would fall on a nonexistent date (Feb 29) are skipped.
    """
    window = Interval(range_start, range_end)
    rule = period.recurrence
    if rule is None:
        first = Interval(period.start, period.end)
        return [first] if first.overlaps(window) else []

    local_start = from_utc(period.start, timezone_name)
    length = from_utc(period.end, timezone_name) - local_start
    local_range_end = from_utc(range_end, timezone_name)
    # An occurrence starting this early can still reach into the range.
    earliest = from_utc(range_start, timezone_name).date() - timedelta(days=length.days + 1)

    occurrences: list[Interval] = []

    def emit(occ_start: datetime) -> None:
        occurrence = Interval(
            to_utc(occ_start, timezone_name), to_utc(occ_start + length, timezone_name)
        )
        if occurrence.overlaps(window):
            occurrences.append(occurrence)

    def past_until(occ_start: datetime) -> bool:
        return rule.until is not None and occ_start.date() > rule.until

    if rule.frequency == RecurrenceFrequency.YEARLY:
        k = max(0, math.ceil((earliest.year - local_start.year) / rule.interval))
        while True:
            year = local_start.year + k * rule.interval
            k += 1
            try:
                occ_start = local_start.replace(year=year)
            except ValueError:
                if year > local_range_end.year:
                    break
                continue
            if occ_start >= local_range_end or past_until(occ_start):
                break
            emit(occ_start)
        return occurrences

    step_days = rule.interval * (7 if rule.frequency == RecurrenceFrequency.WEEKLY else 1)
    gap_days = (earliest - local_start.date()).days
    k = max(0, math.ceil(gap_days / step_days))
    occ_start = local_start + timedelta(days=k * step_days)
    while occ_start < local_range_end and not past_until(occ_start):
        emit(occ_start)
        occ_start += timedelta(days=step_days)
    return occurrences


class ConstraintSources:
    """Fetches the raw inputs of availability from an AvailabilityStore."""

    def __init__(
        self,
        store: AvailabilityStore,
        config: SchedulingConfig = settings.scheduling,
        defaults: ProfileDefaults = settings.profile_defaults,
    ):
        self.store = store
        self.config = config
        self.defaults = defaults

    async def _call(self, awaitable: Awaitable[T], what: str) -> T:
        return await guarded_call(awaitable, what, self.config.fetch_timeout_sec)

    async def get_profile(self, provider_id: str) -> AvailabilityProfile:
        """Stored profile, or the default profile saved on first read."""
        if not await self._call(self.store.provider_exists(provider_id), "provider"):
            raise ProviderNotFoundError(f"Unknown provider: {provider_id}")
        profile = await self._call(self.store.get_profile(provider_id), "availability profile")
        if profile is None:
            profile = AvailabilityProfile.with_defaults(provider_id, self.defaults)
            await self._call(self.store.save_profile(profile), "default profile")
            logger.info("Created default availability profile for provider %s", provider_id)
        return profile

    async def get_service(self, provider_id: str, service_id: str) -> Service:
        service = await self._call(self.store.get_service(service_id), "service")
        if service is None or service.provider_id != provider_id:
            raise ServiceNotFoundError(
                f"Service {service_id} not found for provider {provider_id}"
            )
        return service

    @staticmethod
    def get_working_hours(profile: AvailabilityProfile, weekday: Weekday) -> Optional[DayHours]:
        return profile.hours_for(weekday)

    @staticmethod
    def get_break_times(profile: AvailabilityProfile, weekday: Weekday) -> list[BreakTime]:
        return profile.breaks_for(weekday)

    async def get_blocked_periods(
        self, profile: AvailabilityProfile, start: datetime, end: datetime
    ) -> list[Interval]:
        """Blocked intervals overlapping [start, end), recurrences expanded, sorted."""
        periods = await self._call(
            self.store.list_blocked_periods(profile.provider_id, start, end), "blocked periods"
        )
        intervals = [
            interval
            for period in periods
            for interval in expand_occurrences(period, profile.timezone, start, end)
        ]
        intervals.sort(key=lambda i: (i.start, i.end))
        return intervals

    async def get_active_bookings(
        self, provider_id: str, start: datetime, end: datetime
    ) -> list[ActiveBooking]:
        """Pending and confirmed bookings starting in [start, end)."""
        bookings = await self._call(
            self.store.list_bookings(provider_id, start, end, ACTIVE_STATUSES), "bookings"
        )
        return [ActiveBooking(b.id, b.start, b.service_id) for b in bookings]


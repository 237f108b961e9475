"""Tests for the constraint source adapter and the memory store."""

import asyncio
from datetime import date, datetime, time, timedelta, timezone

import pytest

from slotbook.exceptions import ConstraintSourceError, ProviderNotFoundError, ServiceNotFoundError
from slotbook.scheduling.time_arithmetic import local_day_bounds
from slotbook.schemas.availability_schema import (
    AvailabilityProfile,
    BreakTime,
    RecurrenceFrequency,
    RecurrenceRule,
    Weekday,
)
from slotbook.schemas.booking_schema import BookingStatus
from slotbook.storage.constraint_sources import ConstraintSources, expand_occurrences
from slotbook.storage.memory_store import MemoryStore
from tests.conftest import (
    MONDAY,
    NY,
    PROVIDER,
    SERVICE,
    make_block,
    make_booking,
    make_config,
    make_profile,
    make_service,
    local,
    make_store,
)


class FailingStore(MemoryStore):
    async def list_bookings(self, provider_id, start, end, statuses):
        raise RuntimeError("connection refused")


class SlowStore(MemoryStore):
    async def list_blocked_periods(self, provider_id, start, end):
        await asyncio.sleep(1)
        return []


class TestProfileAndService:
    @pytest.mark.asyncio
    async def test_stored_profile_returned(self, store):
        sources = ConstraintSources(store, make_config())
        profile = await sources.get_profile(PROVIDER)
        assert profile.timezone == NY

    @pytest.mark.asyncio
    async def test_missing_profile_materialized_with_defaults(self):
        store = MemoryStore()
        store.add_provider("prov-new")
        sources = ConstraintSources(store, make_config())

        profile = await sources.get_profile("prov-new")

        assert profile == AvailabilityProfile.with_defaults("prov-new", sources.defaults)
        assert await store.get_profile("prov-new") == profile

    @pytest.mark.asyncio
    async def test_unknown_provider(self, store):
        sources = ConstraintSources(store, make_config())
        with pytest.raises(ProviderNotFoundError):
            await sources.get_profile("nobody")

    @pytest.mark.asyncio
    async def test_unknown_service(self, store):
        sources = ConstraintSources(store, make_config())
        with pytest.raises(ServiceNotFoundError):
            await sources.get_service(PROVIDER, "svc-missing")

    @pytest.mark.asyncio
    async def test_service_of_another_provider(self, store):
        store.add_service(make_service("svc-other", provider_id="prov-2"))
        sources = ConstraintSources(store, make_config())
        with pytest.raises(ServiceNotFoundError):
            await sources.get_service(PROVIDER, "svc-other")

    def test_break_times_filtered_and_ordered(self):
        profile = make_profile(
            breaks=[
                BreakTime(start=time(15), end=time(15, 15)),
                BreakTime(start=time(12), end=time(13), days=frozenset({Weekday.MONDAY})),
            ]
        )
        monday = ConstraintSources.get_break_times(profile, Weekday.MONDAY)
        tuesday = ConstraintSources.get_break_times(profile, Weekday.TUESDAY)
        assert [b.start for b in monday] == [time(12), time(15)]
        assert [b.start for b in tuesday] == [time(15)]


class TestActiveBookings:
    @pytest.mark.asyncio
    async def test_only_pending_and_confirmed(self, store):
        store.add_booking(make_booking(local(MONDAY, 9), "BK-1", BookingStatus.PENDING))
        store.add_booking(make_booking(local(MONDAY, 10), "BK-2", BookingStatus.CONFIRMED))
        store.add_booking(make_booking(local(MONDAY, 11), "BK-3", BookingStatus.CANCELLED))
        store.add_booking(make_booking(local(MONDAY, 12), "BK-4", BookingStatus.COMPLETED))
        sources = ConstraintSources(store, make_config())
        bounds = local_day_bounds(MONDAY, NY)

        active = await sources.get_active_bookings(PROVIDER, bounds.start, bounds.end)

        assert sorted(b.booking_id for b in active) == ["BK-1", "BK-2"]
        assert all(b.service_id == SERVICE for b in active)

    @pytest.mark.asyncio
    async def test_range_is_half_open(self, store):
        bounds = local_day_bounds(MONDAY, NY)
        store.add_booking(make_booking(bounds.end, "BK-next-day"))
        sources = ConstraintSources(store, make_config())
        assert await sources.get_active_bookings(PROVIDER, bounds.start, bounds.end) == []


class TestFetchFailures:
    @pytest.mark.asyncio
    async def test_store_error_surfaces(self):
        store = FailingStore()
        store.add_provider(PROVIDER, make_profile())
        sources = ConstraintSources(store, make_config())
        bounds = local_day_bounds(MONDAY, NY)
        with pytest.raises(ConstraintSourceError, match="bookings"):
            await sources.get_active_bookings(PROVIDER, bounds.start, bounds.end)

    @pytest.mark.asyncio
    async def test_timeout_surfaces(self):
        store = SlowStore()
        store.add_provider(PROVIDER, make_profile())
        sources = ConstraintSources(store, make_config(fetch_timeout_sec=0.01))
        bounds = local_day_bounds(MONDAY, NY)
        with pytest.raises(ConstraintSourceError, match="Timed out"):
            await sources.get_blocked_periods(make_profile(), bounds.start, bounds.end)


class TestBlockedPeriods:
    @pytest.mark.asyncio
    async def test_only_overlapping_periods(self, store):
        store.add_blocked_period(make_block(local(MONDAY, 9), local(MONDAY, 10), "blk-in"))
        sunday = MONDAY - timedelta(days=1)
        store.add_blocked_period(make_block(local(sunday, 9), local(sunday, 10), "blk-out"))
        sources = ConstraintSources(store, make_config())
        bounds = local_day_bounds(MONDAY, NY)

        blocked = await sources.get_blocked_periods(make_profile(), bounds.start, bounds.end)

        assert len(blocked) == 1
        assert blocked[0].start == local(MONDAY, 9)

    @pytest.mark.asyncio
    async def test_sorted_by_start(self, store):
        store.add_blocked_period(make_block(local(MONDAY, 14), local(MONDAY, 15), "blk-b"))
        store.add_blocked_period(make_block(local(MONDAY, 9), local(MONDAY, 10), "blk-a"))
        sources = ConstraintSources(store, make_config())
        bounds = local_day_bounds(MONDAY, NY)

        blocked = await sources.get_blocked_periods(make_profile(), bounds.start, bounds.end)

        assert [b.start for b in blocked] == [local(MONDAY, 9), local(MONDAY, 14)]


class TestRecurrenceExpansion:
    def _weekly(self, first_day: date, until=None, interval=1):
        return make_block(
            local(first_day, 9),
            local(first_day, 12),
            recurrence=RecurrenceRule(
                frequency=RecurrenceFrequency.WEEKLY, interval=interval, until=until
            ),
        )

    def test_weekly_block_recurs(self):
        period = self._weekly(date(2029, 12, 31))
        bounds = local_day_bounds(MONDAY, NY)
        assert expand_occurrences(period, NY, bounds.start, bounds.end)[0].start == local(MONDAY, 9)

    def test_until_stops_recurrence(self):
        period = self._weekly(date(2029, 12, 31), until=date(2029, 12, 31))
        bounds = local_day_bounds(MONDAY, NY)
        assert expand_occurrences(period, NY, bounds.start, bounds.end) == []

    def test_until_is_inclusive(self):
        period = self._weekly(date(2029, 12, 31), until=MONDAY)
        bounds = local_day_bounds(MONDAY, NY)
        assert len(expand_occurrences(period, NY, bounds.start, bounds.end)) == 1

    def test_interval_skips_weeks(self):
        period = self._weekly(date(2029, 12, 31), interval=2)
        week_one = local_day_bounds(MONDAY, NY)
        week_two = local_day_bounds(MONDAY + timedelta(days=7), NY)
        assert expand_occurrences(period, NY, week_one.start, week_one.end) == []
        assert len(expand_occurrences(period, NY, week_two.start, week_two.end)) == 1

    def test_weekly_keeps_wall_clock_across_dst(self):
        # Mar 4 2030 is EST, Mar 11 is EDT: 09:00 local both weeks.
        period = self._weekly(date(2030, 3, 4))
        bounds = local_day_bounds(date(2030, 3, 11), NY)
        occurrence = expand_occurrences(period, NY, bounds.start, bounds.end)[0]
        assert occurrence.start == datetime(2030, 3, 11, 13, 0, tzinfo=timezone.utc)

    def test_daily_far_in_future(self):
        period = make_block(
            local(date(2020, 1, 1), 9),
            local(date(2020, 1, 1), 10),
            recurrence=RecurrenceRule(frequency=RecurrenceFrequency.DAILY),
        )
        bounds = local_day_bounds(MONDAY, NY)
        assert [o.start for o in expand_occurrences(period, NY, bounds.start, bounds.end)] == [
            local(MONDAY, 9)
        ]

    def test_multi_day_occurrence_reaching_into_range(self):
        # Fri 18:00 to Tue 08:00, weekly: covers the following Monday entirely.
        friday = date(2029, 12, 28)
        period = make_block(
            local(friday, 18),
            local(friday + timedelta(days=4), 8),
            recurrence=RecurrenceRule(frequency=RecurrenceFrequency.WEEKLY),
        )
        bounds = local_day_bounds(MONDAY, NY)
        assert len(expand_occurrences(period, NY, bounds.start, bounds.end)) == 1

    def test_yearly_skips_leap_day(self):
        leap_day = date(2028, 2, 29)
        period = make_block(
            local(leap_day, 0),
            local(leap_day + timedelta(days=1), 0),
            recurrence=RecurrenceRule(frequency=RecurrenceFrequency.YEARLY),
        )
        in_2029 = local_day_bounds(date(2029, 2, 28), NY)
        in_2032 = local_day_bounds(date(2032, 2, 29), NY)
        assert expand_occurrences(period, NY, in_2029.start, in_2032.start) == []
        assert len(expand_occurrences(period, NY, in_2032.start, in_2032.end)) == 1

    @pytest.mark.asyncio
    async def test_recurring_period_returned_by_store(self):
        store = make_store()
        store.add_blocked_period(self._weekly(date(2029, 12, 31)))
        sources = ConstraintSources(store, make_config())
        bounds = local_day_bounds(MONDAY, NY)
        blocked = await sources.get_blocked_periods(make_profile(), bounds.start, bounds.end)
        assert blocked[0].start == local(MONDAY, 9)


class TestMemoryStoreSeeding:
    @pytest.mark.asyncio
    async def test_from_dict(self):
        store = MemoryStore.from_dict(
            {
                "profiles": [make_profile().model_dump(mode="json")],
                "services": [make_service().model_dump(mode="json")],
                "bookings": [make_booking(local(MONDAY, 9), "BK-1").model_dump(mode="json")],
            }
        )
        assert await store.provider_exists(PROVIDER)
        assert (await store.get_booking("BK-1")).start == local(MONDAY, 9)

    @pytest.mark.asyncio
    async def test_returns_copies(self, store):
        store.add_booking(make_booking(local(MONDAY, 9), "BK-1"))
        booking = await store.get_booking("BK-1")
        booking.status = BookingStatus.CANCELLED
        assert (await store.get_booking("BK-1")).status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self, store):
        booking = make_booking(local(MONDAY, 9), "BK-1")
        await store.insert_booking(booking)
        with pytest.raises(ValueError, match="already exists"):
            await store.insert_booking(booking)

    @pytest.mark.asyncio
    async def test_reset_drops_records_and_locks(self, store):
        store.add_booking(make_booking(local(MONDAY, 9), "BK-1"))
        async with store.provider_lock(PROVIDER):
            pass

        store.reset()

        assert not await store.provider_exists(PROVIDER)
        assert await store.get_service(SERVICE) is None
        assert await store.get_booking("BK-1") is None
        assert store._locks == {}

"""Tests for date range scanning and the strategy registry."""

import asyncio
from datetime import date, time, timedelta

import pytest

from slotbook.exceptions import ConstraintSourceError, InvalidInputError
from slotbook.scheduling.engine import AvailabilityEngine
from slotbook.scheduling.strategies import (
    FastStrategy,
    PreciseStrategy,
    create_strategy,
    get_registered_strategies,
)
from slotbook.schemas.availability_schema import BreakTime, ScanMode, Weekday
from slotbook.storage.memory_store import MemoryStore
from tests.conftest import (
    MONDAY,
    PROVIDER,
    SERVICE,
    FrozenClock,
    local,
    make_block,
    make_config,
    make_profile,
    make_service,
)

# 2030-01-01 is a Tuesday; the first seven days hold five workdays.
FIRST_WEEK = [date(2030, 1, d) for d in (1, 2, 3, 4, 7)]


class CountingStore(MemoryStore):
    """Tracks how many booking fetches overlap in time."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def list_bookings(self, provider_id, start, end, statuses):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return await super().list_bookings(provider_id, start, end, statuses)


class BrokenBookingsStore(MemoryStore):
    async def list_bookings(self, provider_id, start, end, statuses):
        raise ConnectionError("database unavailable")


def _seed(store, profile=None):
    store.add_provider(PROVIDER, profile or make_profile())
    store.add_service(make_service())
    return store


def _engine(store, clock=None, **config):
    return AvailabilityEngine(store, config=make_config(**config), clock=clock or FrozenClock())


class TestScanModes:
    @pytest.mark.asyncio
    async def test_fast_mode(self, engine):
        dates = await engine.compute_available_dates(PROVIDER, SERVICE, 7, ScanMode.FAST)
        assert dates == FIRST_WEEK

    @pytest.mark.asyncio
    async def test_precise_mode(self, engine):
        dates = await engine.compute_available_dates(PROVIDER, SERVICE, 7, "precise")
        assert dates == FIRST_WEEK

    @pytest.mark.asyncio
    async def test_precise_excludes_day_lost_to_breaks(self):
        monday_only = frozenset({Weekday.MONDAY})
        profile = make_profile(breaks=[BreakTime(start=time(9), end=time(17), days=monday_only)])
        engine = _engine(_seed(MemoryStore(), profile))

        fast = await engine.compute_available_dates(PROVIDER, SERVICE, 7, "fast")
        precise = await engine.compute_available_dates(PROVIDER, SERVICE, 7, "precise")

        assert MONDAY in fast
        assert MONDAY not in precise

    @pytest.mark.asyncio
    async def test_blocked_day_excluded_in_both_modes(self, store, engine):
        store.add_blocked_period(make_block(local(MONDAY, 0), local(MONDAY + timedelta(days=1), 0)))
        for mode in ScanMode:
            dates = await engine.compute_available_dates(PROVIDER, SERVICE, 7, mode)
            assert MONDAY not in dates

    @pytest.mark.asyncio
    async def test_default_horizon_from_config(self, store):
        engine = _engine(store, default_days_ahead=3)
        dates = await engine.compute_available_dates(PROVIDER, SERVICE)
        assert dates == [date(2030, 1, 1), date(2030, 1, 2), date(2030, 1, 3)]


class TestScanBehaviour:
    @pytest.mark.asyncio
    async def test_results_sorted(self, engine):
        dates = await engine.compute_available_dates(PROVIDER, SERVICE, 60, ScanMode.PRECISE)
        assert dates == sorted(dates)
        assert len(dates) == len(set(dates))

    @pytest.mark.asyncio
    async def test_today_in_provider_timezone(self, store):
        # 03:00 UTC Jan 8 is still Monday Jan 7 evening in New York.
        clock = FrozenClock(local(MONDAY, 22))
        dates = await _engine(store, clock).compute_available_dates(PROVIDER, SERVICE, 2, "fast")
        assert dates == [MONDAY, MONDAY + timedelta(days=1)]

    @pytest.mark.asyncio
    async def test_partially_elapsed_today_counts(self, store):
        clock = FrozenClock(local(MONDAY, 12))
        dates = await _engine(store, clock).compute_available_dates(PROVIDER, SERVICE, 1, "precise")
        assert dates == [MONDAY]

    @pytest.mark.asyncio
    async def test_fully_elapsed_today_excluded_in_precise_mode(self, store):
        clock = FrozenClock(local(MONDAY, 16))
        dates = await _engine(store, clock).compute_available_dates(PROVIDER, SERVICE, 1, "precise")
        assert dates == []

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        store = _seed(CountingStore())
        engine = _engine(store, scan_concurrency=3)

        await engine.compute_available_dates(PROVIDER, SERVICE, 21, "fast")

        assert 1 < store.peak <= 3

    @pytest.mark.asyncio
    async def test_fetch_failure_aborts_scan(self):
        engine = _engine(_seed(BrokenBookingsStore()))
        with pytest.raises(ConstraintSourceError):
            await engine.compute_available_dates(PROVIDER, SERVICE, 7, "precise")


class TestScanInput:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("days_ahead", [0, -1, 366, True, "7", 2.5])
    async def test_invalid_days_ahead(self, engine, days_ahead):
        with pytest.raises(InvalidInputError):
            await engine.compute_available_dates(PROVIDER, SERVICE, days_ahead)

    @pytest.mark.asyncio
    async def test_unknown_mode(self, engine):
        with pytest.raises(InvalidInputError, match="Unknown scan mode"):
            await engine.compute_available_dates(PROVIDER, SERVICE, 7, "thorough")


class TestStrategyRegistry:
    def test_builtin_strategies_registered(self):
        assert set(get_registered_strategies()) == {"fast", "precise"}

    def test_create_by_mode(self, engine):
        assert isinstance(create_strategy("fast", engine.generator, engine.probe), FastStrategy)
        assert isinstance(
            create_strategy(ScanMode.PRECISE, engine.generator, engine.probe), PreciseStrategy
        )

    def test_create_unknown_mode_raises(self, engine):
        with pytest.raises(InvalidInputError, match="Available"):
            create_strategy("exhaustive", engine.generator, engine.probe)

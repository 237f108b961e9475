"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytest

from slotbook.config import SchedulingConfig
from slotbook.scheduling.engine import AvailabilityEngine
from slotbook.scheduling.time_arithmetic import to_utc
from slotbook.schemas.availability_schema import (
    WORKDAYS,
    AvailabilityProfile,
    BlockedPeriod,
    BreakTime,
    DayHours,
    Weekday,
)
from slotbook.schemas.booking_schema import Booking, BookingStatus, Service
from slotbook.storage.memory_store import MemoryStore

NY = "America/New_York"
PROVIDER = "prov-1"
SERVICE = "svc-1"

# Tuesday 2030-01-01 07:00 in New York.
NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
SATURDAY = date(2030, 1, 12)


class FrozenClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def local(day: date, hour: int, minute: int = 0, tz: str = NY) -> datetime:
    """UTC instant of a wall-clock time in ``tz``."""
    return to_utc(datetime.combine(day, time(hour, minute)), tz)


def make_config(**overrides) -> SchedulingConfig:
    values = dict(
        slot_interval_minutes=15,
        default_days_ahead=30,
        max_days_ahead=365,
        scan_concurrency=10,
        fetch_timeout_sec=5.0,
        enforce_booking_window=False,
    )
    values.update(overrides)
    return SchedulingConfig(**values)


def make_profile(
    provider_id: str = PROVIDER,
    timezone_name: str = NY,
    breaks: Optional[list[BreakTime]] = None,
    hours: Optional[dict[Weekday, DayHours]] = None,
    **overrides,
) -> AvailabilityProfile:
    """Mon-Fri 09:00-17:00 New York, 30 minute buffer, one booking per slot."""
    working_hours = {
        day: DayHours(start=time(9), end=time(17), enabled=day in WORKDAYS) for day in Weekday
    }
    working_hours.update(hours or {})
    return AvailabilityProfile(
        provider_id=provider_id,
        timezone=timezone_name,
        working_hours=working_hours,
        break_times=breaks or [],
        **overrides,
    )


def make_service(
    service_id: str = SERVICE,
    duration: int = 60,
    buffer: int = 0,
    provider_id: str = PROVIDER,
    active: bool = True,
) -> Service:
    return Service(
        id=service_id,
        provider_id=provider_id,
        title="Consultation",
        duration_minutes=duration,
        buffer_minutes=buffer,
        active=active,
    )


def make_booking(
    start: datetime,
    booking_id: Optional[str] = None,
    status: BookingStatus = BookingStatus.CONFIRMED,
    service_id: str = SERVICE,
    provider_id: str = PROVIDER,
    **overrides,
) -> Booking:
    values = dict(
        provider_id=provider_id,
        service_id=service_id,
        start=start,
        status=status,
        customer_name="Dana Whitfield",
        customer_email="dana@example.com",
        customer_phone="2125550147",
    )
    if booking_id is not None:
        values["id"] = booking_id
    values.update(overrides)
    return Booking(**values)


def make_block(start: datetime, end: datetime, block_id: str = "blk-1", **overrides) -> BlockedPeriod:
    return BlockedPeriod(
        id=block_id, provider_id=PROVIDER, start=start, end=end, title="Away", **overrides
    )


def make_store(
    profile: Optional[AvailabilityProfile] = None, service: Optional[Service] = None
) -> MemoryStore:
    store = MemoryStore()
    store.add_provider(PROVIDER, profile or make_profile())
    store.add_service(service or make_service())
    return store


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store():
    return make_store()


@pytest.fixture
def engine(store, config, clock):
    return AvailabilityEngine(store, config=config, clock=clock)

"""
In-memory AvailabilityStore used by tests and the command line.

In production this would be backed by the platform's database; the memory
store keeps the same contract, including copy-on-read so callers cannot
mutate stored records behind its back.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Iterable, Optional

from slotbook.schemas.availability_schema import AvailabilityProfile, BlockedPeriod
from slotbook.schemas.booking_schema import Booking, BookingStatus, Service
from slotbook.storage.store import AvailabilityStore

logger = logging.getLogger(__name__)


class MemoryStore(AvailabilityStore):
    """Dict-backed store with one asyncio.Lock per provider.

    Locks are created on first use and kept for the life of the store (or
    until ``reset``); one lock per provider is bounded for a process-local
    adapter.
    """

    def __init__(self) -> None:
        self._providers: set[str] = set()
        self._profiles: dict[str, AvailabilityProfile] = {}
        self._services: dict[str, Service] = {}
        self._blocked: dict[str, list[BlockedPeriod]] = defaultdict(list)
        self._bookings: dict[str, Booking] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # Seeding

    def add_provider(self, provider_id: str, profile: Optional[AvailabilityProfile] = None) -> None:
        self._providers.add(provider_id)
        if profile is not None:
            if profile.provider_id != provider_id:
                raise ValueError(
                    f"profile belongs to {profile.provider_id}, not {provider_id}"
                )
            self._profiles[provider_id] = profile.model_copy(deep=True)

    def add_service(self, service: Service) -> None:
        self._services[service.id] = service.model_copy()

    def add_blocked_period(self, period: BlockedPeriod) -> None:
        self._blocked[period.provider_id].append(period.model_copy())

    def add_booking(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking.model_copy()

    def reset(self) -> None:
        """Drop every record. Useful between test cases sharing a store."""
        self._providers.clear()
        self._profiles.clear()
        self._services.clear()
        self._blocked.clear()
        self._bookings.clear()
        self._locks.clear()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryStore":
        """
        Build a seeded store from a JSON-shaped dict.

        Keys: ``providers`` (ids), ``profiles``, ``services``,
        ``blocked_periods`` and ``bookings`` (lists of model dicts).
        Providers referenced by a profile are registered implicitly.
        """
        store = cls()
        for provider_id in data.get("providers", []):
            store.add_provider(provider_id)
        for raw in data.get("profiles", []):
            profile = AvailabilityProfile.model_validate(raw)
            store.add_provider(profile.provider_id, profile)
        for raw in data.get("services", []):
            store.add_service(Service.model_validate(raw))
        for raw in data.get("blocked_periods", []):
            store.add_blocked_period(BlockedPeriod.model_validate(raw))
        for raw in data.get("bookings", []):
            store.add_booking(Booking.model_validate(raw))
        logger.info(
            "Seeded memory store: %d providers, %d services, %d bookings",
            len(store._providers),
            len(store._services),
            len(store._bookings),
        )
        return store

    # AvailabilityStore

    async def provider_exists(self, provider_id: str) -> bool:
        return provider_id in self._providers

    async def get_profile(self, provider_id: str) -> Optional[AvailabilityProfile]:
        profile = self._profiles.get(provider_id)
        return profile.model_copy(deep=True) if profile else None

    async def save_profile(self, profile: AvailabilityProfile) -> None:
        self._providers.add(profile.provider_id)
        self._profiles[profile.provider_id] = profile.model_copy(deep=True)

    async def get_service(self, service_id: str) -> Optional[Service]:
        service = self._services.get(service_id)
        return service.model_copy() if service else None

    async def list_blocked_periods(
        self, provider_id: str, start: datetime, end: datetime
    ) -> list[BlockedPeriod]:
        return [
            period.model_copy()
            for period in self._blocked.get(provider_id, [])
            if period.start < end and (period.end > start or period.is_recurring)
        ]

    async def list_bookings(
        self,
        provider_id: str,
        start: datetime,
        end: datetime,
        statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        wanted = set(statuses)
        return [
            booking.model_copy()
            for booking in self._bookings.values()
            if booking.provider_id == provider_id
            and booking.status in wanted
            and start <= booking.start < end
        ]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return booking.model_copy() if booking else None

    async def insert_booking(self, booking: Booking) -> Booking:
        if booking.id in self._bookings:
            raise ValueError(f"Booking {booking.id} already exists")
        self._bookings[booking.id] = booking.model_copy()
        logger.info("Booking stored: %s at %s", booking.id, booking.start.isoformat())
        return booking.model_copy()

    async def update_booking(self, booking: Booking) -> Booking:
        if booking.id not in self._bookings:
            raise KeyError(booking.id)
        self._bookings[booking.id] = booking.model_copy()
        return booking.model_copy()

    @asynccontextmanager
    async def provider_lock(self, provider_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(provider_id, asyncio.Lock())
        async with lock:
            yield

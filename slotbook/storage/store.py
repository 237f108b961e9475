"""
Outbound storage port for availability inputs and bookings.

Adapters (in-memory, relational, remote API) implement this interface; the
engine never touches persistence directly. Every method is async because real
adapters perform I/O.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Iterable, Optional

from slotbook.schemas.availability_schema import AvailabilityProfile, BlockedPeriod
from slotbook.schemas.booking_schema import Booking, BookingStatus, Service


class AvailabilityStore(ABC):
    """Abstract store consumed by ConstraintSources and BookingService."""

    @abstractmethod
    async def provider_exists(self, provider_id: str) -> bool:
        ...

    @abstractmethod
    async def get_profile(self, provider_id: str) -> Optional[AvailabilityProfile]:
        """Stored profile, or None when the provider never configured one."""
        ...

    @abstractmethod
    async def save_profile(self, profile: AvailabilityProfile) -> None:
        ...

    @abstractmethod
    async def get_service(self, service_id: str) -> Optional[Service]:
        ...

    @abstractmethod
    async def list_blocked_periods(
        self, provider_id: str, start: datetime, end: datetime
    ) -> list[BlockedPeriod]:
        """
        Blocked periods that may affect [start, end).

        Returns one-off periods overlapping the range plus every recurring
        period whose first occurrence starts before ``end``; the caller
        expands recurrences.
        """
        ...

    @abstractmethod
    async def list_bookings(
        self,
        provider_id: str,
        start: datetime,
        end: datetime,
        statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        """Bookings whose start lies in [start, end) with one of ``statuses``."""
        ...

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    async def insert_booking(self, booking: Booking) -> Booking:
        ...

    @abstractmethod
    async def update_booking(self, booking: Booking) -> Booking:
        ...

    @abstractmethod
    def provider_lock(self, provider_id: str) -> AsyncContextManager[None]:
        """
        Serialize booking writes for one provider.

        BookingService re-validates a slot and writes inside this context, so
        two concurrent writers cannot both take the last seat.
        """
        ...

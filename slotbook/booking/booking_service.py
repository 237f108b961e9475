"""
Booking write path: create, confirm, complete, cancel and reschedule.

The availability engine is advisory; this service is where a chosen slot is
committed. Every write that claims a slot runs inside the store's
per-provider lock and re-validates the slot immediately before writing, so
two customers racing for the last seat cannot both win. The loser receives
SlotUnavailableError and should pick another slot.
"""

from datetime import datetime
from typing import Callable, Optional

from slotbook.booking.policies import calculate_refund, reschedule_fee
from slotbook.booking.status_machine import BookingStatusMachine, BookingTrigger
from slotbook.exceptions import BookingNotFoundError, BookingPolicyError, InvalidInputError
from slotbook.logging_context import get_request_logger, request_scope
from slotbook.scheduling.engine import AvailabilityEngine
from slotbook.scheduling.time_arithmetic import ensure_utc, utc_now
from slotbook.schemas.booking_schema import (
    Actor,
    Booking,
    BookingRequest,
    BookingStatus,
    CancellationResult,
    RescheduleResult,
)
from slotbook.storage.constraint_sources import guarded_call
from slotbook.storage.store import AvailabilityStore

logger = get_request_logger(__name__)


class BookingService:
    """Commits bookings against an AvailabilityStore."""

    def __init__(
        self,
        store: AvailabilityStore,
        engine: Optional[AvailabilityEngine] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.clock = clock
        self.engine = engine or AvailabilityEngine(store, clock=clock)

    async def _write(self, awaitable, what: str) -> Booking:
        return await guarded_call(awaitable, what, self.engine.config.fetch_timeout_sec)

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await guarded_call(
            self.store.get_booking(booking_id), "booking", self.engine.config.fetch_timeout_sec
        )
        if booking is None:
            raise BookingNotFoundError(f"Booking not found: {booking_id}")
        return booking

    async def create_booking(self, request: BookingRequest) -> Booking:
        """
        Re-validate the requested slot and store a pending booking.

        Raises:
            SlotUnavailableError: If the slot was taken or blocked since it was shown.
            InvalidInputError: If the start is off the slot grid or the ids are unknown.
        """
        with request_scope():
            async with self.store.provider_lock(request.provider_id):
                await self.engine.validate_slot(
                    request.provider_id, request.service_id, request.start
                )
                booking = Booking(
                    provider_id=request.provider_id,
                    service_id=request.service_id,
                    start=request.start,
                    status=BookingStatus.PENDING,
                    customer_name=request.customer_name,
                    customer_email=request.customer_email,
                    customer_phone=request.customer_phone,
                    notes=request.notes,
                    created_at=self.clock(),
                )
                stored = await self._write(self.store.insert_booking(booking), "booking insert")
            logger.info(
                "Booking created: %s for %s at %s",
                stored.id,
                stored.provider_id,
                stored.start.isoformat(),
            )
            return stored

    async def _apply(self, booking_id: str, trigger: BookingTrigger) -> Booking:
        booking = await self.get_booking(booking_id)
        async with self.store.provider_lock(booking.provider_id):
            booking = await self.get_booking(booking_id)
            machine = BookingStatusMachine(booking.status)
            booking.status = machine.transition(trigger)
            return await self._write(self.store.update_booking(booking), "booking update")

    async def confirm_booking(self, booking_id: str) -> Booking:
        with request_scope():
            booking = await self._apply(booking_id, BookingTrigger.CONFIRM)
            logger.info("Booking confirmed: %s", booking_id)
            return booking

    async def complete_booking(self, booking_id: str) -> Booking:
        with request_scope():
            booking = await self._apply(booking_id, BookingTrigger.COMPLETE)
            logger.info("Booking completed: %s", booking_id)
            return booking

    async def cancel_booking(
        self, booking_id: str, reason: str, cancelled_by: Actor = Actor.CUSTOMER
    ) -> CancellationResult:
        """Cancel a booking and compute the refund tier from the provider's policy."""
        with request_scope():
            if not reason or not reason.strip():
                raise InvalidInputError("Cancellation reason is required")
            cancelled_by = Actor(cancelled_by)

            booking = await self.get_booking(booking_id)
            async with self.store.provider_lock(booking.provider_id):
                booking = await self.get_booking(booking_id)
                profile = await self.engine.sources.get_profile(booking.provider_id)
                policy = profile.cancellation_policy
                if cancelled_by == Actor.PROVIDER and not policy.allow_provider_cancellation:
                    raise BookingPolicyError("Provider cancellation is not allowed by policy")

                machine = BookingStatusMachine(booking.status)
                booking.status = machine.transition(BookingTrigger.CANCEL)
                now = self.clock()
                percentage, refund_status = calculate_refund(policy, booking.start, now)
                booking.cancellation_reason = reason.strip()
                booking.cancelled_at = now
                stored = await self._write(self.store.update_booking(booking), "booking update")

            logger.info(
                "Booking cancelled by %s: %s (%s, %d%%)",
                cancelled_by.value,
                booking_id,
                refund_status.value,
                percentage,
            )
            return CancellationResult(
                booking=stored, refund_percentage=percentage, refund_status=refund_status
            )

    async def reschedule_booking(
        self, booking_id: str, new_start: datetime, requested_by: Actor = Actor.CUSTOMER
    ) -> RescheduleResult:
        """
        Move a booking to ``new_start`` after re-validating the new slot.

        The booking being moved does not count against the new slot's
        capacity. ``rescheduled_from`` keeps the first booking reference
        across repeated reschedules.
        """
        with request_scope():
            new_start = ensure_utc(new_start)
            requested_by = Actor(requested_by)

            booking = await self.get_booking(booking_id)
            async with self.store.provider_lock(booking.provider_id):
                booking = await self.get_booking(booking_id)
                profile = await self.engine.sources.get_profile(booking.provider_id)
                policy = profile.rescheduling_policy
                if requested_by == Actor.PROVIDER and not policy.allow_provider_rescheduling:
                    raise BookingPolicyError("Provider rescheduling is not allowed by policy")

                machine = BookingStatusMachine(booking.status)
                machine.transition(BookingTrigger.RESCHEDULE)
                if booking.reschedule_count >= policy.max_reschedules_per_booking:
                    raise BookingPolicyError(
                        f"Maximum reschedules reached ({policy.max_reschedules_per_booking})"
                    )
                now = self.clock()
                if new_start <= now:
                    raise InvalidInputError("New appointment time must be in the future")

                fee = 0
                if requested_by == Actor.CUSTOMER:
                    fee = reschedule_fee(policy, booking.start, now)

                await self.engine.validate_slot(
                    booking.provider_id,
                    booking.service_id,
                    new_start,
                    exclude_booking_id=booking.id,
                )
                previous_start = booking.start
                booking.start = new_start
                booking.reschedule_count += 1
                booking.rescheduled_from = booking.rescheduled_from or booking.id
                stored = await self._write(self.store.update_booking(booking), "booking update")

            logger.info(
                "Booking rescheduled: %s from %s to %s (fee %d)",
                booking_id,
                previous_start.isoformat(),
                new_start.isoformat(),
                fee,
            )
            return RescheduleResult(booking=stored, previous_start=previous_start, fee_cents=fee)

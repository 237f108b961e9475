from slotbook.booking.booking_service import BookingService
from slotbook.booking.policies import calculate_refund, reschedule_fee
from slotbook.booking.status_machine import (
    BookingStatusMachine,
    BookingTrigger,
    InvalidTransitionError,
)

__all__ = [
    "BookingService",
    "BookingStatusMachine",
    "BookingTrigger",
    "InvalidTransitionError",
    "calculate_refund",
    "reschedule_fee",
]

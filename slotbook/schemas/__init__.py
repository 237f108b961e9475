from slotbook.schemas.availability_schema import (
    AvailabilityProfile,
    BlockedPeriod,
    BreakTime,
    DayHours,
    ScanMode,
    Weekday,
)
from slotbook.schemas.booking_schema import (
    Booking,
    BookingRequest,
    BookingStatus,
    Service,
    TimeSlot,
)

__all__ = [
    "AvailabilityProfile", "BlockedPeriod", "BreakTime", "DayHours", "ScanMode", "Weekday",
    "Booking", "BookingRequest", "BookingStatus", "Service", "TimeSlot",
]

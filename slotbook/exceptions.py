"""Error taxonomy shared by the engine, the constraint sources and bookings."""


class SchedulingError(Exception):
    """Base class for every error raised by slotbook."""


class InvalidInputError(SchedulingError, ValueError):
    """Raised when a caller passes malformed or unknown input."""


class ProviderNotFoundError(InvalidInputError):
    """Raised when a provider id does not exist in the store."""


class ServiceNotFoundError(InvalidInputError):
    """Raised when a service id is unknown or belongs to another provider."""


class BookingNotFoundError(InvalidInputError):
    """Raised when a booking id does not exist in the store."""


class ConstraintSourceError(SchedulingError):
    """Raised when availability inputs could not be fetched (storage down, timeout).

    Distinct from an empty result: callers must be able to tell
    "no slots" apart from "could not determine".
    """


class SlotUnavailableError(SchedulingError):
    """Raised at write time when the chosen slot is no longer bookable.

    Callers should let the customer pick another slot.
    """

    def __init__(self, message: str, reason: str = "unavailable") -> None:
        super().__init__(message)
        self.reason = reason


class BookingPolicyError(SchedulingError):
    """Raised when a provider policy refuses a cancellation or reschedule."""

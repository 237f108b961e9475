"""
Finite state machine for the booking status lifecycle.

A booking starts pending, is confirmed by the provider, and ends either
completed or cancelled. Rescheduling keeps the current status. Every allowed
move is listed in TRANSITIONS; anything else is rejected with the triggers
that would have been valid.

Usage:
    sm = BookingStatusMachine(BookingStatus.PENDING)
    sm.transition(BookingTrigger.CONFIRM)
    assert sm.current_status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from slotbook.exceptions import SchedulingError
from slotbook.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that move a booking between statuses."""
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    RESCHEDULE = "reschedule"


@dataclass
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger


@dataclass
class StatusEntry:
    """Recorded history entry for a status change."""
    status: BookingStatus
    entered_at: datetime
    trigger: Optional[BookingTrigger] = None


class InvalidTransitionError(SchedulingError):
    """Raised when a trigger is not valid from the booking's current status."""


class BookingStatusMachine:
    """Guards status changes of a single booking."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingTrigger.CONFIRM),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingTrigger.COMPLETE),
        Transition(BookingStatus.PENDING, BookingStatus.PENDING, BookingTrigger.RESCHEDULE),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CONFIRMED, BookingTrigger.RESCHEDULE),
    ]

    TERMINAL = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})

    def __init__(self, status: BookingStatus = BookingStatus.PENDING) -> None:
        self._current_status = status
        self._history: list[StatusEntry] = [
            StatusEntry(status=status, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_status(self) -> BookingStatus:
        return self._current_status

    def transition(self, trigger: BookingTrigger) -> BookingStatus:
        """
        Apply ``trigger`` and return the new status.

        Raises:
            InvalidTransitionError: If no transition exists for the trigger.
        """
        for t in self.TRANSITIONS:
            if t.from_status == self._current_status and t.trigger == trigger:
                old_status = self._current_status
                self._current_status = t.to_status
                self._history.append(StatusEntry(
                    status=self._current_status,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Booking status: %s -> %s (trigger: %s)",
                    old_status.value, self._current_status.value, trigger.value,
                )
                return self._current_status

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"Cannot {trigger.value} a booking that is '{self._current_status.value}'. "
            f"Valid triggers: {valid}"
        )

    def can(self, trigger: BookingTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def get_valid_triggers(self) -> list[BookingTrigger]:
        """Return all triggers valid from the current status."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == self._current_status]

    def get_history(self) -> list[StatusEntry]:
        return list(self._history)

    def is_terminal(self) -> bool:
        return self._current_status in self.TERMINAL

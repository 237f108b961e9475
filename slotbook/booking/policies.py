"""Refund and reschedule-fee rules derived from a provider's policies."""

from datetime import datetime

from slotbook.exceptions import BookingPolicyError
from slotbook.schemas.availability_schema import CancellationPolicy, ReschedulingPolicy
from slotbook.schemas.booking_schema import RefundStatus


def hours_until(start: datetime, now: datetime) -> float:
    return (start - now).total_seconds() / 3600


def calculate_refund(
    policy: CancellationPolicy, start: datetime, now: datetime
) -> tuple[int, RefundStatus]:
    """Refund percentage and tier for cancelling an appointment at ``start``.

    Examples:
        30h ahead with the default policy -> (100, FULL_REFUND)
        5h ahead  -> (50, PARTIAL_REFUND)
        1h ahead  -> (0, NO_REFUND)

    Inside ``no_refund_hours`` (by default: once the appointment has started)
    the booking can no longer be cancelled.
    """
    notice = hours_until(start, now)
    if notice >= policy.free_cancellation_hours:
        return 100, RefundStatus.FULL_REFUND
    if notice >= policy.partial_refund_hours:
        return policy.partial_refund_percentage, RefundStatus.PARTIAL_REFUND
    if notice >= policy.no_refund_hours:
        return 0, RefundStatus.NO_REFUND
    raise BookingPolicyError(
        f"Appointments can only be cancelled at least {policy.no_refund_hours} hours in advance"
    )


def reschedule_fee(policy: ReschedulingPolicy, current_start: datetime, now: datetime) -> int:
    """Fee in cents for moving an appointment that currently starts at ``current_start``.

    Free outside ``free_rescheduling_hours``; the configured fee applies down
    to ``rescheduling_fee_hours``; closer than that the customer can no
    longer reschedule.
    """
    notice = hours_until(current_start, now)
    if notice >= policy.free_rescheduling_hours:
        return 0
    if notice >= policy.rescheduling_fee_hours:
        return policy.rescheduling_fee_cents
    raise BookingPolicyError(
        f"Appointments can only be rescheduled at least "
        f"{policy.rescheduling_fee_hours} hours in advance"
    )

"""Service, booking and time slot data models."""

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator

from slotbook.schemas.availability_schema import AvailabilityProfile, UtcDatetime
from slotbook.utils import is_valid_email, is_valid_phone, normalize_phone


class Service(BaseModel):
    """A bookable service offered by one provider."""

    id: str
    provider_id: str
    title: str = ""
    duration_minutes: int = Field(gt=0)
    buffer_minutes: int = Field(0, ge=0)
    active: bool = True

    def effective_buffer(self, profile: AvailabilityProfile) -> int:
        """Service buffer when set (> 0), otherwise the provider default."""
        if self.buffer_minutes > 0:
            return self.buffer_minutes
        return profile.default_buffer_minutes

    def slot_minutes(self, profile: AvailabilityProfile) -> int:
        return self.duration_minutes + self.effective_buffer(profile)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Only these statuses occupy capacity.
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class Actor(str, Enum):
    """Who initiated a cancellation or reschedule."""

    CUSTOMER = "customer"
    PROVIDER = "provider"


def _booking_ref() -> str:
    return f"BK-{uuid.uuid4().hex[:8].upper()}"


class Booking(BaseModel):
    """A stored booking. The end is derived from the service, never stored."""

    id: str = Field(default_factory=_booking_ref)
    provider_id: str
    service_id: str
    start: UtcDatetime
    status: BookingStatus = BookingStatus.PENDING
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    notes: Optional[str] = None
    reschedule_count: int = 0
    rescheduled_from: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def end_for(self, service: Service) -> datetime:
        return self.start + timedelta(minutes=service.duration_minutes)


class BookingRequest(BaseModel):
    """Validated input for creating a booking on a chosen slot start."""

    provider_id: str
    service_id: str
    start: UtcDatetime
    customer_name: str
    customer_email: str
    customer_phone: str
    notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("customer_email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Valid email is required")
        return value.strip().lower()

    @field_validator("customer_phone")
    @classmethod
    def _valid_phone(cls, value: str) -> str:
        if not is_valid_phone(value):
            raise ValueError("Valid phone number is required")
        return normalize_phone(value)


class TimeSlot(BaseModel):
    """A candidate appointment window with its availability verdict."""

    model_config = ConfigDict(frozen=True)

    start: UtcDatetime
    end: UtcDatetime
    available: bool
    display_timezone: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def local_start(self) -> datetime:
        if self.display_timezone is None:
            return self.start
        return self.start.astimezone(ZoneInfo(self.display_timezone))

    @property
    def local_end(self) -> datetime:
        if self.display_timezone is None:
            return self.end
        return self.end.astimezone(ZoneInfo(self.display_timezone))


class RefundStatus(str, Enum):
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"
    NO_REFUND = "no_refund"


class CancellationResult(BaseModel):
    booking: Booking
    refund_percentage: int
    refund_status: RefundStatus


class RescheduleResult(BaseModel):
    booking: Booking
    previous_start: UtcDatetime
    fee_cents: int = 0

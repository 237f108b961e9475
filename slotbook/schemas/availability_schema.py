"""Provider availability profile, blocked periods and scan modes."""

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from slotbook.config import ProfileDefaults, settings
from slotbook.utils import as_utc, minutes_between, parse_hhmm

# Aware datetime normalized to UTC; naive values are rejected.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class Weekday(str, Enum):
    """Days of the week, Monday first to match ``date.weekday()``."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]


WORKDAYS = frozenset(
    {Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY}
)


class ScanMode(str, Enum):
    """How a date range is checked for bookable days."""

    FAST = "fast"
    PRECISE = "precise"


class DayHours(BaseModel):
    """Working hours for one weekday, wall-clock in the provider's timezone."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time
    enabled: bool = True

    @model_validator(mode="after")
    def _start_before_end(self) -> "DayHours":
        if self.start >= self.end:
            raise ValueError(f"working hours start {self.start} must be before end {self.end}")
        return self

    @property
    def span_minutes(self) -> int:
        return minutes_between(self.start, self.end)


class BreakTime(BaseModel):
    """A recurring wall-clock break applied on the listed weekdays."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time
    days: frozenset[Weekday] = WORKDAYS

    @model_validator(mode="after")
    def _start_before_end(self) -> "BreakTime":
        if self.start >= self.end:
            raise ValueError(f"break start {self.start} must be before end {self.end}")
        return self

    def applies_to(self, weekday: Weekday) -> bool:
        return weekday in self.days


class CancellationPolicy(BaseModel):
    free_cancellation_hours: int = Field(24, ge=0)
    partial_refund_hours: int = Field(2, ge=0)
    no_refund_hours: int = Field(0, ge=0)
    partial_refund_percentage: int = Field(50, ge=0, le=100)
    allow_provider_cancellation: bool = True


class ReschedulingPolicy(BaseModel):
    free_rescheduling_hours: int = Field(24, ge=0)
    rescheduling_fee_hours: int = Field(2, ge=0)
    rescheduling_fee_cents: int = Field(0, ge=0)
    max_reschedules_per_booking: int = Field(3, ge=0)
    allow_provider_rescheduling: bool = True


class AvailabilityProfile(BaseModel):
    """
    One provider's recurring availability rules and booking policies.

    Working hours are keyed by Weekday and must cover all seven days;
    a day off is an entry with ``enabled=False``.
    """

    provider_id: str
    timezone: str
    working_hours: dict[Weekday, DayHours]
    break_times: list[BreakTime] = Field(default_factory=list)
    default_buffer_minutes: int = Field(30, ge=0)
    max_bookings_per_slot: int = Field(1, ge=1)
    min_advance_booking_hours: int = Field(2, ge=0)
    max_advance_booking_days: int = Field(30, ge=1)
    cancellation_policy: CancellationPolicy = Field(default_factory=CancellationPolicy)
    rescheduling_policy: ReschedulingPolicy = Field(default_factory=ReschedulingPolicy)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown IANA timezone: {value!r}") from None
        return value

    @field_validator("working_hours")
    @classmethod
    def _every_weekday_present(cls, value: dict[Weekday, DayHours]) -> dict[Weekday, DayHours]:
        missing = [day.value for day in Weekday if day not in value]
        if missing:
            raise ValueError(f"working hours missing for: {', '.join(missing)}")
        return value

    def hours_for(self, weekday: Weekday) -> Optional[DayHours]:
        return self.working_hours.get(weekday)

    def breaks_for(self, weekday: Weekday) -> list[BreakTime]:
        return sorted(
            (b for b in self.break_times if b.applies_to(weekday)),
            key=lambda b: (b.start, b.end),
        )

    @classmethod
    def with_defaults(
        cls, provider_id: str, defaults: ProfileDefaults = settings.profile_defaults
    ) -> "AvailabilityProfile":
        """Build the profile a provider gets before editing their availability."""
        start = parse_hhmm(defaults.workday_start)
        end = parse_hhmm(defaults.workday_end)
        return cls(
            provider_id=provider_id,
            timezone=defaults.timezone,
            working_hours={
                day: DayHours(start=start, end=end, enabled=day in WORKDAYS)
                for day in Weekday
            },
            default_buffer_minutes=defaults.buffer_minutes,
            max_bookings_per_slot=defaults.max_bookings_per_slot,
            min_advance_booking_hours=defaults.min_advance_booking_hours,
            max_advance_booking_days=defaults.max_advance_booking_days,
        )


class BlockType(str, Enum):
    MANUAL = "manual"
    HOLIDAY = "holiday"
    VACATION = "vacation"
    MAINTENANCE = "maintenance"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    YEARLY = "yearly"


class RecurrenceRule(BaseModel):
    """Repeats a blocked period every ``interval`` units until ``until`` (inclusive)."""

    model_config = ConfigDict(frozen=True)

    frequency: RecurrenceFrequency
    interval: int = Field(1, ge=1)
    until: Optional[date] = None


class BlockedPeriod(BaseModel):
    """Explicit provider unavailability: vacation, holiday, maintenance."""

    id: str
    provider_id: str
    start: UtcDatetime
    end: UtcDatetime
    title: str = ""
    block_type: BlockType = BlockType.MANUAL
    description: Optional[str] = None
    recurrence: Optional[RecurrenceRule] = None

    @model_validator(mode="after")
    def _start_before_end(self) -> "BlockedPeriod":
        if self.start >= self.end:
            raise ValueError(f"blocked period {self.id} must start before it ends")
        return self

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

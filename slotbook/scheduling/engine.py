"""
Inbound interface of the availability engine.

AvailabilityEngine wires the constraint sources, slot generator, fast probe
and date scanner together and validates caller input. It is read-only and
advisory: the booking write path re-validates a chosen slot with
``validate_slot`` before committing.

Usage:
    engine = AvailabilityEngine(MemoryStore.from_dict(fixture))
    slots = await engine.compute_slots("prov-1", "svc-1", "2030-01-07")
    dates = await engine.compute_available_dates("prov-1", "svc-1", 14, "precise")
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

from slotbook.config import ProfileDefaults, SchedulingConfig, settings
from slotbook.exceptions import InvalidInputError, SlotUnavailableError
from slotbook.logging_context import get_request_logger, request_scope
from slotbook.scheduling.availability_probe import FastAvailabilityProbe
from slotbook.scheduling.date_scanner import DateRangeScanner
from slotbook.scheduling.slot_generator import SlotGenerator
from slotbook.scheduling.time_arithmetic import ensure_utc, from_utc, get_zone, utc_now
from slotbook.schemas.availability_schema import ScanMode
from slotbook.schemas.booking_schema import TimeSlot
from slotbook.storage.constraint_sources import ConstraintSources
from slotbook.storage.store import AvailabilityStore
from slotbook.utils import parse_iso_date

logger = get_request_logger(__name__)

DateInput = Union[date, str]


def _coerce_date(value: DateInput) -> date:
    # datetime is a date subclass; a datetime here is almost always a caller bug.
    if isinstance(value, datetime):
        raise InvalidInputError(
            f"Expected a calendar date, got datetime {value.isoformat()}"
        )
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise InvalidInputError(f"Malformed date {value!r}, expected YYYY-MM-DD") from None
    raise InvalidInputError(f"Expected a date or YYYY-MM-DD string, got {type(value).__name__}")


def _coerce_mode(value: Union[ScanMode, str]) -> ScanMode:
    try:
        return ScanMode(value)
    except ValueError:
        choices = [m.value for m in ScanMode]
        raise InvalidInputError(f"Unknown scan mode {value!r}. Available: {choices}") from None


class AvailabilityEngine:
    """Computes bookable slots and dates for a provider's service."""

    def __init__(
        self,
        store: AvailabilityStore,
        config: SchedulingConfig = settings.scheduling,
        clock: Callable[[], datetime] = utc_now,
        defaults: ProfileDefaults = settings.profile_defaults,
    ):
        self.config = config
        self.clock = clock
        self.sources = ConstraintSources(store, config, defaults)
        self.generator = SlotGenerator(self.sources, config, clock)
        self.probe = FastAvailabilityProbe(self.sources, config, clock)
        self.scanner = DateRangeScanner(self.generator, self.probe, config, clock)

    async def compute_slots(
        self,
        provider_id: str,
        service_id: str,
        day: DateInput,
        customer_timezone: Optional[str] = None,
    ) -> list[TimeSlot]:
        """Every candidate slot of ``day`` with its availability verdict."""
        with request_scope():
            target = _coerce_date(day)
            if customer_timezone is not None:
                get_zone(customer_timezone)
            profile = await self.sources.get_profile(provider_id)
            service = await self.sources.get_service(provider_id, service_id)
            slots = await self.generator.generate(
                profile, service, target, display_timezone=customer_timezone
            )
            logger.info(
                "Computed %d slots for %s/%s on %s",
                len(slots),
                provider_id,
                service_id,
                target.isoformat(),
            )
            return slots

    async def has_availability(self, provider_id: str, service_id: str, day: DateInput) -> bool:
        """Fast probe for a single date."""
        with request_scope():
            target = _coerce_date(day)
            profile = await self.sources.get_profile(provider_id)
            service = await self.sources.get_service(provider_id, service_id)
            return await self.probe.has_availability(profile, service, target)

    async def compute_available_dates(
        self,
        provider_id: str,
        service_id: str,
        days_ahead: Optional[int] = None,
        mode: Union[ScanMode, str] = ScanMode.FAST,
    ) -> list[date]:
        """Dates from today (provider zone) through ``days_ahead - 1`` with availability."""
        with request_scope():
            if days_ahead is None:
                days_ahead = self.config.default_days_ahead
            if isinstance(days_ahead, bool) or not isinstance(days_ahead, int):
                raise InvalidInputError(f"days_ahead must be an integer, got {days_ahead!r}")
            if not 1 <= days_ahead <= self.config.max_days_ahead:
                raise InvalidInputError(
                    f"days_ahead must be between 1 and {self.config.max_days_ahead}, "
                    f"got {days_ahead}"
                )
            scan_mode = _coerce_mode(mode)
            profile = await self.sources.get_profile(provider_id)
            service = await self.sources.get_service(provider_id, service_id)
            return await self.scanner.scan(profile, service, days_ahead, scan_mode)

    async def validate_slot(
        self,
        provider_id: str,
        service_id: str,
        start: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> TimeSlot:
        """
        Re-check a chosen slot start immediately before a booking write.

        Returns the matching available slot. Raises InvalidInputError for a
        start off the generation grid and SlotUnavailableError (with the
        failing check as ``reason``) when the slot is no longer bookable.
        """
        with request_scope():
            start = ensure_utc(start)
            profile = await self.sources.get_profile(provider_id)
            service = await self.sources.get_service(provider_id, service_id)
            if not service.active:
                raise InvalidInputError(f"Service {service_id} is not active")

            day = from_utc(start, profile.timezone).date()
            verdicts = await self.generator.generate_verdicts(
                profile, service, day, exclude_booking_id=exclude_booking_id
            )
            for verdict in verdicts:
                if verdict.slot.start != start:
                    continue
                if verdict.rejection is not None:
                    logger.warning(
                        "Slot %s for %s rejected at write time: %s",
                        start.isoformat(),
                        provider_id,
                        verdict.rejection.value,
                    )
                    raise SlotUnavailableError(
                        f"Slot at {start.isoformat()} is no longer available "
                        f"({verdict.rejection.value})",
                        reason=verdict.rejection.value,
                    )
                return verdict.slot

            slot_length = timedelta(minutes=service.slot_minutes(profile))
            fits = (
                verdicts
                and verdicts[0].slot.start <= start
                and start + slot_length <= verdicts[-1].slot.end
            )
            if fits:
                raise InvalidInputError(
                    f"Start {start.isoformat()} is not aligned to the "
                    f"{self.config.slot_interval_minutes}-minute slot grid"
                )
            raise SlotUnavailableError(
                f"Slot at {start.isoformat()} is outside working hours",
                reason="outside_working_hours",
            )

"""
Concurrent scan of upcoming dates for bookable availability.

Each date is an independent fetch-and-compute operation, so all dates of the
horizon run concurrently (bounded by a semaphore) and the result is sorted
afterwards; completion order never affects the output. Today, in the
provider's timezone, is always the first candidate date: a partially elapsed
day can still have open slots.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Union

from slotbook.config import SchedulingConfig, settings
from slotbook.scheduling.availability_probe import FastAvailabilityProbe
from slotbook.scheduling.slot_generator import SlotGenerator
from slotbook.scheduling.strategies import AvailabilityStrategy, create_strategy
from slotbook.scheduling.time_arithmetic import today_in, utc_now
from slotbook.schemas.availability_schema import AvailabilityProfile, ScanMode
from slotbook.schemas.booking_schema import Service

logger = logging.getLogger(__name__)


class DateRangeScanner:
    """Returns the dates of the next ``days_ahead`` days with availability."""

    def __init__(
        self,
        generator: SlotGenerator,
        probe: FastAvailabilityProbe,
        config: SchedulingConfig = settings.scheduling,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.generator = generator
        self.probe = probe
        self.config = config
        self.clock = clock

    def strategy_for(self, mode: Union[ScanMode, str]) -> AvailabilityStrategy:
        return create_strategy(mode, self.generator, self.probe)

    def candidate_dates(self, profile: AvailabilityProfile, days_ahead: int) -> list[date]:
        today = today_in(profile.timezone, self.clock())
        return [today + timedelta(days=offset) for offset in range(days_ahead)]

    async def scan(
        self,
        profile: AvailabilityProfile,
        service: Service,
        days_ahead: int,
        mode: Union[ScanMode, str] = ScanMode.FAST,
    ) -> list[date]:
        strategy = self.strategy_for(mode)
        days = self.candidate_dates(profile, days_ahead)
        semaphore = asyncio.Semaphore(self.config.scan_concurrency)

        async def check(day: date) -> bool:
            async with semaphore:
                return await strategy.date_has_availability(profile, service, day)

        tasks = [asyncio.ensure_future(check(day)) for day in days]
        try:
            results = await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            raise

        available = sorted(day for day, ok in zip(days, results) if ok)
        logger.info(
            "Scanned %d days for provider %s (%s mode): %d bookable",
            len(days),
            profile.provider_id,
            strategy.mode.value,
            len(available),
        )
        return available


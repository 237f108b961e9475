"""
Per-date availability strategies selected by scan mode.

The fast and precise answers are kept as two named strategies behind one
interface and never blended: callers choose a ScanMode explicitly. Strategy
classes are registered by mode here so the scanner resolves them without
importing either implementation directly.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Union

from slotbook.exceptions import InvalidInputError
from slotbook.scheduling.availability_probe import FastAvailabilityProbe
from slotbook.scheduling.slot_generator import SlotGenerator
from slotbook.schemas.availability_schema import AvailabilityProfile, ScanMode
from slotbook.schemas.booking_schema import Service

logger = logging.getLogger(__name__)


class AvailabilityStrategy(ABC):
    """Decides whether one date has at least one bookable slot."""

    mode: ScanMode

    @abstractmethod
    async def date_has_availability(
        self, profile: AvailabilityProfile, service: Service, day: date
    ) -> bool:
        ...


class FastStrategy(AvailabilityStrategy):
    """Heuristic answer from the probe; may be optimistic."""

    mode = ScanMode.FAST

    def __init__(self, probe: FastAvailabilityProbe):
        self.probe = probe

    @classmethod
    def build(cls, generator: SlotGenerator, probe: FastAvailabilityProbe) -> "FastStrategy":
        return cls(probe)

    async def date_has_availability(
        self, profile: AvailabilityProfile, service: Service, day: date
    ) -> bool:
        return await self.probe.has_availability(profile, service, day)


class PreciseStrategy(AvailabilityStrategy):
    """Exact answer: generates the day's slots and looks for an available one."""

    mode = ScanMode.PRECISE

    def __init__(self, generator: SlotGenerator):
        self.generator = generator

    @classmethod
    def build(cls, generator: SlotGenerator, probe: FastAvailabilityProbe) -> "PreciseStrategy":
        return cls(generator)

    async def date_has_availability(
        self, profile: AvailabilityProfile, service: Service, day: date
    ) -> bool:
        return await self.generator.has_available_slot(profile, service, day)


StrategyFactory = Callable[[SlotGenerator, FastAvailabilityProbe], AvailabilityStrategy]

_STRATEGY_REGISTRY: dict[ScanMode, StrategyFactory] = {}


def register_strategy(mode: ScanMode, factory: StrategyFactory) -> None:
    """Register a strategy factory for a scan mode."""
    _STRATEGY_REGISTRY[mode] = factory
    logger.debug("Strategy registered: %s", mode.value)


def create_strategy(
    mode: Union[ScanMode, str], generator: SlotGenerator, probe: FastAvailabilityProbe
) -> AvailabilityStrategy:
    """Create the strategy registered for ``mode``.

    Raises:
        InvalidInputError: If the mode is unknown or has no registered strategy.
    """
    available = [m.value for m in _STRATEGY_REGISTRY]
    try:
        scan_mode = ScanMode(mode)
    except ValueError:
        raise InvalidInputError(
            f"Unknown scan mode {mode!r}. Available: {available}"
        ) from None
    if scan_mode not in _STRATEGY_REGISTRY:
        raise InvalidInputError(
            f"Scan mode '{scan_mode.value}' not registered. Available: {available}"
        )
    return _STRATEGY_REGISTRY[scan_mode](generator, probe)


def get_registered_strategies() -> list[str]:
    """Return the scan modes that have a registered strategy."""
    return [mode.value for mode in _STRATEGY_REGISTRY]


def _auto_register() -> None:
    """Register the built-in strategies. Called once at import time."""
    register_strategy(ScanMode.FAST, FastStrategy.build)
    register_strategy(ScanMode.PRECISE, PreciseStrategy.build)


_auto_register()

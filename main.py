"""
Command line entry point for querying availability from a JSON fixture.

Loads providers, profiles, services, blocked periods and bookings into the
in-memory store and prints the engine's answer as JSON.

Usage:
    python main.py slots --data fixtures/sample_provider.json \
        --provider prov-1 --service svc-consult --date 2030-01-07
    python main.py dates --data fixtures/sample_provider.json \
        --provider prov-1 --service svc-consult --days 14 --mode precise
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from slotbook.config import settings
from slotbook.exceptions import SchedulingError
from slotbook.scheduling.engine import AvailabilityEngine
from slotbook.schemas.availability_schema import ScanMode
from slotbook.storage.memory_store import MemoryStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute bookable slots and dates for a provider's service."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging output.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--data", type=str, required=True, help="Path to a JSON fixture.")
        sub.add_argument("--provider", type=str, required=True, help="Provider id.")
        sub.add_argument("--service", type=str, required=True, help="Service id.")

    slots = subparsers.add_parser("slots", help="List every candidate slot of one date.")
    add_common(slots)
    slots.add_argument("--date", type=str, required=True, help="Date as YYYY-MM-DD.")
    slots.add_argument(
        "--timezone",
        type=str,
        default=None,
        help="Customer timezone for displayed local times (default: provider's).",
    )
    slots.add_argument(
        "--available-only",
        action="store_true",
        help="Only print slots that can be booked.",
    )

    dates = subparsers.add_parser("dates", help="List upcoming dates with availability.")
    add_common(dates)
    dates.add_argument(
        "--days",
        type=int,
        default=settings.scheduling.default_days_ahead,
        help="Number of days to scan, starting today.",
    )
    dates.add_argument(
        "--mode",
        choices=[m.value for m in ScanMode],
        default=ScanMode.FAST.value,
        help="fast (heuristic probe) or precise (full slot generation).",
    )
    return parser


async def run(args: argparse.Namespace, store: MemoryStore) -> Any:
    engine = AvailabilityEngine(store)
    if args.command == "slots":
        slots = await engine.compute_slots(args.provider, args.service, args.date, args.timezone)
        if args.available_only:
            slots = [s for s in slots if s.available]
        return [
            {
                "start": slot.start.isoformat(),
                "end": slot.end.isoformat(),
                "local_start": slot.local_start.isoformat(),
                "local_end": slot.local_end.isoformat(),
                "available": slot.available,
            }
            for slot in slots
        ]
    days = await engine.compute_available_dates(args.provider, args.service, args.days, args.mode)
    return [day.isoformat() for day in days]


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    data_path = Path(args.data)
    if not data_path.exists():
        logger.error("Fixture not found: %s", data_path)
        sys.exit(1)

    try:
        store = MemoryStore.from_dict(json.loads(data_path.read_text(encoding="utf-8")))
        result = asyncio.run(run(args, store))
    except (SchedulingError, ValueError) as exc:
        logger.error("%s", exc)
        sys.exit(1)

    sys.stdout.write(json.dumps(result, indent=2) + "\n")


if __name__ == "__main__":
    main()

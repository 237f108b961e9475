"""
Slot generation, fast availability probing and date scanning.

Import the engine from ``slotbook.scheduling.engine``; this package does not
re-export it because the constraint sources import ``time_arithmetic`` from
here.
"""

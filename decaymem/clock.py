"""Time source abstraction.

A store reads its clock exactly once per public operation and passes that
single instant to every score computation made during the call.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Return the current wall-clock time in UTC."""
    return datetime.now(UTC)


def resolve_clock(clock_fn: Clock | None) -> Clock:
    """Return *clock_fn*, or the system clock when none is configured."""
    return clock_fn if clock_fn is not None else system_clock


def elapsed_seconds(since: datetime, now: datetime) -> float:
    """Seconds from *since* to *now*, clamped at zero for clocks moved backwards."""
    return max((now - since).total_seconds(), 0.0)

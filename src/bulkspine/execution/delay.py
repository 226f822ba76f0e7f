"""Interruptible Delay: a cancellable, tick-emitting sleep.

Used between batches (with a countdown reported to observers) and between
items of a worker (usually without ticks).  The two uses differ only in who
supplies ``on_tick`` and ``is_cancelled``.

Timeline for a 2.5 s delay with 1 s ticks::

    t=0.0   on_tick(3)
    t=1.0   on_tick(2)
    t=2.0   on_tick(1)
    t=2.5   on_tick(0)   → returns True

Cancellation is checked every ``check_interval`` seconds, independently of
the tick interval, so a stop command ends the wait within one check
interval instead of one tick.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable


def remaining_ticks(remaining_seconds: float, tick_interval: float = 1.0) -> int:
    """Whole tick units left, rounded up (4.2 s → 5, 4.0 s → 4)."""
    if remaining_seconds <= 0:
        return 0
    # Round away float noise so that 4.0000001 does not become 5
    return math.ceil(round(remaining_seconds / tick_interval, 6))


async def interruptible_delay(
    duration_ms: float,
    on_tick: Callable[[int], None] | None = None,
    is_cancelled: Callable[[], bool] | None = None,
    *,
    tick_interval: float = 1.0,
    check_interval: float = 0.05,
) -> bool:
    """Sleep for ``duration_ms`` unless cancelled.

    Args:
        duration_ms: Delay length in milliseconds; <= 0 returns immediately.
        on_tick: Called with the remaining whole tick count: once at the
            start, once per tick interval, and with 0 at the end (including
            on cancellation).
        is_cancelled: Polled every ``check_interval`` seconds.
        tick_interval: Seconds per tick unit.
        check_interval: Seconds between cancellation checks.

    Returns:
        True if the full duration elapsed, False if cancelled.
    """
    if duration_ms <= 0:
        return True

    loop = asyncio.get_running_loop()
    started = loop.time()
    deadline = started + duration_ms / 1000
    next_tick = started + tick_interval

    def emit(value: int) -> None:
        if on_tick is not None:
            on_tick(value)

    emit(remaining_ticks(deadline - started, tick_interval))

    while True:
        if is_cancelled is not None and is_cancelled():
            emit(0)
            return False

        now = loop.time()
        remaining = deadline - now
        if remaining <= 0:
            emit(0)
            return True

        if now >= next_tick:
            emit(remaining_ticks(remaining, tick_interval))
            # Skip ticks missed while the loop was busy
            while next_tick <= now:
                next_tick += tick_interval

        await asyncio.sleep(min(check_interval, remaining, max(next_tick - now, 0.0)))

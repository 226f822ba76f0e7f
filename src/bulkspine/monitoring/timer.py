"""Timer Reconciler: elapsed-time and countdown displays on the consumer side.

WHY
───
The orchestrator does not send a heartbeat.  A consumer showing "elapsed
03:12" and "next batch in 7s" has to advance those numbers itself, and a
consumer that only wakes up occasionally (a backgrounded tab, a busy
terminal) must not undercount.  Each tick therefore advances by the real
time since the last tick, in whole seconds, and carries the remainder
forward::

    t=0.0   start              last_tick = 0.0
    t=2.3   tick → +2 s        last_tick = 2.0   (0.3 s carried)
    t=3.1   tick → +1 s        last_tick = 3.0

ARCHITECTURE
────────────
::

    TimerReconciler(clock_ms)
      ├── .set_state(job, processing=, paused=)  ─ start / stop timers
      ├── .set_countdown(job, seconds)           ─ value from job.countdown
      ├── .tick(job | None)                      ─ reconcile from timestamps
      ├── .apply_event(event)                    ─ drive from bus events
      └── .state(job) → TimerState

The elapsed accumulator only advances while processing and not paused; the
countdown stops at 0 or when the job stops or pauses.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from bulkspine.core.events import Event

TICK_MS = 1000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class TimerState:
    """Derived display state of one job."""

    processing_time_seconds: int = 0
    countdown_seconds: int = 0
    is_processing: bool = False
    is_paused: bool = False
    last_tick_processing: float | None = None
    last_tick_countdown: float | None = None

    @property
    def processing_timer_running(self) -> bool:
        return self.last_tick_processing is not None

    @property
    def countdown_timer_running(self) -> bool:
        return self.last_tick_countdown is not None

    @property
    def is_running(self) -> bool:
        return self.is_processing and not self.is_paused


def _advance(last_tick: float, now: float) -> tuple[int, float]:
    """Whole seconds elapsed since ``last_tick`` and the new tick timestamp."""
    delta = now - last_tick
    if delta < TICK_MS:
        return 0, last_tick
    return int(delta // TICK_MS), now - (delta % TICK_MS)


def format_duration(seconds: int) -> str:
    """``3725`` → ``01:02:05``."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class TimerReconciler:
    """Per-job elapsed and countdown timers, keyed by any hashable job id."""

    def __init__(self, clock_ms: Callable[[], float] | None = None) -> None:
        self._clock = clock_ms or _monotonic_ms
        self._states: dict[str, TimerState] = {}

    def state(self, job_id: str) -> TimerState:
        return self._states.setdefault(job_id, TimerState())

    def forget(self, job_id: str) -> None:
        self._states.pop(job_id, None)

    # ── Inputs ───────────────────────────────────────────────────────

    def set_state(self, job_id: str, *, processing: bool | None = None, paused: bool | None = None) -> TimerState:
        """Record a processing/paused change and start or stop timers."""
        state = self.state(job_id)
        now = self._clock()
        self._settle(state, now)
        if processing is not None:
            state.is_processing = processing
        if paused is not None:
            state.is_paused = paused
        self._sync(state, now)
        return state

    def set_countdown(self, job_id: str, seconds: int) -> TimerState:
        """Apply a countdown value received from the orchestrator."""
        state = self.state(job_id)
        now = self._clock()
        self._settle(state, now)
        state.countdown_seconds = max(0, int(seconds))
        state.last_tick_countdown = None
        self._sync(state, now)
        return state

    def tick(self, job_id: str | None = None) -> None:
        """Reconcile one job's timers (or all jobs) against the clock."""
        states = [self.state(job_id)] if job_id is not None else list(self._states.values())
        now = self._clock()
        for state in states:
            self._tick_state(state, now)

    def apply_event(self, event: Event) -> TimerState | None:
        """Update timers from an orchestrator event; returns the affected state."""
        job_id = event.correlation_id
        if job_id is None:
            return None
        kind = event.event_type
        if kind == "row.processing":
            # A dispatched row means the job is running again
            return self.set_state(job_id, processing=True, paused=False)
        if kind == "job.auto_paused":
            return self.set_state(job_id, paused=True)
        if kind == "job.countdown":
            return self.set_countdown(job_id, int(event.payload.get("seconds", 0)))
        if kind in ("job.ended", "job.complete", "job.error"):
            return self.set_state(job_id, processing=False, paused=False)
        return None

    # ── Reconciliation ───────────────────────────────────────────────

    def _sync(self, state: TimerState, now: float) -> None:
        if state.is_running:
            if not state.processing_timer_running:
                state.last_tick_processing = now
        else:
            state.last_tick_processing = None

        if state.is_running and state.countdown_seconds > 0:
            if not state.countdown_timer_running:
                state.last_tick_countdown = now
        else:
            state.last_tick_countdown = None

    def _tick_state(self, state: TimerState, now: float) -> None:
        if not state.is_running:
            state.last_tick_processing = None
            state.last_tick_countdown = None
            return
        self._settle(state, now)

    def _settle(self, state: TimerState, now: float) -> None:
        """Advance running timers up to ``now``; every state change counts as a tick."""
        if state.last_tick_processing is not None:
            seconds, state.last_tick_processing = _advance(state.last_tick_processing, now)
            state.processing_time_seconds += seconds

        if state.last_tick_countdown is not None:
            seconds, state.last_tick_countdown = _advance(state.last_tick_countdown, now)
            state.countdown_seconds = max(0, state.countdown_seconds - seconds)
            if state.countdown_seconds == 0:
                state.last_tick_countdown = None

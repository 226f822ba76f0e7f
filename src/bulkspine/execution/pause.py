"""Pause gates: how an executor waits while its job is paused.

Two strategies behind one contract, selected by ``pause_mode``:

- PollingPauseGate re-reads the job status every ``poll_interval``
  seconds.  Resume latency is up to one interval; CPU cost is one wake-up
  per interval per waiting task.
- SignalPauseGate parks on the job's status-change event and wakes as
  soon as a command writes the status.  The poll interval still bounds
  each wait, so a missed signal costs at most one interval.

Both return as soon as the job is no longer paused or has left the
registry; callers re-check for ENDED afterwards.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from bulkspine.execution.models import JobKey
from bulkspine.execution.registry import JobRegistry


class PauseGate(ABC):
    """Blocks while a job is paused."""

    def __init__(self, poll_interval: float = 0.5) -> None:
        self.poll_interval = poll_interval

    @abstractmethod
    async def wait_while_paused(self, registry: JobRegistry, key: JobKey) -> None:
        ...


class PollingPauseGate(PauseGate):
    async def wait_while_paused(self, registry: JobRegistry, key: JobKey) -> None:
        while True:
            job = registry.get(key)
            if job is None or not job.is_paused:
                return
            await asyncio.sleep(self.poll_interval)


class SignalPauseGate(PauseGate):
    async def wait_while_paused(self, registry: JobRegistry, key: JobKey) -> None:
        while True:
            job = registry.get(key)
            if job is None or not job.is_paused:
                return
            await job.wait_for_status_change(self.poll_interval)


def build_pause_gate(mode: str, poll_interval: float) -> PauseGate:
    """Build the gate for a ``pause_mode`` setting (``poll`` or ``signal``)."""
    if mode == "signal":
        return SignalPauseGate(poll_interval)
    if mode == "poll":
        return PollingPauseGate(poll_interval)
    raise ValueError(f"Unknown pause mode: {mode!r}")

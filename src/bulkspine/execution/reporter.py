"""Result Reporter: the executors' only way to talk to observers.

A reporter is bound to one job and publishes to the event bus.  Emission is
synchronous, has no return value and never raises into the executor;
delivery is best-effort.

Row lifecycle::

    row.processing  ─ dispatched, call in flight
    row.complete    ─ final create outcome (success or failure)
    row.verified    ─ later amendment from the verification sub-task

Job lifecycle::

    job.countdown   ─ seconds until the next batch / item
    job.auto_paused ─ failure threshold reached
    job.error       ─ fatal job-level error
    job.ended       ─ terminal, operator stop
    job.complete    ─ terminal, natural completion
"""

from __future__ import annotations

from typing import Any

from bulkspine.core.events import Event, EventBus
from bulkspine.core.logging import get_logger
from bulkspine.execution.models import JobKey, ResultStage, RowResult
from bulkspine.execution.policy import AutoPauseTrip

logger = get_logger(__name__)

ROW_EVENT_TYPES = {
    ResultStage.PROCESSING: "row.processing",
    ResultStage.COMPLETE: "row.complete",
    ResultStage.VERIFIED: "row.verified",
}


class ResultReporter:
    """Publishes one job's events to an :class:`EventBus`."""

    source = "executor"

    def __init__(self, bus: EventBus, key: JobKey) -> None:
        self._bus = bus
        self._key = key

    @property
    def key(self) -> JobKey:
        return self._key

    def _emit(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        event = Event(
            event_type=event_type,
            source=self.source,
            payload={**self._key.to_dict(), **(data or {})},
            correlation_id=str(self._key),
        )
        try:
            self._bus.publish(event)
        except Exception as e:
            logger.warning("reporter.publish_failed", job_id=str(self._key), event_type=event_type, error=str(e))

    def report(self, result: RowResult) -> None:
        self._emit(ROW_EVENT_TYPES[result.stage], result.to_dict())

    def countdown(self, seconds: int) -> None:
        self._emit("job.countdown", {"seconds": seconds})

    def auto_paused(self, trip: AutoPauseTrip) -> None:
        self._emit(
            "job.auto_paused",
            {
                "reason": trip.reason,
                "failure_count": trip.failure_count,
                "threshold": trip.threshold,
            },
        )

    def job_error(self, message: str, **details: Any) -> None:
        self._emit("job.error", {"message": message, **details})

    def job_ended(self, **summary: Any) -> None:
        self._emit("job.ended", summary)

    def job_complete(self, **summary: Any) -> None:
        self._emit("job.complete", summary)

"""Failure-threshold auto-pause.

Both executor strategies route every remote-call outcome through
:class:`AutoPausePolicy`, so the trip condition is evaluated identically
whichever strategy runs the job.

Each method reads and writes the job synchronously; callers must invoke
it in the same loop iteration in which the outcome became known (no
``await`` between the outcome and the call).
"""

from __future__ import annotations

from dataclasses import dataclass

from bulkspine.execution.models import Job, JobStatus


@dataclass(frozen=True)
class AutoPauseTrip:
    """Details of an auto-pause transition, for the notification event."""

    failure_count: int
    threshold: int

    @property
    def reason(self) -> str:
        return f"Auto-paused after {self.failure_count} consecutive failures."


class AutoPausePolicy:
    """Counts consecutive failures and pauses the job at the threshold.

    A threshold of 0 disables auto-pause; the counter is still maintained.
    """

    def record_success(self, job: Job | None) -> None:
        # A success racing in right after an auto-pause must not clear the
        # condition that caused it.
        if job is None or job.is_paused:
            return
        job.consecutive_failures = 0

    def record_failure(self, job: Job | None) -> AutoPauseTrip | None:
        """Count a failure; return the trip details if this failure paused the job."""
        if job is None:
            return None
        job.consecutive_failures += 1
        if (
            job.failure_threshold > 0
            and job.consecutive_failures >= job.failure_threshold
            and job.status is JobStatus.RUNNING
        ):
            job.status = JobStatus.PAUSED
            return AutoPauseTrip(job.consecutive_failures, job.failure_threshold)
        return None

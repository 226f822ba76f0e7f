"""Job Registry: the only mutable state shared between executors and commands.

WHY
───
Command handlers (pause / resume / end) and executors (failure counter,
auto-pause) must agree on a job's control state.  The registry is an
explicit object owned by the orchestrator and passed by reference to the
executors, rather than ambient global state.

ARCHITECTURE
────────────
::

    JobRegistry
      ├── .create(key, failure_threshold)  ─ fails if key is registered
      ├── .get(key)                        ─ Job | None
      ├── .set_status(key, status)         ─ no-op if absent
      ├── .remove(key)                     ─ executor cleanup only
      ├── .jobs_for_connection(conn_id)    ─ connection teardown
      └── .end_all()                       ─ orchestrator shutdown

All operations are synchronous.  Everything runs on one event loop, so no
lock is needed as long as no read-modify-write spans an ``await``.
"""

from __future__ import annotations

from collections.abc import Iterator

from bulkspine.core.errors import JobAlreadyRunningError
from bulkspine.core.logging import get_logger
from bulkspine.execution.models import Job, JobKey, JobStatus

logger = get_logger(__name__)


class JobRegistry:
    """Process-wide map from job key to control state."""

    def __init__(self) -> None:
        self._jobs: dict[JobKey, Job] = {}

    def create(self, key: JobKey, failure_threshold: int = 0) -> Job:
        """Register a new running job.

        Raises:
            JobAlreadyRunningError: If ``key`` is still registered.
        """
        if key in self._jobs:
            raise JobAlreadyRunningError(str(key))
        job = Job(key=key, failure_threshold=failure_threshold)
        self._jobs[key] = job
        logger.debug("registry.created", job_id=str(key))
        return job

    def get(self, key: JobKey) -> Job | None:
        return self._jobs.get(key)

    def set_status(self, key: JobKey, status: JobStatus) -> bool:
        """Set a job's status.  Returns False if the job is absent or unchanged."""
        job = self._jobs.get(key)
        if job is None or job.status is status:
            return False
        job.status = status
        logger.info("registry.status_changed", job_id=str(key), status=status.value)
        return True

    def remove(self, key: JobKey) -> Job | None:
        job = self._jobs.pop(key, None)
        if job is not None:
            logger.debug("registry.removed", job_id=str(key))
        return job

    def jobs_for_connection(self, connection_id: str) -> list[Job]:
        return [job for key, job in self._jobs.items() if key.connection_id == connection_id]

    def end_all(self) -> int:
        """Mark every registered job ended.  Returns the number affected."""
        count = 0
        for key in list(self._jobs):
            if self.set_status(key, JobStatus.ENDED):
                count += 1
        return count

    def __contains__(self, key: object) -> bool:
        return key in self._jobs

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)

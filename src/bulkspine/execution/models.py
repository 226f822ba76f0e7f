"""Execution domain models.

Defines the data structures shared by the registry, the executors and the
reporter:

- JobKey: composite job identity (connection, profile, job type)
- Job: mutable control state of one running job
- JobConfig: normalised start-command configuration
- WorkItem: one row to submit
- RowResult: one reported outcome (append-only, keyed by row + identifier)
"""

from __future__ import annotations

import asyncio
import string
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from bulkspine.core.errors import JobConfigError


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class JobStatus(str, Enum):
    """Control status of a job.

    Transition graph::

        RUNNING ⇄ PAUSED      (operator or auto-pause)
        RUNNING | PAUSED → ENDED   (operator stop)

    Natural completion does not pass through ENDED: the executor simply
    returns and the entry is removed from the registry.
    """

    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class ResultStage(str, Enum):
    """Phase of a reported row outcome."""

    PROCESSING = "processing"
    COMPLETE = "complete"
    VERIFIED = "verified"


@dataclass(frozen=True)
class JobKey:
    """Job identity, scoped to one control connection.

    The same ``(profile, job_type)`` pair may run concurrently on two
    different connections; they are different jobs.
    """

    connection_id: str
    profile: str
    job_type: str

    def __str__(self) -> str:
        return f"{self.connection_id}_{self.profile}_{self.job_type}"

    def to_dict(self) -> dict[str, str]:
        return {
            "connection_id": self.connection_id,
            "profile": self.profile,
            "job_type": self.job_type,
        }


@dataclass
class Job:
    """Mutable control state of one job.

    ``status`` is written by command handlers (and by the auto-pause check);
    ``consecutive_failures`` only by the executor's completion path.  Every
    status write wakes tasks parked in :meth:`wait_for_status_change`.
    """

    key: JobKey
    failure_threshold: int = 0
    consecutive_failures: int = 0
    _status: JobStatus = field(default=JobStatus.RUNNING, repr=False)
    _changed: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def status(self) -> JobStatus:
        return self._status

    @status.setter
    def status(self, value: JobStatus) -> None:
        self._status = JobStatus(value)
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    @property
    def is_paused(self) -> bool:
        return self._status is JobStatus.PAUSED

    @property
    def is_ended(self) -> bool:
        return self._status is JobStatus.ENDED

    async def wait_for_status_change(self, timeout: float) -> bool:
        """Wait until the next status write, at most ``timeout`` seconds.

        Returns True if the status was written, False on timeout.
        """
        try:
            await asyncio.wait_for(self._changed.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": str(self.key),
            **self.key.to_dict(),
            "status": self._status.value,
            "consecutive_failures": self.consecutive_failures,
            "failure_threshold": self.failure_threshold,
        }


@dataclass
class JobConfig:
    """Normalised configuration of one job run.

    ``path`` is the create endpoint; ``verify_path`` is a template with a
    ``{record_id}`` placeholder used by the verification sub-task.
    """

    path: str
    method: str = "post"
    concurrency: int = 1
    delay_ms: int = 0
    failure_threshold: int = 0
    verify: bool = False
    verify_path: str | None = None
    strategy: str = "batch"
    credentials: Any = None

    def __post_init__(self) -> None:
        self.concurrency = max(1, int(self.concurrency or 1))
        self.delay_ms = max(0, int(self.delay_ms or 0))
        self.failure_threshold = max(0, int(self.failure_threshold or 0))
        self.method = self.method.lower()
        if not self.path.startswith("/"):
            self.path = f"/{self.path}"

    def check_verify_path(self) -> None:
        """Reject a ``verify_path`` template with anything but ``{record_id}``.

        Raises:
            JobConfigError: If the template has other fields or bad braces.
        """
        if not self.verify_path:
            return
        try:
            fields = {name for _, name, _, _ in string.Formatter().parse(self.verify_path) if name is not None}
        except ValueError as e:
            raise JobConfigError(f"Invalid verify_path template: {e}", cause=e) from e
        unknown = fields - {"record_id"}
        if unknown:
            raise JobConfigError(
                f"Invalid verify_path template: unknown placeholder(s) {sorted(unknown)}; use {{record_id}}"
            )

    def verification_path(self, record_id: Any) -> str:
        """Resolve the read-back path for a created record."""
        if self.verify_path:
            return self.verify_path.format(record_id=record_id)
        return f"{self.path.rstrip('/')}/{record_id}"


@dataclass(frozen=True)
class WorkItem:
    """One logical row.

    ``row_number`` is 1-based and assigned before any fan-out; it never
    changes and is never reused within a run.
    """

    row_number: int
    identifier: str
    payload: dict[str, Any]


@dataclass
class RowResult:
    """One reported row outcome.

    A successful create may be followed by a second result for the same
    ``(row_number, identifier)`` at stage VERIFIED; consumers must append,
    not overwrite.
    """

    row_number: int
    identifier: str
    stage: ResultStage
    success: bool
    details: str = ""
    full_response: Any = None
    verify_status: str | None = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "row_number": self.row_number,
            "identifier": self.identifier,
            "stage": self.stage.value,
            "success": self.success,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.full_response is not None:
            result["full_response"] = self.full_response
        if self.verify_status is not None:
            result["verify_status"] = self.verify_status
        return result

"""JobRun: per-run context shared by both executor strategies.

A strategy decides *when* rows are worked (batches, worker pool); the
JobRun decides *how* one row is worked:

::

    process_item(item)
      ├── resume filter hit?  → skip silently (no event, no counter)
      ├── row.processing
      ├── await remote call
      │     ├── failure → policy.record_failure → job.auto_paused?
      │     │             row.complete(success=False)
      │     └── success → policy.record_success
      │                   row.complete(success=True)
      │                   launch verification (or "skipped" amendment)
      └── return RowResult

Counter and status updates happen right after the awaited call returns,
before any further ``await``, so no read-modify-write spans a suspension
point.  Results for a job that has left the registry are dropped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from bulkspine.core.logging import get_logger
from bulkspine.execution.delay import interruptible_delay
from bulkspine.execution.models import Job, JobConfig, JobKey, ResultStage, RowResult, WorkItem
from bulkspine.execution.pause import PauseGate, PollingPauseGate
from bulkspine.execution.policy import AutoPausePolicy
from bulkspine.execution.registry import JobRegistry
from bulkspine.execution.remote import RemoteCall, describe_remote_error
from bulkspine.execution.reporter import ResultReporter
from bulkspine.execution.rows import ResumeFilter
from bulkspine.execution.verification import find_record_id, verify_created

logger = get_logger(__name__)


class JobRun:
    """Everything an executor strategy needs to run one job."""

    def __init__(
        self,
        *,
        key: JobKey,
        items: Sequence[WorkItem],
        config: JobConfig,
        registry: JobRegistry,
        reporter: ResultReporter,
        call: RemoteCall,
        resume: ResumeFilter | None = None,
        pause_gate: PauseGate | None = None,
        policy: AutoPausePolicy | None = None,
        delay_check_interval: float = 0.05,
        verify_grace_seconds: float = 5.0,
    ) -> None:
        self.key = key
        self.items = list(items)
        self.config = config
        self.registry = registry
        self.reporter = reporter
        self.call = call
        self.resume = resume or ResumeFilter()
        self.pause_gate = pause_gate or PollingPauseGate()
        self.policy = policy or AutoPausePolicy()
        self.delay_check_interval = delay_check_interval
        self.verify_grace_seconds = verify_grace_seconds

        self.dispatched = 0
        self.succeeded = 0
        self.failed = 0
        self.skipped = 0
        self._verifications: set[asyncio.Task[Any]] = set()

    # ── Control state ────────────────────────────────────────────────

    @property
    def job(self) -> Job | None:
        return self.registry.get(self.key)

    def is_active(self) -> bool:
        return self.key in self.registry

    def is_ended(self) -> bool:
        job = self.job
        return job is None or job.is_ended

    async def wait_while_paused(self) -> None:
        await self.pause_gate.wait_while_paused(self.registry, self.key)

    async def delay(self, *, countdown: bool) -> bool:
        """Run the configured delay; False if the job ended while waiting."""
        return await interruptible_delay(
            self.config.delay_ms,
            self._countdown if countdown else None,
            self.is_ended,
            check_interval=self.delay_check_interval,
        )

    def _countdown(self, seconds: int) -> None:
        if self.is_active():
            self.reporter.countdown(seconds)

    # ── Row processing ───────────────────────────────────────────────

    def _report(self, result: RowResult) -> None:
        if self.is_active():
            self.reporter.report(result)

    async def process_item(self, item: WorkItem) -> RowResult | None:
        """Work one row.  Returns None if the row was skipped by the resume filter."""
        if self.resume.should_skip(item):
            self.skipped += 1
            return None

        self.dispatched += 1
        self._report(
            RowResult(
                row_number=item.row_number,
                identifier=item.identifier,
                stage=ResultStage.PROCESSING,
                success=False,
                details="Sending...",
            )
        )

        try:
            response = await self.call(
                self.config.method, self.config.path, item.payload, self.config.credentials
            )
        except Exception as e:
            message, full_response = describe_remote_error(e)
            self.failed += 1
            trip = self.policy.record_failure(self.job)
            if trip is not None:
                logger.warning(
                    "job.auto_paused",
                    job_id=str(self.key),
                    failures=trip.failure_count,
                    threshold=trip.threshold,
                )
                self.reporter.auto_paused(trip)
            logger.warning("row.failed", job_id=str(self.key), row_number=item.row_number, error=message)
            result = RowResult(
                row_number=item.row_number,
                identifier=item.identifier,
                stage=ResultStage.COMPLETE,
                success=False,
                details=message,
                full_response=full_response,
            )
            self._report(result)
            return result

        self.succeeded += 1
        self.policy.record_success(self.job)
        record_id = find_record_id(response) if self.config.verify else None
        result = RowResult(
            row_number=item.row_number,
            identifier=item.identifier,
            stage=ResultStage.COMPLETE,
            success=True,
            details="Created (verifying...)" if record_id else "Created",
            full_response=response,
        )
        self._report(result)

        if self.config.verify:
            if record_id:
                self._launch_verification(item, record_id)
            else:
                self._report(
                    RowResult(
                        row_number=item.row_number,
                        identifier=item.identifier,
                        stage=ResultStage.VERIFIED,
                        success=True,
                        details="Created (verification skipped: no record id)",
                        verify_status="skipped",
                    )
                )
        return result

    # ── Verification sub-tasks ───────────────────────────────────────

    def _launch_verification(self, item: WorkItem, record_id: Any) -> None:
        task = asyncio.create_task(
            verify_created(
                self.call,
                self.config,
                item,
                record_id,
                grace_seconds=self.verify_grace_seconds,
                is_active=self.is_active,
                report=self._report,
            ),
            name=f"verify:{self.key}:{item.row_number}",
        )
        self._verifications.add(task)
        task.add_done_callback(self._verifications.discard)

    @property
    def pending_verifications(self) -> int:
        return len(self._verifications)

    async def drain_verifications(self, *, cancel: bool = False) -> None:
        """Wait for outstanding verifications.

        They are cancelled when ``cancel`` is set, or as soon as the job
        ends while waiting.
        """
        tasks = list(self._verifications)
        if not tasks:
            return
        pending = set(tasks)
        while pending and not cancel:
            _, pending = await asyncio.wait(pending, timeout=self.delay_check_interval)
            cancel = self.is_ended()
        for task in pending:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.items),
            "dispatched": self.dispatched,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }

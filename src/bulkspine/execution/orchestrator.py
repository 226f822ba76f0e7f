"""Bulk job orchestrator: the control plane.

WHY
───
Operators start, pause, resume and stop bulk runs over a control
connection; the executors only see a registry entry they poll.  The
orchestrator ties the two together and owns the job lifecycle so that
cleanup runs exactly once per job, whatever ended it.

ARCHITECTURE
────────────
::

    BulkOrchestrator(settings, call, bus)
      ├── .start_job(key, rows, config, ...)   ─ validate, register, spawn task
      ├── .pause_job(key) / .resume_job(key)   ─ RUNNING ⇄ PAUSED
      ├── .end_job(key)                        ─ → ENDED, loops exit at next poll
      ├── .end_connection(connection_id)       ─ control connection dropped
      └── .shutdown()                          ─ end everything, await tasks

    _run_job (one task per job)
      try:      strategy.run(job_run)
                drain verifications
      except:   job.error
      finally:  job.countdown(0)
                job.ended | job.complete      (exactly one)
                registry.remove(key)

Example::

    orchestrator = BulkOrchestrator(settings, call=HttpRemoteCall(base_url))
    key = JobKey("cli", "acme", "contacts")
    task = orchestrator.start_job(
        key,
        rows="a@x.io\\nb@x.io",
        config=JobConfig(path="/contacts", concurrency=5, delay_ms=2000),
        primary_field="email",
    )
    await task
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from bulkspine.core.errors import JobAlreadyRunningError, JobConfigError
from bulkspine.core.events import EventBus
from bulkspine.core.events.memory import InMemoryEventBus
from bulkspine.core.logging import LogContext, get_logger
from bulkspine.core.settings import BulkSpineSettings
from bulkspine.execution.job_run import JobRun
from bulkspine.execution.models import Job, JobConfig, JobKey, JobStatus
from bulkspine.execution.pause import build_pause_gate
from bulkspine.execution.registry import JobRegistry
from bulkspine.execution.remote import RemoteCall
from bulkspine.execution.reporter import ResultReporter
from bulkspine.execution.rows import ResumeFilter, build_work_items
from bulkspine.execution.strategies import ExecutionStrategy, get_strategy

logger = get_logger(__name__)


class BulkOrchestrator:
    """Owns the job registry and one task per running job."""

    def __init__(
        self,
        settings: BulkSpineSettings,
        call: RemoteCall,
        bus: EventBus | None = None,
        registry: JobRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.call = call
        self.bus = bus or InMemoryEventBus()
        self.registry = registry or JobRegistry()
        self._pause_gate = build_pause_gate(settings.pause_mode, settings.pause_poll_interval)
        self._tasks: dict[JobKey, asyncio.Task[None]] = {}

    # ── Commands ─────────────────────────────────────────────────────

    def start_job(
        self,
        key: JobKey,
        rows: Any,
        config: JobConfig,
        *,
        primary_field: str | None = None,
        defaults: Mapping[str, Any] | None = None,
        resume_ids: Iterable[str] | None = None,
    ) -> asyncio.Task[None] | None:
        """Validate a start command and launch the job.

        Returns the job task, or None if the configuration was rejected
        (a ``job.error`` event has been published and nothing is registered).

        Raises:
            JobAlreadyRunningError: If ``key`` is still registered.
        """
        reporter = ResultReporter(self.bus, key)
        if key in self.registry:
            raise JobAlreadyRunningError(str(key))

        try:
            items = build_work_items(rows, primary_field, defaults)
            strategy = get_strategy(config.strategy)
            config.check_verify_path()
        except JobConfigError as e:
            e.with_context(job_id=str(key), profile=key.profile, job_type=key.job_type)
            logger.warning("job.rejected", **e.to_dict())
            reporter.job_error(e.message)
            return None

        config.concurrency = min(config.concurrency, self.settings.max_concurrency)
        self.registry.create(key, failure_threshold=config.failure_threshold)

        job_run = JobRun(
            key=key,
            items=items,
            config=config,
            registry=self.registry,
            reporter=reporter,
            call=self.call,
            resume=ResumeFilter(resume_ids),
            pause_gate=self._pause_gate,
            delay_check_interval=self.settings.delay_check_interval,
            verify_grace_seconds=self.settings.verify_grace_seconds,
        )
        task = asyncio.create_task(self._run_job(job_run, strategy), name=f"job:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda _t, k=key: self._forget_task(k, _t))
        return task

    def pause_job(self, key: JobKey) -> bool:
        job = self.registry.get(key)
        if job is None or job.status is not JobStatus.RUNNING:
            return False
        return self.registry.set_status(key, JobStatus.PAUSED)

    def resume_job(self, key: JobKey) -> bool:
        job = self.registry.get(key)
        if job is None or job.status is not JobStatus.PAUSED:
            return False
        return self.registry.set_status(key, JobStatus.RUNNING)

    def end_job(self, key: JobKey) -> bool:
        return self.registry.set_status(key, JobStatus.ENDED)

    def end_connection(self, connection_id: str) -> int:
        """End every job owned by a control connection that went away."""
        jobs = self.registry.jobs_for_connection(connection_id)
        for job in jobs:
            self.registry.set_status(job.key, JobStatus.ENDED)
        if jobs:
            logger.info("connection.jobs_ended", connection_id=connection_id, count=len(jobs))
        return len(jobs)

    async def shutdown(self) -> None:
        """End all jobs and wait for their cleanup to run."""
        ended = self.registry.end_all()
        tasks = list(self._tasks.values())
        if tasks:
            logger.info("orchestrator.shutdown", jobs=ended)
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Inspection ───────────────────────────────────────────────────

    def get_job(self, key: JobKey) -> Job | None:
        return self.registry.get(key)

    def active_jobs(self) -> list[Job]:
        return list(self.registry)

    def task_for(self, key: JobKey) -> asyncio.Task[None] | None:
        return self._tasks.get(key)

    # ── Job task ─────────────────────────────────────────────────────

    def _forget_task(self, key: JobKey, task: asyncio.Task[None]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    async def _run_job(self, job_run: JobRun, strategy: ExecutionStrategy) -> None:
        key = job_run.key
        reporter = job_run.reporter
        async with LogContext(job_id=str(key)):
            logger.info(
                "job.started",
                strategy=strategy.name,
                rows=len(job_run.items),
                concurrency=job_run.config.concurrency,
                delay_ms=job_run.config.delay_ms,
                resume_ids=len(job_run.resume),
            )
            try:
                await strategy.run(job_run)
                await job_run.drain_verifications(cancel=job_run.is_ended())
            except asyncio.CancelledError:
                await job_run.drain_verifications(cancel=True)
                raise
            except Exception as e:
                logger.error("job.failed", error=str(e), exc_info=True)
                reporter.job_error(str(e) or type(e).__name__)
                await job_run.drain_verifications(cancel=True)
            finally:
                job = self.registry.get(key)
                if job is not None:
                    summary = job_run.summary()
                    reporter.countdown(0)
                    if job.is_ended:
                        reporter.job_ended(**summary)
                    else:
                        reporter.job_complete(**summary)
                    self.registry.remove(key)
                    logger.info("job.finished", status="ended" if job.is_ended else "complete", **summary)

"""
Job execution: registry, pacing, executor strategies and the orchestrator.

Quick start::

    from bulkspine.core.settings import BulkSpineSettings
    from bulkspine.execution import BulkOrchestrator, JobConfig, JobKey

    orchestrator = BulkOrchestrator(BulkSpineSettings(), call=my_remote_call)
    task = orchestrator.start_job(
        JobKey("cli", "acme", "contacts"),
        rows='[{"email": "a@x.io"}, {"email": "b@x.io"}]',
        config=JobConfig(path="/contacts", concurrency=2, delay_ms=1000),
    )
    await task
"""

from bulkspine.execution.delay import interruptible_delay, remaining_ticks
from bulkspine.execution.job_run import JobRun
from bulkspine.execution.models import (
    Job,
    JobConfig,
    JobKey,
    JobStatus,
    ResultStage,
    RowResult,
    WorkItem,
)
from bulkspine.execution.orchestrator import BulkOrchestrator
from bulkspine.execution.pause import PauseGate, PollingPauseGate, SignalPauseGate, build_pause_gate
from bulkspine.execution.policy import AutoPausePolicy, AutoPauseTrip
from bulkspine.execution.registry import JobRegistry
from bulkspine.execution.remote import HttpRemoteCall, RemoteCall, describe_remote_error
from bulkspine.execution.reporter import ResultReporter
from bulkspine.execution.rows import ResumeFilter, build_work_items, derive_identifier, parse_row_source
from bulkspine.execution.strategies import BatchStrategy, ExecutionStrategy, WorkerPoolStrategy, get_strategy
from bulkspine.execution.verification import find_record_id, verify_created

__all__ = [
    # Models
    "Job",
    "JobConfig",
    "JobKey",
    "JobStatus",
    "ResultStage",
    "RowResult",
    "WorkItem",
    # Control plane
    "BulkOrchestrator",
    "JobRegistry",
    "JobRun",
    # Pacing and flow control
    "interruptible_delay",
    "remaining_ticks",
    "PauseGate",
    "PollingPauseGate",
    "SignalPauseGate",
    "build_pause_gate",
    "AutoPausePolicy",
    "AutoPauseTrip",
    # Executors
    "ExecutionStrategy",
    "BatchStrategy",
    "WorkerPoolStrategy",
    "get_strategy",
    # Rows
    "ResumeFilter",
    "build_work_items",
    "derive_identifier",
    "parse_row_source",
    # Remote and reporting
    "RemoteCall",
    "HttpRemoteCall",
    "describe_remote_error",
    "ResultReporter",
    "find_record_id",
    "verify_created",
]

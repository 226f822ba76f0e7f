"""Executor strategies: when rows are worked.

Two interchangeable strategies behind one contract, selected per job::

    BatchStrategy ("batch")                 WorkerPoolStrategy ("pool")
    ──────────────────────────              ──────────────────────────────
    contiguous batches of N rows            N long-lived workers
    whole batch in flight at once           shared cursor, one row per claim
    wait for the batch to finish            per-worker delay after each row
    delay *between batches* (countdown)     no ordering across rows
    pause/stop seen between batches         pause/stop seen between rows

Both report ``row_number`` from the pre-assigned :class:`WorkItem`, never
from completion order.  Both route outcomes through the same
:meth:`JobRun.process_item`, so auto-pause and resume-skip behave
identically.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from bulkspine.core.errors import JobConfigError
from bulkspine.core.logging import get_logger
from bulkspine.execution.job_run import JobRun

logger = get_logger(__name__)


class ExecutionStrategy(ABC):
    """Drives a :class:`JobRun` to completion or until the job ends."""

    name: str = ""

    @abstractmethod
    async def run(self, job_run: JobRun) -> None:
        ...


class BatchStrategy(ExecutionStrategy):
    """Batch-synchronous execution.

    Worst case, a failure storm costs one batch width before auto-pause
    takes effect for the next batch.  A batch whose rows were all skipped
    by the resume filter does not earn a delay before the next batch.
    """

    name = "batch"

    async def run(self, job_run: JobRun) -> None:
        items = job_run.items
        size = job_run.config.concurrency
        worked_before = False

        for start in range(0, len(items), size):
            if job_run.is_ended():
                break
            await job_run.wait_while_paused()

            if worked_before and job_run.config.delay_ms > 0:
                await job_run.delay(countdown=True)

            if job_run.is_ended():
                break

            batch = items[start:start + size]
            dispatched_before = job_run.dispatched
            logger.debug("batch.start", job_id=str(job_run.key), first_row=batch[0].row_number, size=len(batch))
            await asyncio.gather(*(job_run.process_item(item) for item in batch))
            worked_before = worked_before or job_run.dispatched > dispatched_before


class WorkerPoolStrategy(ExecutionStrategy):
    """Worker-pool execution with per-item pacing.

    Index claims are a read-and-increment with no ``await`` in between, so
    two workers can never claim the same row.  A row skipped by the resume
    filter consumes neither a delay nor a failure count.
    """

    name = "pool"

    async def run(self, job_run: JobRun) -> None:
        items = job_run.items
        cursor = 0

        def claim() -> int:
            nonlocal cursor
            index = cursor
            cursor += 1
            return index

        async def worker(worker_id: int) -> None:
            while cursor < len(items):
                if job_run.is_ended():
                    return
                await job_run.wait_while_paused()
                if job_run.is_ended():
                    return

                index = claim()
                if index >= len(items):
                    return

                result = await job_run.process_item(items[index])
                if result is None:
                    continue
                if job_run.config.delay_ms > 0:
                    await job_run.delay(countdown=False)

        workers = min(job_run.config.concurrency, len(items))
        await asyncio.gather(*(worker(w) for w in range(workers)))


STRATEGIES: dict[str, type[ExecutionStrategy]] = {
    BatchStrategy.name: BatchStrategy,
    WorkerPoolStrategy.name: WorkerPoolStrategy,
}


def get_strategy(name: str) -> ExecutionStrategy:
    """Instantiate a strategy by name (``batch`` or ``pool``)."""
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise JobConfigError(f"Unknown execution strategy: {name!r} (expected one of {sorted(STRATEGIES)})") from None

"""Tests for JobRun: how a single row is worked."""

from __future__ import annotations

import asyncio

import pytest

from bulkspine.core.errors import RemoteCallError
from bulkspine.core.events.memory import InMemoryEventBus
from bulkspine.execution.job_run import JobRun
from bulkspine.execution.models import JobConfig, JobKey, JobStatus, ResultStage
from bulkspine.execution.pause import PollingPauseGate
from bulkspine.execution.registry import JobRegistry
from bulkspine.execution.reporter import ResultReporter
from bulkspine.execution.rows import ResumeFilter, build_work_items

from conftest import EventLog, FakeRemote

KEY = JobKey("c1", "acme", "contacts")


def make_run(remote, rows="a@x.io\nb@x.io", *, resume=(), grace=0.01, **config_kw) -> tuple[JobRun, EventLog]:
    bus = InMemoryEventBus()
    events = EventLog()
    bus.subscribe("*", events.append)
    config = JobConfig(path="/contacts", **config_kw)
    registry = JobRegistry()
    registry.create(KEY, failure_threshold=config.failure_threshold)
    run = JobRun(
        key=KEY,
        items=build_work_items(rows, "email"),
        config=config,
        registry=registry,
        reporter=ResultReporter(bus, KEY),
        call=remote,
        resume=ResumeFilter(resume),
        pause_gate=PollingPauseGate(0.01),
        delay_check_interval=0.01,
        verify_grace_seconds=grace,
    )
    return run, events


class TestProcessItem:
    @pytest.mark.asyncio
    async def test_success(self):
        remote = FakeRemote()
        run, events = make_run(remote)
        result = await run.process_item(run.items[0])

        assert result.stage is ResultStage.COMPLETE
        assert result.success is True
        assert result.details == "Created"
        assert result.full_response == {"id": "rec-1"}
        assert remote.calls == [("post", "/contacts", {"email": "a@x.io"})]
        assert events.types() == ["row.processing", "row.complete"]
        assert events.payloads("row.processing")[0]["details"] == "Sending..."
        assert (run.dispatched, run.succeeded, run.failed) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_failure_carries_message_and_response(self):
        remote = FakeRemote(
            lambda m, p, b: RemoteCallError("Contact already exists", http_status=400, full_response={"code": 1001})
        )
        run, events = make_run(remote)
        result = await run.process_item(run.items[0])

        assert result.success is False
        assert result.details == "Contact already exists"
        assert result.full_response == {"code": 1001}
        assert run.failed == 1
        assert run.job.consecutive_failures == 1
        assert events.payloads("row.complete")[0]["success"] is False

    @pytest.mark.asyncio
    async def test_auto_pause_is_reported_before_the_failed_row(self):
        remote = FakeRemote(lambda m, p, b: RuntimeError("timeout"))
        run, events = make_run(remote, failure_threshold=1)
        await run.process_item(run.items[0])

        assert events.types() == ["row.processing", "job.auto_paused", "row.complete"]
        assert events.payloads("job.auto_paused")[0]["failure_count"] == 1
        assert run.job.status is JobStatus.PAUSED

    @pytest.mark.asyncio
    async def test_resume_skip_is_silent(self):
        remote = FakeRemote()
        run, events = make_run(remote, resume=["a@x.io"])
        assert await run.process_item(run.items[0]) is None
        assert events == []
        assert remote.calls == []
        assert run.skipped == 1
        assert run.dispatched == 0

    @pytest.mark.asyncio
    async def test_results_dropped_once_job_removed(self):
        run, events = make_run(FakeRemote())
        run.registry.remove(KEY)
        await run.process_item(run.items[0])
        assert events == []


class TestVerification:
    @pytest.mark.asyncio
    async def test_verification_amends_after_complete(self):
        run, events = make_run(FakeRemote(), verify=True)
        result = await run.process_item(run.items[0])
        assert result.details == "Created (verifying...)"
        assert run.pending_verifications == 1

        await run.drain_verifications()
        assert events.types() == ["row.processing", "row.complete", "row.verified"]
        verified = events.payloads("row.verified")[0]
        assert verified["verify_status"] == "success"
        assert verified["row_number"] == 1
        assert verified["identifier"] == "a@x.io"
        assert run.pending_verifications == 0

    @pytest.mark.asyncio
    async def test_no_record_id_emits_skipped_amendment(self):
        run, events = make_run(FakeRemote(lambda m, p, b: {"message": "ok"}), verify=True)
        result = await run.process_item(run.items[0])
        assert result.details == "Created"
        assert run.pending_verifications == 0
        verified = events.payloads("row.verified")[0]
        assert verified["verify_status"] == "skipped"
        assert verified["success"] is True

    @pytest.mark.asyncio
    async def test_failed_create_is_never_verified(self):
        remote = FakeRemote(lambda m, p, b: RuntimeError("boom"))
        run, events = make_run(remote, verify=True)
        await run.process_item(run.items[0])
        await run.drain_verifications()
        assert events.of("row.verified") == []

    @pytest.mark.asyncio
    async def test_cancelled_verifications_report_nothing(self):
        run, events = make_run(FakeRemote(), verify=True, grace=10)
        await run.process_item(run.items[0])
        await asyncio.wait_for(run.drain_verifications(cancel=True), 1.0)
        assert events.of("row.verified") == []
        assert run.pending_verifications == 0


class TestDelay:
    @pytest.mark.asyncio
    async def test_countdown_only_when_requested(self):
        run, events = make_run(FakeRemote(), delay_ms=20)
        assert await run.delay(countdown=False) is True
        assert events.of("job.countdown") == []
        assert await run.delay(countdown=True) is True
        assert [p["seconds"] for p in events.payloads("job.countdown")] == [1, 0]

    @pytest.mark.asyncio
    async def test_end_interrupts_delay(self):
        run, _ = make_run(FakeRemote(), delay_ms=10_000)
        run.registry.set_status(KEY, JobStatus.ENDED)
        assert await asyncio.wait_for(run.delay(countdown=True), 1.0) is False

    def test_summary(self):
        run, _ = make_run(FakeRemote())
        assert run.summary() == {"total": 2, "dispatched": 0, "succeeded": 0, "failed": 0, "skipped": 0}

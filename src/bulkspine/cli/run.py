"""
CLI: ``bulkspine run``, a single bulk job from the terminal.

The job runs in-process against an :class:`HttpRemoteCall`; every event is
printed as it is published.  Ctrl-C ends the job (the cleanup still runs
and ``job.ended`` is printed).  With ``--json`` each event is written as
one JSON line instead.

Exit codes:
    0  job completed and every row succeeded
    1  job ended early, failed, or some rows failed
    2  the job was rejected (unreadable input, invalid rows)
"""

from __future__ import annotations

import asyncio
import json
import signal
from pathlib import Path
from typing import Any

import typer

from bulkspine.cli.utils import console, err_console, read_id_list, read_text_file
from bulkspine.core.events import Event
from bulkspine.core.logging import configure_logging
from bulkspine.core.settings import BulkSpineSettings, get_settings
from bulkspine.execution.models import JobConfig, JobKey
from bulkspine.execution.orchestrator import BulkOrchestrator
from bulkspine.execution.remote import HttpRemoteCall
from bulkspine.monitoring.timer import TimerReconciler, format_duration


class EventPrinter:
    """Renders orchestrator events on the console and tracks the outcome."""

    def __init__(self, timers: TimerReconciler, *, as_json: bool = False) -> None:
        self.timers = timers
        self.as_json = as_json
        self.terminal: Event | None = None
        self.errors: list[str] = []
        self.failed_rows = 0

    def __call__(self, event: Event) -> None:
        self.timers.apply_event(event)
        data = event.payload
        kind = event.event_type

        if kind == "row.complete" and not data.get("success"):
            self.failed_rows += 1
        elif kind == "job.error":
            self.errors.append(str(data.get("message", "")))
        elif kind in ("job.ended", "job.complete"):
            self.terminal = event

        if self.as_json:
            typer.echo(json.dumps(event.to_dict(), default=str))
            return
        self._render(kind, data)

    def _render(self, kind: str, data: dict[str, Any]) -> None:
        row = f"#{data.get('row_number')} {data.get('identifier', '')}"
        if kind == "row.complete":
            mark = "[green]✓[/green]" if data.get("success") else "[red]✗[/red]"
            console.print(f"{mark} {row}  {data.get('details', '')}")
        elif kind == "row.verified":
            style = "green" if data.get("verify_status") == "success" else "yellow"
            console.print(f"  [{style}]↳ {row}  {data.get('details', '')}[/{style}]")
        elif kind == "job.countdown" and data.get("seconds"):
            console.print(f"[dim]next batch in {data['seconds']}s[/dim]")
        elif kind == "job.auto_paused":
            console.print(f"[bold yellow]{data.get('reason')}[/bold yellow]  Press Ctrl-C to end the job.")
        elif kind == "job.error":
            err_console.print(f"[red]Job error:[/red] {data.get('message')}")
        elif kind in ("job.ended", "job.complete"):
            title = "Job ended" if kind == "job.ended" else "Job complete"
            console.print(
                f"[bold]{title}[/bold]: {data.get('succeeded', 0)} succeeded, "
                f"{data.get('failed', 0)} failed, {data.get('skipped', 0)} skipped "
                f"of {data.get('total', 0)}"
            )


async def run_job(
    settings: BulkSpineSettings,
    call: HttpRemoteCall,
    key: JobKey,
    rows: str,
    config: JobConfig,
    *,
    primary_field: str | None,
    resume_ids: list[str],
    as_json: bool,
) -> int:
    """Run one job to its terminal event and return the process exit code."""
    orchestrator = BulkOrchestrator(settings, call)
    timers = TimerReconciler()
    printer = EventPrinter(timers, as_json=as_json)
    orchestrator.bus.subscribe("*", printer)

    task = orchestrator.start_job(key, rows, config, primary_field=primary_field, resume_ids=resume_ids)
    if task is None:
        return 2

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.end_job, key)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        handles_sigint = False

    try:
        await task
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        await orchestrator.shutdown()
        orchestrator.bus.close()

    timers.tick(str(key))
    if not as_json:
        console.print(f"[dim]elapsed {format_duration(timers.state(str(key)).processing_time_seconds)}[/dim]")

    terminal = printer.terminal
    if terminal is None or terminal.event_type != "job.complete" or printer.errors or printer.failed_rows:
        return 1
    return 0


def run(
    rows_file: Path = typer.Argument(..., help="Rows: newline-delimited values or a JSON array of objects"),
    path: str = typer.Option(..., "--path", help="Create endpoint, e.g. /contacts"),
    base_url: str | None = typer.Option(None, "--base-url", help="Remote API base URL [default: settings.remote_base_url]"),
    token: str | None = typer.Option(None, "--token", envvar="BULKSPINE_TOKEN", help="Bearer token"),
    method: str = typer.Option("post", "--method"),
    primary_field: str | None = typer.Option(None, "--primary-field", help="Field for newline-delimited rows"),
    concurrency: int = typer.Option(1, "--concurrency", "-c", min=1),
    delay_ms: int = typer.Option(0, "--delay-ms", min=0, help="Pause between batches / items"),
    failure_threshold: int = typer.Option(0, "--failure-threshold", min=0, help="Auto-pause after N consecutive failures"),
    verify: bool = typer.Option(False, "--verify", help="Read back each created record"),
    verify_path: str | None = typer.Option(None, "--verify-path", help="Read-back path template, e.g. /contacts/{record_id}"),
    strategy: str | None = typer.Option(None, "--strategy", help="batch | pool [default: settings.default_strategy]"),
    resume_file: Path | None = typer.Option(None, "--resume-file", help="Identifiers already processed, one per line"),
    profile: str = typer.Option("cli", "--profile"),
    job_type: str | None = typer.Option(None, "--job-type", help="[default: derived from --path]"),
    as_json: bool = typer.Option(False, "--json", help="Emit events as JSON lines"),
    log_level: str = typer.Option("WARNING", "--log-level"),
) -> None:
    """Run a bulk job against a remote API."""
    settings = get_settings()
    configure_logging(level=log_level, json_format=settings.json_logs)

    rows = read_text_file(rows_file)
    resume_ids = read_id_list(resume_file)
    config = JobConfig(
        path=path,
        method=method,
        concurrency=concurrency,
        delay_ms=delay_ms,
        failure_threshold=failure_threshold,
        verify=verify,
        verify_path=verify_path,
        strategy=strategy or settings.default_strategy,
    )
    key = JobKey("cli", profile, job_type or config.path.strip("/").replace("/", "_") or "job")

    async def _main() -> int:
        call = HttpRemoteCall(base_url or settings.remote_base_url, timeout=settings.remote_timeout, token=token)
        try:
            return await run_job(
                settings,
                call,
                key,
                rows,
                config,
                primary_field=primary_field,
                resume_ids=resume_ids,
                as_json=as_json,
            )
        finally:
            await call.aclose()

    raise typer.Exit(code=asyncio.run(_main()))

"""
Jobs router: the WebSocket control channel and job inspection.

Endpoints:
    WS   /ws       Control channel (one connection = one job owner)
    GET  /jobs     Active jobs across all connections
    GET  /health   Liveness and active job count

Each WebSocket connection gets its own ``connection_id``; jobs it starts
are keyed by ``(connection_id, profile, job_type)`` and its event stream
only carries events for those jobs.  When the connection drops, its jobs
are ended.

Protocol (JSON text frames)::

    → {"command": "start", "profile": "acme", "job_type": "contacts",
       "path": "/contacts", "rows": "a@x.io\\nb@x.io", "primary_field": "email",
       "concurrency": 5, "delay_ms": 2000, "failure_threshold": 3}
    ← {"event": "connection.ready", "connection_id": "9f2c..."}
    ← {"event": "command.ack", "command": "start", "applied": true, ...}
    ← {"event": "row.processing", "row_number": 1, "identifier": "a@x.io", ...}
    ← {"event": "row.complete", "row_number": 1, "success": true, ...}
    ← {"event": "job.complete", "dispatched": 2, ...}
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from bulkspine.api.schemas import (
    EndJobCommand,
    HealthResponse,
    JobSchema,
    PauseJobCommand,
    ResumeJobCommand,
    StartJobCommand,
    command_adapter,
)
from bulkspine.core.errors import JobAlreadyRunningError
from bulkspine.core.events import Event
from bulkspine.core.logging import get_logger
from bulkspine.execution.orchestrator import BulkOrchestrator

logger = get_logger(__name__)

router = APIRouter()


def _orchestrator(app: Any) -> BulkOrchestrator:
    return app.state.orchestrator


# ------------------------------------------------------------------ #
# Inspection
# ------------------------------------------------------------------ #


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    orchestrator = _orchestrator(request.app)
    return HealthResponse(
        active_jobs=len(orchestrator.active_jobs()),
        subscribers=orchestrator.bus.subscription_count,
    )


@router.get("/jobs", response_model=list[JobSchema])
async def list_jobs(request: Request) -> list[JobSchema]:
    """List jobs currently registered, across all control connections."""
    return [JobSchema(**job.to_dict()) for job in _orchestrator(request.app).active_jobs()]


# ------------------------------------------------------------------ #
# Control channel
# ------------------------------------------------------------------ #


def handle_command(orchestrator: BulkOrchestrator, connection_id: str, raw: str) -> dict[str, Any]:
    """Apply one inbound frame; returns the reply frame."""
    try:
        message = json.loads(raw)
        command = command_adapter.validate_python(message)
    except json.JSONDecodeError as e:
        return {"event": "command.error", "message": f"Invalid JSON: {e.msg}"}
    except ValidationError as e:
        return {
            "event": "command.error",
            "message": "Invalid command",
            "errors": json.loads(e.json(include_url=False)),
        }

    key = command.job_key(connection_id)
    reply: dict[str, Any] = {"event": "command.ack", "command": command.command, **key.to_dict()}

    if isinstance(command, StartJobCommand):
        try:
            task = orchestrator.start_job(
                key,
                command.rows,
                command.job_config(orchestrator.settings.default_strategy),
                primary_field=command.primary_field,
                defaults=command.defaults,
                resume_ids=command.resume_ids,
            )
        except JobAlreadyRunningError as e:
            return {"event": "command.error", "command": "start", "message": e.message, **key.to_dict()}
        reply["applied"] = task is not None
    elif isinstance(command, PauseJobCommand):
        reply["applied"] = orchestrator.pause_job(key)
    elif isinstance(command, ResumeJobCommand):
        reply["applied"] = orchestrator.resume_job(key)
    elif isinstance(command, EndJobCommand):
        reply["applied"] = orchestrator.end_job(key)
    return reply


async def _pump(websocket: WebSocket, outbox: asyncio.Queue[dict[str, Any]]) -> None:
    """Send queued frames in order until the socket goes away."""
    while True:
        frame = await outbox.get()
        try:
            await websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("ws.send_after_close", event_type=frame.get("event"))
            return


@router.websocket("/ws")
async def control_channel(websocket: WebSocket) -> None:
    orchestrator = _orchestrator(websocket.app)
    await websocket.accept()

    connection_id = uuid.uuid4().hex[:12]
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def forward(event: Event) -> None:
        if event.payload.get("connection_id") == connection_id:
            outbox.put_nowait(event.to_dict())

    sub_id = orchestrator.bus.subscribe("*", forward)
    sender = asyncio.create_task(_pump(websocket, outbox), name=f"ws-pump:{connection_id}")
    outbox.put_nowait({"event": "connection.ready", "connection_id": connection_id})
    logger.info("ws.connected", connection_id=connection_id)

    try:
        async for raw in websocket.iter_text():
            outbox.put_nowait(handle_command(orchestrator, connection_id, raw))
    except WebSocketDisconnect:
        pass
    finally:
        orchestrator.bus.unsubscribe(sub_id)
        orchestrator.end_connection(connection_id)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        logger.info("ws.disconnected", connection_id=connection_id)

"""
Control-channel message schemas.

Inbound commands arrive as JSON text frames on ``/ws`` and are validated
against the discriminated union :data:`Command` (``command`` field).

Tags:
    bulk-spine, api, schemas, websocket, pydantic
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from bulkspine.execution.models import JobConfig, JobKey


class _Addressed(BaseModel):
    """Commands are addressed by (profile, job_type) within the connection."""

    profile: str = Field(..., min_length=1)
    job_type: str = Field(..., min_length=1)

    def job_key(self, connection_id: str) -> JobKey:
        return JobKey(connection_id=connection_id, profile=self.profile, job_type=self.job_type)


class StartJobCommand(_Addressed):
    """Start a bulk run."""

    command: Literal["start"]
    path: str = Field(..., min_length=1, description="Create endpoint, e.g. /contacts")
    method: str = "post"
    rows: str | list[dict[str, Any]] = Field(
        ..., description="Newline-delimited values (with primary_field) or a JSON array of objects"
    )
    primary_field: str | None = None
    defaults: dict[str, Any] = Field(default_factory=dict)
    concurrency: int = Field(default=1, ge=1)
    delay_ms: int = Field(default=0, ge=0)
    failure_threshold: int = Field(default=0, ge=0)
    verify: bool = False
    verify_path: str | None = None
    strategy: Literal["batch", "pool"] | None = None
    resume_ids: list[str] = Field(default_factory=list)
    credentials: dict[str, Any] | None = None

    def job_config(self, default_strategy: str) -> JobConfig:
        return JobConfig(
            path=self.path,
            method=self.method,
            concurrency=self.concurrency,
            delay_ms=self.delay_ms,
            failure_threshold=self.failure_threshold,
            verify=self.verify,
            verify_path=self.verify_path,
            strategy=self.strategy or default_strategy,
            credentials=self.credentials,
        )


class PauseJobCommand(_Addressed):
    command: Literal["pause"]


class ResumeJobCommand(_Addressed):
    command: Literal["resume"]


class EndJobCommand(_Addressed):
    command: Literal["end"]


Command = Annotated[
    StartJobCommand | PauseJobCommand | ResumeJobCommand | EndJobCommand,
    Field(discriminator="command"),
]

command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


class JobSchema(BaseModel):
    """An active job, as listed by ``GET /jobs``."""

    job_id: str
    connection_id: str
    profile: str
    job_type: str
    status: str
    consecutive_failures: int = 0
    failure_threshold: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    active_jobs: int = 0
    subscribers: int = 0

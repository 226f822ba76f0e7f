"""Process-wide settings for the bulk orchestrator.

All values can be overridden through ``BULKSPINE_``-prefixed environment
variables or a ``.env`` file; unknown variables are ignored so the service
can share an environment with others.

Examples:
    >>> from bulkspine.core.settings import BulkSpineSettings
    >>> BulkSpineSettings(pause_mode="signal").pause_mode
    'signal'
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BulkSpineSettings(BaseSettings):
    """Settings shared by the orchestrator, the API and the CLI.

    Fields
    ──────
    pause_poll_interval  : seconds between status checks while a job is paused
    pause_mode           : ``poll`` re-reads status on a timer, ``signal`` wakes
                           on the status change (still bounded by the poll
                           interval)
    delay_check_interval : cancellation check granularity of inter-batch and
                           inter-item delays
    verify_grace_seconds : wait before reading back a created record
    """

    model_config = SettingsConfigDict(
        env_prefix="BULKSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Network ──────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 12100

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = Field(
        default=None,
        description="Force JSON (true) or console (false) logs; auto-detect when unset",
    )

    # ── Job control ──────────────────────────────────────────────
    pause_poll_interval: float = Field(default=0.5, gt=0)
    pause_mode: Literal["poll", "signal"] = "poll"
    delay_check_interval: float = Field(default=0.05, gt=0)
    verify_grace_seconds: float = Field(default=5.0, ge=0)
    default_strategy: Literal["batch", "pool"] = "batch"
    max_concurrency: int = Field(default=50, ge=1)

    # ── Remote API ───────────────────────────────────────────────
    remote_base_url: str | None = None
    remote_timeout: float = Field(default=30.0, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> BulkSpineSettings:
    """Cached settings, loaded once per process."""
    return BulkSpineSettings()

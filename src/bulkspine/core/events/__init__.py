"""Event system for the orchestrator's data plane.

Why This Package Exists
-----------------------
One job has many observers: the control connection that started it, a
CLI printer, tests.  Executors publish lifecycle events
(``row.complete``, ``job.auto_paused`` ...) to an ``EventBus`` without
knowing who listens; observers subscribe with wildcard patterns.

Publishing is synchronous and best-effort: a handler that raises is
logged and skipped, and the publisher never sees the failure.  Keeping
publish synchronous lets executors emit in the same loop iteration in
which they decide an outcome, so event order matches decision order.

Usage::

    from bulkspine.core.events import Event
    from bulkspine.core.events.memory import InMemoryEventBus

    bus = InMemoryEventBus()
    sub_id = bus.subscribe("row.*", lambda event: print(event.payload))
    bus.publish(Event(event_type="row.complete", source="executor"))

Modules
-------
memory      InMemoryEventBus -- single-process fan-out
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
]


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class Event:
    """Event payload published by the orchestrator.

    Attributes:
        event_type: Dot-separated type (e.g., ``row.complete``, ``job.ended``)
        source: Origin component
        payload: Event-specific data
        timestamp: When the event occurred (UTC)
        correlation_id: Job id the event belongs to
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    correlation_id: str | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``row.*`` matches ``row.processing``, ``row.complete``
            - ``*`` matches everything
            - ``job.ended`` matches exactly ``job.ended``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern

    def to_dict(self) -> dict[str, Any]:
        """Flatten for the wire: ``{"event": type, **payload}``."""
        return {
            "event": self.event_type,
            **self.payload,
            "event_id": self.event_id,
            "emitted_at": self.timestamp.isoformat(),
        }


# ── Type Aliases ─────────────────────────────────────────────────────────

EventHandler = Callable[[Event], None]


# ── EventBus Protocol ────────────────────────────────────────────────────


@runtime_checkable
class EventBus(Protocol):
    """Protocol for event bus implementations."""

    def publish(self, event: Event) -> None:
        """Deliver an event to all matching subscribers."""
        ...

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern; returns a subscription ID."""
        ...

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        ...

    def close(self) -> None:
        """Stop delivering and drop all subscriptions."""
        ...

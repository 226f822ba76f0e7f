"""
In-memory event bus implementation.

Single-process deployments (the API server, the CLI, the test suite) fan
events out to in-process handlers.  Events are delivered immediately and
not persisted.

Tags:
    bulk-spine, events, in-memory, single-node
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from bulkspine.core.events import Event, EventHandler
from bulkspine.core.logging import get_logger

__all__ = ["InMemoryEventBus"]

logger = get_logger(__name__)


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: EventHandler


class InMemoryEventBus:
    """In-process event bus.

    Handlers are called synchronously, in subscription order.  A handler
    exception is logged and does not stop delivery to the others.

    Example::

        bus = InMemoryEventBus()
        received = []
        bus.subscribe("job.*", received.append)
        bus.publish(Event(event_type="job.ended", source="orchestrator"))
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._closed = False

    def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        if self._closed:
            return

        # Snapshot: handlers may unsubscribe while being called
        for sub in list(self._subscriptions.values()):
            if not event.matches(sub.pattern):
                continue
            try:
                sub.handler(event)
            except Exception as e:
                logger.warning(
                    "event_handler_error",
                    subscription_id=sub.id,
                    event_type=event.event_type,
                    error=str(e),
                )

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern.

        Args:
            event_type: Pattern to match (supports ``*`` and ``type.*``)
            handler: Callback for matching events

        Returns:
            Subscription ID
        """
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            pattern=event_type,
            handler=handler,
        )
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        self._subscriptions.pop(subscription_id, None)

    def close(self) -> None:
        """Mark bus as closed and clear subscriptions."""
        self._closed = True
        self._subscriptions.clear()

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)

"""
Shared pytest fixtures for bulk-spine tests.

This module provides:
- A scriptable fake remote API (``FakeRemote``)
- Fast settings (short poll, delay-check and verification intervals)
- An orchestrator wired to an in-memory bus, plus an event collector
- structlog reset between tests
"""

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import structlog

# Ensure bulkspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bulkspine.core.events import Event
from bulkspine.core.events.memory import InMemoryEventBus
from bulkspine.core.settings import BulkSpineSettings
from bulkspine.execution.orchestrator import BulkOrchestrator


# =============================================================================
# Fake remote API
# =============================================================================


class FakeRemote:
    """Stand-in for the remote call capability.

    ``responder(method, path, payload)`` returns the response body, or an
    exception instance to raise.  By default every create succeeds with a
    sequential ``id``.
    """

    def __init__(
        self,
        responder: Callable[[str, str, Any], Any] | None = None,
        latency: float = 0.0,
    ) -> None:
        self.responder = responder or self._default
        self.latency = latency
        self.calls: list[tuple[str, str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def _default(self, method: str, path: str, payload: Any) -> Any:
        if method == "get":
            return {"id": path.rsplit("/", 1)[-1]}
        return {"id": f"rec-{len(self.calls)}"}

    async def __call__(self, method: str, path: str, payload: Any, credentials: Any = None) -> Any:
        self.calls.append((method, path, payload))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            else:
                await asyncio.sleep(0)
            result = self.responder(method, path, payload)
        finally:
            self.in_flight -= 1
        if isinstance(result, BaseException):
            raise result
        return result

    def creates(self) -> list[tuple[str, str, Any]]:
        return [c for c in self.calls if c[0] != "get"]


class EventLog(list):
    """Events captured from the bus, in publication order."""

    def types(self) -> list[str]:
        return [e.event_type for e in self]

    def of(self, event_type: str) -> list[Event]:
        return [e for e in self if e.event_type == event_type]

    def payloads(self, event_type: str) -> list[dict[str, Any]]:
        return [e.payload for e in self.of(event_type)]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any ``configure_logging`` call made by a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fast_settings() -> BulkSpineSettings:
    return BulkSpineSettings(
        _env_file=None,
        pause_poll_interval=0.01,
        delay_check_interval=0.01,
        verify_grace_seconds=0.01,
    )


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def events(bus: InMemoryEventBus) -> EventLog:
    log = EventLog()
    bus.subscribe("*", log.append)
    return log


@pytest.fixture
def orchestrator(fast_settings: BulkSpineSettings, remote: FakeRemote, bus: InMemoryEventBus) -> BulkOrchestrator:
    return BulkOrchestrator(fast_settings, remote, bus=bus)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until true; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.005)

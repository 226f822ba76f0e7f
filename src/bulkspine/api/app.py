"""
FastAPI application factory.

``create_app()`` wires the orchestrator and routers into a
single ``FastAPI`` instance.  The orchestrator lives for the lifetime of the
app: it is built on startup and every job is ended and cleaned up on
shutdown.

Tags:
    bulk-spine, api, app-factory, composition-root, FastAPI
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bulkspine import __version__
from bulkspine.core.logging import get_logger
from bulkspine.core.settings import BulkSpineSettings, get_settings
from bulkspine.execution.orchestrator import BulkOrchestrator
from bulkspine.execution.remote import HttpRemoteCall, RemoteCall

log = get_logger("bulkspine.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the orchestrator, end all jobs on exit."""
    settings: BulkSpineSettings = app.state.settings
    call: RemoteCall | None = app.state.remote_call
    owned_client: HttpRemoteCall | None = None
    if call is None:
        owned_client = HttpRemoteCall(settings.remote_base_url, timeout=settings.remote_timeout)
        call = owned_client

    app.state.orchestrator = BulkOrchestrator(settings, call)
    log.info("bulk-spine API starting", version=app.version, pause_mode=settings.pause_mode)

    try:
        yield
    finally:
        await app.state.orchestrator.shutdown()
        app.state.orchestrator.bus.close()
        if owned_client is not None:
            await owned_client.aclose()
        log.info("bulk-spine API shut down")


def create_app(
    settings: BulkSpineSettings | None = None,
    remote_call: RemoteCall | None = None,
) -> FastAPI:
    """Build and return a configured FastAPI application.

    Parameters
    ----------
    settings : BulkSpineSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    remote_call : RemoteCall | None
        The remote API capability.  When ``None`` an :class:`HttpRemoteCall`
        against ``settings.remote_base_url`` is created and closed with the app.
    """
    settings = settings or get_settings()

    app = FastAPI(title="bulk-spine", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.remote_call = remote_call

    from bulkspine.api.routers import jobs

    app.include_router(jobs.router, tags=["jobs"])
    return app

"""
CLI: ``bulkspine serve``, the WebSocket control server.
"""

from __future__ import annotations

import typer
import uvicorn

from bulkspine.cli.utils import console
from bulkspine.core.logging import configure_logging
from bulkspine.core.settings import get_settings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address [default: settings.host]"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port [default: settings.port]"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level [default: settings.log_level]"),
) -> None:
    """Start the WebSocket control server."""
    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    level = (log_level or settings.log_level).upper()

    configure_logging(level=level, json_format=settings.json_logs)
    console.print(f"[bold green]Starting bulk-spine[/bold green] on {host}:{port}  (ws://{host}:{port}/ws)")
    uvicorn.run(
        "bulkspine.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=level.lower(),
    )

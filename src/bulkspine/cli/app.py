"""
Root Typer application for the ``bulkspine`` CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from bulkspine import __version__
from bulkspine.cli.run import run
from bulkspine.cli.serve import serve

app = Typer(
    name="bulkspine",
    help="bulk-spine: paced, pausable bulk record creation against remote APIs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"bulk-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """bulk-spine CLI: serve the control channel or run a job locally."""


# ── Commands ─────────────────────────────────────────────────────────────

app.command("serve")(serve)
app.command("run")(run)

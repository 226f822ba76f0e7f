"""
CLI utility helpers: consoles and input loading.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

console = Console()
err_console = Console(stderr=True)


def read_text_file(path: Path) -> str:
    """Read a UTF-8 input file, exiting with code 2 if it cannot be read."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        err_console.print(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(code=2) from e


def read_id_list(path: Path | None) -> list[str]:
    """One identifier per line; blank lines are ignored."""
    if path is None:
        return []
    return [line.strip() for line in read_text_file(path).splitlines() if line.strip()]

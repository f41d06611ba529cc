"""
CLI utility helpers - client construction and output formatting.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console

from cachecell.client import CacheClient
from cachecell.config import create_cache_client, get_settings
from cachecell.errors import CellError
from cachecell.logging import configure_logging

console = Console()
err_console = Console(stderr=True)


def make_client() -> CacheClient:
    """Build the configured cache client and set up logging."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return create_cache_client(settings)


def render_value(value: Any, *, as_json: bool = False) -> None:
    """Print a fetched value."""
    if as_json:
        console.print_json(json.dumps(value, default=str))
        return
    console.print(repr(value), markup=False, highlight=False)


def fail(error: Exception) -> None:
    """Report *error* on stderr and exit 1."""
    if isinstance(error, CellError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)

"""
Root Typer application for the cachecell CLI.

Every command works on one backend key through a Blob (or, with
``--counter``, a Counter), so values are decoded exactly as application
code would see them.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.markup import escape

from cachecell.cell import Blob, Counter
from cachecell.cli import utils
from cachecell.client import DeleteStatus
from cachecell.naming import lock_name

app = typer.Typer(
    name="cachecell",
    help="cachecell - cache-backed variables with advisory interlocks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from cachecell import __version__

        typer.echo(f"cachecell {__version__}")
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
    """cachecell CLI - read, write and unlock cache cells."""


def _cell(key: str, counter: bool) -> Blob:
    client = utils.make_client()
    return Counter(client, key) if counter else Blob(client, key)


@app.command("get")
def get_value(
    key: str = typer.Argument(..., help="Backend key"),
    counter: bool = typer.Option(False, "--counter", "-c", help="Read as an integer counter"),
    as_json: bool = typer.Option(False, "--json", help="Render as JSON"),
) -> None:
    """Print the value stored under KEY."""
    try:
        value = _cell(key, counter).get()
    except Exception as exc:
        utils.fail(exc)
    utils.render_value(value, as_json=as_json)


@app.command("set")
def set_value(
    key: str = typer.Argument(..., help="Backend key"),
    value: str = typer.Argument(..., help="Value to store"),
    counter: bool = typer.Option(False, "--counter", "-c", help="Store as an integer counter"),
    parse_json: bool = typer.Option(False, "--json", help="Parse VALUE as JSON"),
    ttl: int | None = typer.Option(None, "--ttl", help="Expiry in seconds (default from settings)"),
) -> None:
    """Store VALUE under KEY."""
    payload: Any = value
    try:
        if counter:
            payload = int(value)
        elif parse_json:
            payload = json.loads(value)
    except ValueError as exc:
        utils.fail(exc)

    try:
        cell = _cell(key, counter)
        cell.expiry = ttl if ttl is not None else utils.get_settings().default_ttl
        stored = cell.set(payload)
    except Exception as exc:
        utils.fail(exc)
    utils.render_value(stored)


@app.command("reset")
def reset_value(
    key: str = typer.Argument(..., help="Backend key"),
    counter: bool = typer.Option(False, "--counter", "-c", help="Reset to 0 instead of None"),
) -> None:
    """Overwrite KEY with its reset value."""
    try:
        value = _cell(key, counter).reset()
    except Exception as exc:
        utils.fail(exc)
    utils.render_value(value)


@app.command("incr")
def increment(
    key: str = typer.Argument(..., help="Backend key"),
    amount: int = typer.Argument(1, help="Amount to add"),
) -> None:
    """Atomically increment the counter at KEY."""
    try:
        value = Counter(utils.make_client(), key).increment(amount)
    except Exception as exc:
        utils.fail(exc)
    if value is None:
        utils.err_console.print(f"[yellow]{key}[/yellow] does not exist")
        raise typer.Exit(code=1)
    utils.render_value(value)


@app.command("decr")
def decrement(
    key: str = typer.Argument(..., help="Backend key"),
    amount: int = typer.Argument(1, help="Amount to subtract"),
) -> None:
    """Atomically decrement the counter at KEY (floors at 0)."""
    try:
        value = Counter(utils.make_client(), key).decrement(amount)
    except Exception as exc:
        utils.fail(exc)
    if value is None:
        utils.err_console.print(f"[yellow]{key}[/yellow] does not exist")
        raise typer.Exit(code=1)
    utils.render_value(value)


@app.command("lock-holder")
def lock_holder(key: str = typer.Argument(..., help="Backend key of the cell")) -> None:
    """Show which identity holds the interlock on KEY."""
    try:
        holder = utils.make_client().get(lock_name(key))
    except Exception as exc:
        utils.fail(exc)
    if holder is None:
        utils.console.print(f"{key} is not locked")
        return
    utils.console.print(f"{escape(key)} locked by [bold]{escape(str(holder))}[/bold]")


@app.command("break-lock")
def break_lock(
    key: str = typer.Argument(..., help="Backend key of the cell"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete the interlock entry of KEY, e.g. after its holder crashed.

    The holder, if still alive, will hit LockInconsistency on its next unlock.
    """
    if not yes:
        typer.confirm(f"Break the lock on {key}?", abort=True)
    try:
        status = utils.make_client().delete(lock_name(key))
    except Exception as exc:
        utils.fail(exc)
    if status is DeleteStatus.DELETED:
        utils.console.print(f"[green]Lock on {key} released[/green]")
    else:
        utils.console.print(f"{key} was not locked")


@app.command("config")
def show_config() -> None:
    """Show the effective settings."""
    settings = utils.get_settings()
    console = utils.console
    console.print_json(settings.model_dump_json())

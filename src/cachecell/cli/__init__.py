"""cachecell CLI - inspect and repair cache cells from the shell."""

from cachecell.cli.app import app

__all__ = ["app"]

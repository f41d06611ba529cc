"""
Structured logging for cachecell.

Cells and hosts log one structlog event per interlock or lifecycle
transition:

    ========================  ==========  ==============================
    event                     level       emitted by
    ========================  ==========  ==============================
    cell_locked               debug       Blob.lock() acquired
    cell_lock_refused         debug       Blob.lock() held elsewhere
    cell_unlocked             debug       Blob.unlock()
    cell_lock_inconsistency   warning     Blob.unlock() mismatch
    cell_destroyed            debug       Blob.destroy()
    host_close_failed         warning     CacheHost.close() per failure
    host_closed               debug       CacheHost.close()
    cache_client_created      debug       create_cache_client()
    ========================  ==========  ==============================

Every cell event carries ``cell`` and ``identity``; the interlock events
also get ``lock_key`` filled in by the processor chain. Whatever a
:class:`~cachecell.host.CacheHost` does to its cells runs inside
:func:`host_context`, so those events name the host and its identity too.

Examples:
    >>> from cachecell.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=True, service="cart-api")
    >>> get_logger(__name__).debug("cell_locked", cell="Cart:1:@items", identity="...")
    {"cell": "Cart:1:@items", "identity": "...", "event": "cell_locked", "level": "debug", ...,
     "service": "cart-api", "lock_key": "Cart:1:@items-lock"}

Tags:
    logging, structlog, cachecell
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from cachecell.naming import lock_name, owner_identity

_INTERLOCK_EVENTS = frozenset(
    {"cell_locked", "cell_lock_refused", "cell_unlocked", "cell_lock_inconsistency"}
)


def _add_lock_key(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Name the backend lock entry on interlock events."""
    cell = event_dict.get("cell")
    if cell and event_dict.get("event") in _INTERLOCK_EVENTS:
        event_dict.setdefault("lock_key", lock_name(cell))
    return event_dict


def _service_tagger(service: str) -> Processor:
    def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "cachecell",
) -> None:
    """Configure structlog for cachecell events.

    Args:
        level: Minimum level (DEBUG shows every lock transition)
        json_format: True for JSON lines, False for the console renderer,
            None to pick JSON whenever stdout is not a terminal
        service: Value of the ``service`` field on every event
    """
    numeric_level = logging.getLevelNamesMapping()[level.upper()]
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_tagger(service),
        _add_lock_key,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    # pymemcache and redis log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger named *name* (usually ``__name__``)."""
    return structlog.get_logger(name)


@contextmanager
def host_context(host: object) -> Iterator[None]:
    """Tag every event logged inside the block with *host*'s type and identity.

    Example:
        with host_context(cart):
            cart.cell("items").lock()   # cell_locked ... host=Cart host_identity=...
    """
    with structlog.contextvars.bound_contextvars(
        host=type(host).__name__,
        host_identity=owner_identity(host),
    ):
        yield


__all__ = [
    "configure_logging",
    "get_logger",
    "host_context",
]

"""
Backend enumerations for the cache client.

Example::

    from cachecell.config.components import ClientBackend

    ClientBackend("memcached")   # ClientBackend.MEMCACHED
"""

from __future__ import annotations

from enum import Enum


class ClientBackend(str, Enum):
    """Supported cache client backends."""

    MEMORY = "memory"
    MEMCACHED = "memcached"
    REDIS = "redis"


class LogFormat(str, Enum):
    """Log rendering formats."""

    AUTO = "auto"
    JSON = "json"
    CONSOLE = "console"

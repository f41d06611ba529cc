"""
Build a cache client from settings.

Imports of ``pymemcache`` and ``redis`` are deferred to the branch that
needs them, so only the selected backend's library has to be importable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cachecell.client import CacheClient, InMemoryClient, MemcachedClient, RedisClient
from cachecell.logging import get_logger

from .components import ClientBackend

if TYPE_CHECKING:
    from .settings import CacheCellSettings

logger = get_logger(__name__)


def parse_server(server: str) -> tuple[str, int]:
    """Split ``host:port`` (port defaults to 11211)."""
    server = server.replace("memcached://", "")
    host, sep, port = server.rpartition(":")
    if not sep:
        host, port = server, ""
    return (host or "127.0.0.1", int(port) if port else 11211)


def create_cache_client(settings: CacheCellSettings) -> CacheClient:
    """Create a cache client based on *settings.backend*."""
    match settings.backend:
        case ClientBackend.MEMORY:
            client: CacheClient = InMemoryClient(max_size=settings.memory_max_size)
        case ClientBackend.MEMCACHED:
            servers = [parse_server(s) for s in settings.servers]
            if len(servers) == 1:
                from pymemcache.client.base import Client

                raw = Client(
                    servers[0],
                    connect_timeout=settings.connect_timeout,
                    timeout=settings.timeout,
                )
            else:
                from pymemcache.client.hash import HashClient

                raw = HashClient(
                    servers,
                    connect_timeout=settings.connect_timeout,
                    timeout=settings.timeout,
                )
            client = MemcachedClient(raw)
        case ClientBackend.REDIS:
            import redis

            raw = redis.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                decode_responses=False,
            )
            client = RedisClient(raw)
    logger.debug("cache_client_created", backend=settings.backend.value)
    return client

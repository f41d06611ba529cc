"""
Backend client adapters for the shared key-value cache.

Cells talk to the cache through the small ``CacheClient`` protocol below:
six single-key primitives that are atomic on the server and nothing more.
No transactions, no compare-and-swap beyond "add fails if the key exists",
no eviction notifications. The interlock protocol in :mod:`cachecell.cell`
is built entirely from these.

Manifesto:
    - **Protocol-based:** CacheClient defines the contract, adapters wrap
      the real client libraries
    - **Memcached semantics:** add/set/get/delete/incr/decr with statuses,
      missing keys are not created by incr/decr, decr floors at zero
    - **Two storage modes:** marshalled (pickle) for structured values,
      raw (UTF-8 text) for values that must support atomic arithmetic
    - **No hidden retries:** transport errors from pymemcache/redis
      propagate unmodified

Architecture:
    ::

        CacheClient (Protocol)
        ├── InMemoryClient   - single-process, bounded LRU, dev/tests
        ├── MemcachedClient  - pymemcache Client / HashClient
        └── RedisClient      - redis-py, SET NX + Lua incr/decr

        API: add(key, value, ttl=0, raw=False)    → StoreStatus
             set(key, value, ttl=0, raw=False)    → StoreStatus
             get(key, raw=False)                  → value | None
             delete(key)                          → DeleteStatus
             increment(key, amount=1)             → int | None
             decrement(key, amount=1)             → int | None

Examples:
    >>> from cachecell.client import InMemoryClient, StoreStatus
    >>> client = InMemoryClient()
    >>> client.add("k", [1, 2])
    <StoreStatus.STORED: 'STORED'>
    >>> client.add("k", [3])
    <StoreStatus.NOT_STORED: 'NOT_STORED'>
    >>> client.get("k")
    [1, 2]

Guardrails:
    ❌ DON'T: Use InMemoryClient across processes (nothing is shared)
    ✅ DO: Use MemcachedClient or RedisClient for real deployments

    ❌ DON'T: increment a key stored in marshalled mode
    ✅ DO: Store counters with raw=True

Tags:
    cache, memcached, redis, in-memory, ttl, atomic, cachecell
"""

from __future__ import annotations

import pickle
import threading
import time
from collections import OrderedDict
from enum import Enum
from typing import Any, Protocol


class StoreStatus(str, Enum):
    """Outcome of an ``add`` or ``set``."""

    STORED = "STORED"
    NOT_STORED = "NOT_STORED"


class DeleteStatus(str, Enum):
    """Outcome of a ``delete``."""

    DELETED = "DELETED"
    NOT_FOUND = "NOT_FOUND"


class CacheClient(Protocol):
    """Protocol for backend cache clients.

    Every method is atomic for a single key. Nothing is atomic across keys.

    Implementations:
        - :class:`InMemoryClient` - single-process store
        - :class:`MemcachedClient` - memcached via pymemcache
        - :class:`RedisClient` - redis via redis-py
    """

    def add(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        """Store *value* only if *key* is absent.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Expiry in seconds, ``0`` for no expiry.
            raw: Store ``str(value)`` as text instead of marshalling.

        Returns:
            ``STORED`` if created, ``NOT_STORED`` if the key already existed.
        """
        ...

    def set(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        """Store *value* unconditionally."""
        ...

    def get(self, key: str, raw: bool = False) -> Any | None:
        """Fetch the value under *key*, or ``None`` if absent or expired."""
        ...

    def delete(self, key: str) -> DeleteStatus:
        """Remove *key*. ``NOT_FOUND`` if it did not exist."""
        ...

    def increment(self, key: str, amount: int = 1) -> int | None:
        """Atomically add *amount* to a raw integer value.

        Returns:
            The new value, or ``None`` if the key does not exist.
        """
        ...

    def decrement(self, key: str, amount: int = 1) -> int | None:
        """Atomically subtract *amount*, never going below zero.

        Returns:
            The new value, or ``None`` if the key does not exist.
        """
        ...


# ------------------------------------------------------------------ #
# Value codec
# ------------------------------------------------------------------ #


def encode_value(value: Any, raw: bool = False) -> bytes:
    """Serialize *value* for storage.

    Marshalled mode pickles the value. Raw mode stores its text form so the
    server can do arithmetic on it.
    """
    if raw:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")
    return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)


def decode_value(data: bytes | str | None, raw: bool = False) -> Any | None:
    """Inverse of :func:`encode_value`. Raw values come back as ``str``."""
    if data is None:
        return None
    if raw:
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data
    return pickle.loads(data)


def _parse_counter(data: bytes, key: str) -> int:
    try:
        return int(data)
    except ValueError as exc:
        msg = f"cannot increment or decrement non-numeric value at {key!r}"
        raise ValueError(msg) from exc


# ------------------------------------------------------------------ #
# In-Memory Client
# ------------------------------------------------------------------ #


class InMemoryClient:
    """Bounded in-memory cache with memcached semantics.

    Values are held encoded, exactly as a remote server would hold them, so
    mutating a fetched value never changes what is stored. A single mutex
    makes every primitive atomic across threads. Uses LRU eviction when
    ``max_size`` is reached.

    Example:
        client = InMemoryClient(max_size=500)
        client.set("session:abc", {"user_id": 42}, ttl=3600)
        session = client.get("session:abc")
    """

    def __init__(self, *, max_size: int = 10_000):
        """Initialize in-memory client.

        Args:
            max_size: Maximum number of keys (LRU eviction after).
        """
        self._store: OrderedDict[str, tuple[bytes, float | None]] = OrderedDict()
        self._max_size = max_size
        self._mutex = threading.RLock()

    def _live(self, key: str) -> bytes | None:
        """Return the stored bytes for *key*, expiring it lazily. Caller holds the mutex."""
        entry = self._store.get(key)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at is not None and time.time() >= expires_at:
            del self._store[key]
            return None
        self._store.move_to_end(key)
        return data

    def _put(self, key: str, data: bytes, ttl: int) -> None:
        expires_at = (time.time() + ttl) if ttl else None
        if key not in self._store and len(self._store) >= self._max_size:
            self._store.popitem(last=False)
        self._store[key] = (data, expires_at)
        self._store.move_to_end(key)

    def add(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        data = encode_value(value, raw)
        with self._mutex:
            if self._live(key) is not None:
                return StoreStatus.NOT_STORED
            self._put(key, data, ttl)
            return StoreStatus.STORED

    def set(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        data = encode_value(value, raw)
        with self._mutex:
            self._put(key, data, ttl)
            return StoreStatus.STORED

    def get(self, key: str, raw: bool = False) -> Any | None:
        with self._mutex:
            data = self._live(key)
        return decode_value(data, raw)

    def delete(self, key: str) -> DeleteStatus:
        with self._mutex:
            if self._live(key) is None:
                return DeleteStatus.NOT_FOUND
            del self._store[key]
            return DeleteStatus.DELETED

    def increment(self, key: str, amount: int = 1) -> int | None:
        return self._adjust(key, amount)

    def decrement(self, key: str, amount: int = 1) -> int | None:
        return self._adjust(key, -amount)

    def _adjust(self, key: str, delta: int) -> int | None:
        with self._mutex:
            data = self._live(key)
            if data is None:
                return None
            value = max(0, _parse_counter(data, key) + delta)
            _, expires_at = self._store[key]
            self._store[key] = (str(value).encode("utf-8"), expires_at)
            return value

    def clear(self) -> None:
        """Remove all keys."""
        with self._mutex:
            self._store.clear()

    def size(self) -> int:
        """Return current number of stored keys (expired ones included until touched)."""
        return len(self._store)


# ------------------------------------------------------------------ #
# Memcached Client
# ------------------------------------------------------------------ #


class MemcachedClient:
    """Memcached-backed client.

    Wraps a ``pymemcache`` ``Client`` or ``HashClient``. pymemcache defaults
    to ``noreply=True`` for storage commands, which hides the server status;
    every call here passes ``noreply=False`` so ``add`` and ``delete`` report
    what actually happened.

    Example:
        from pymemcache.client.base import Client
        client = MemcachedClient(Client(("127.0.0.1", 11211)))
    """

    def __init__(self, client: Any):
        self._client = client

    @property
    def raw_client(self) -> Any:
        return self._client

    def add(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        stored = self._client.add(key, encode_value(value, raw), expire=ttl, noreply=False)
        return StoreStatus.STORED if stored else StoreStatus.NOT_STORED

    def set(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        stored = self._client.set(key, encode_value(value, raw), expire=ttl, noreply=False)
        return StoreStatus.STORED if stored else StoreStatus.NOT_STORED

    def get(self, key: str, raw: bool = False) -> Any | None:
        return decode_value(self._client.get(key), raw)

    def delete(self, key: str) -> DeleteStatus:
        deleted = self._client.delete(key, noreply=False)
        return DeleteStatus.DELETED if deleted else DeleteStatus.NOT_FOUND

    def increment(self, key: str, amount: int = 1) -> int | None:
        result = self._client.incr(key, amount, noreply=False)
        return int(result) if result is not None else None

    def decrement(self, key: str, amount: int = 1) -> int | None:
        # memcached itself floors decr at zero
        result = self._client.decr(key, amount, noreply=False)
        return int(result) if result is not None else None


# ------------------------------------------------------------------ #
# Redis Client
# ------------------------------------------------------------------ #

_INCREMENT_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return false
end
redis.call('INCRBY', KEYS[1], ARGV[1])
return redis.call('GET', KEYS[1])
"""

# DECRBY keeps the arithmetic in 64-bit integers; only a negative result is
# rewritten, to 0. Both scripts return the stored text, since Lua numbers
# are doubles.
_DECREMENT_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return false
end
if redis.call('DECRBY', KEYS[1], ARGV[1]) < 0 then
    redis.call('SET', KEYS[1], 0, 'KEEPTTL')
end
return redis.call('GET', KEYS[1])
"""


class RedisClient:
    """Redis-backed client with memcached semantics.

    ``add`` maps to ``SET NX``; ttl maps to ``EX``. Redis would create a
    missing key on ``INCRBY`` and happily go negative on ``DECRBY``, so both
    run as server-side Lua scripts that return nil for absent keys and
    floor at zero. The wrapped client must not decode responses.

    Example:
        import redis
        client = RedisClient(redis.from_url("redis://localhost:6379/0"))
    """

    def __init__(self, client: Any):
        self._client = client
        self._increment = client.register_script(_INCREMENT_SCRIPT)
        self._decrement = client.register_script(_DECREMENT_SCRIPT)

    @property
    def raw_client(self) -> Any:
        return self._client

    def add(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        stored = self._client.set(key, encode_value(value, raw), nx=True, ex=ttl or None)
        return StoreStatus.STORED if stored else StoreStatus.NOT_STORED

    def set(self, key: str, value: Any, ttl: int = 0, raw: bool = False) -> StoreStatus:
        stored = self._client.set(key, encode_value(value, raw), ex=ttl or None)
        return StoreStatus.STORED if stored else StoreStatus.NOT_STORED

    def get(self, key: str, raw: bool = False) -> Any | None:
        return decode_value(self._client.get(key), raw)

    def delete(self, key: str) -> DeleteStatus:
        removed = self._client.delete(key)
        return DeleteStatus.DELETED if removed else DeleteStatus.NOT_FOUND

    def increment(self, key: str, amount: int = 1) -> int | None:
        result = self._increment(keys=[key], args=[amount])
        return int(result) if result is not None else None

    def decrement(self, key: str, amount: int = 1) -> int | None:
        result = self._decrement(keys=[key], args=[amount])
        return int(result) if result is not None else None


__all__ = [
    "StoreStatus",
    "DeleteStatus",
    "CacheClient",
    "encode_value",
    "decode_value",
    "InMemoryClient",
    "MemcachedClient",
    "RedisClient",
]

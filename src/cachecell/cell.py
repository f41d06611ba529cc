"""
Cache-backed variables: Blob and Counter.

A Cell binds one logical variable to one backend key. Reading it fetches
from the cache, writing it stores into the cache, and the value a caller
gets back is wrapped so that in-place edits are written back too (see
:mod:`cachecell.writeback`).

Manifesto:
    Application objects want to keep state in a shared cache as if it were
    a local field. Processes racing on the same key need a way to take
    turns, and a backend that only offers single-key atomics has no locks.
    The interlock here is built from one primitive: ``add`` fails if the
    key exists.

    - **Advisory interlock:** ``lock()`` adds ``<name>-lock`` holding the
      cell's identity; ``unlock()`` deletes it after checking it is ours
    - **Fail loudly:** a local lock flag that disagrees with the backend
      raises LockInconsistency instead of being patched over
    - **Terminal destroy:** a destroyed Cell refuses every operation
    - **Explicit client:** the backend handle is passed in, never global

Architecture:
    ::

        Blob (raw_mode=False, RESET_VALUE=None)
        │   get()      → backend.get(name) → enwrap(value, self)
        │   set(v)     → unwrap(v) → backend.add + backend.set → get()
        │   reset()    → backend.set(name, RESET_VALUE)
        │   lock()     → backend.add(name-lock, identity) == STORED
        │   unlock()   → backend.get(name-lock) == identity → backend.delete
        │   destroy()  → unlock() → destroyed
        │
        └── Counter (raw_mode=True, RESET_VALUE=0)
                get()         → int(...)
                set(int)      → CounterIntegerOnly unless int
                increment(n)  → backend.increment(name, n)
                decrement(n)  → backend.decrement(name, n), floors at 0

    Lock sub-state::

        Unlocked ──lock() STORED──▶ LockedByUs ──unlock()──▶ Unlocked
        Unlocked ──lock() NOT_STORED──▶ Unlocked
        either ──destroy()──▶ Unlocked + Destroyed (terminal)

Examples:
    >>> from cachecell.client import InMemoryClient
    >>> client = InMemoryClient()
    >>> hits = Counter(client, "site:hits")
    >>> hits.set(5)
    5
    >>> hits.increment(3)
    8
    >>> hits.decrement(100)
    0

    >>> a = Blob(client, "shared:queue")
    >>> b = Blob(client, "shared:queue")
    >>> a.lock(), b.lock()
    (True, False)
    >>> a.unlock(), b.lock()
    (True, True)

Guardrails:
    ❌ DON'T: Rely on the interlock for fencing; nothing stops a caller
       that skips lock() from writing
    ✅ DO: lock() before read-modify-write and unlock() after, everywhere

    ❌ DON'T: Rely on garbage collection to release locks
    ✅ DO: unlock() or destroy() explicitly, or use ``with cell.held()``

Tags:
    cache, memcached, redis, locking, interlock, counter, cachecell
"""

from __future__ import annotations

import os
import socket
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any, ClassVar

from cachecell.client import CacheClient, DeleteStatus, StoreStatus
from cachecell.errors import CounterIntegerOnly, Destroyed, LockInconsistency
from cachecell.logging import get_logger
from cachecell.naming import SharingMode, lock_name
from cachecell.writeback import enwrap, unwrap

logger = get_logger(__name__)

_UNSET: Any = object()


def make_identity(obj: object) -> str:
    """Lock-owner token for *obj*: unique per host, process, thread and instance."""
    return "host[%s]:pid[%d]:thread[%d]:%s[%d]" % (
        socket.gethostname().strip(),
        os.getpid(),
        threading.get_ident(),
        type(obj).__name__,
        id(obj),
    )


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Blob:
    """Arbitrary data stored in the shared cache.

    Values are marshalled (pickled) on the way in. The backend key is the
    cell's ``name``; it is given at construction or bound once later with
    :meth:`bind`.

    Args:
        client: Backend client the cell reads and writes through
        name: Backend key; may be left unbound and supplied via ``bind``
        initial: Value to ``set`` once the cell has a name
        ttl: Expiry in seconds for stored values, 0 for none
        sharing: Sharing mode the cell was declared with
    """

    RESET_VALUE: ClassVar[Any] = None
    RAW_MODE: ClassVar[bool] = False

    def __init__(
        self,
        client: CacheClient,
        name: str | None = None,
        initial: Any = _UNSET,
        *,
        ttl: int = 0,
        sharing: SharingMode = SharingMode.SHARED,
    ) -> None:
        self._client = client
        self._name: str | None = None
        self._expiry = 0
        self._locked_by_us = False
        self._destroyed = False
        self._sharing = sharing
        self._pending = _UNSET
        self._identity = make_identity(self)
        self.expiry = ttl
        if name is not None:
            self.bind(name)
        if initial is not _UNSET and initial is not None:
            if self._name is None:
                self._pending = initial
            else:
                self.set(initial)

    # ── Naming ───────────────────────────────────────────────────

    @property
    def name(self) -> str:
        """Backend key. Raises RuntimeError if the cell was never bound."""
        if self._name is None:
            raise RuntimeError(f"{type(self).__name__} has no name; bind() it to a backend key first")
        return self._name

    @property
    def is_bound(self) -> bool:
        return self._name is not None

    def bind(self, name: str) -> Blob:
        """Bind the cell to backend key *name*. A name can be bound only once."""
        if not name:
            raise ValueError("cell name must not be empty")
        if self._name is not None:
            if self._name == name:
                return self
            raise RuntimeError(f"cell already bound to {self._name!r}; cannot rebind to {name!r}")
        self._name = name
        if self._pending is not _UNSET:
            pending, self._pending = self._pending, _UNSET
            self.set(pending)
        return self

    @property
    def lock_name(self) -> str:
        return lock_name(self.name)

    # ── Attributes ───────────────────────────────────────────────

    @property
    def expiry(self) -> int:
        """Time-to-live in seconds applied by set/reset, 0 for none."""
        return self._expiry

    @expiry.setter
    def expiry(self, ttl: int) -> None:
        if not _is_integer(ttl) or ttl < 0:
            raise ValueError(f"expiry must be a non-negative integer, got {ttl!r}")
        self._expiry = ttl

    @property
    def raw_mode(self) -> bool:
        return self.RAW_MODE

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def locked_by_us(self) -> bool:
        return self._locked_by_us

    @property
    def sharing(self) -> SharingMode:
        return self._sharing

    @property
    def is_shared(self) -> bool:
        return self._sharing is SharingMode.SHARED

    @property
    def is_private(self) -> bool:
        return self._sharing is SharingMode.PRIVATE

    @property
    def client(self) -> CacheClient:
        return self._client

    @property
    def destroyed(self) -> bool:
        """False until :meth:`destroy` has been called, True forever after."""
        return self._destroyed

    def _log(self, event: str, level: str = "debug", **fields: Any) -> None:
        getattr(logger, level)(event, cell=self._name, identity=self._identity, **fields)

    def _check_alive(self) -> None:
        if self._destroyed:
            details = (self._name,) if self._name else ()
            raise Destroyed(*details).with_context(cell=self._name, identity=self._identity)

    # ── Value ────────────────────────────────────────────────────

    def get(self) -> Any:
        """Fetch the value. Mutable values come back write-back wrapped."""
        self._check_alive()
        value = self._client.get(self.name, raw=self.raw_mode)
        return enwrap(value, self)

    def set(self, value: Any) -> Any:
        """Store *value* and return a freshly fetched, freshly wrapped copy.

        ``add`` makes sure an entry exists; ``set`` then overwrites it in
        case ``add`` found one already there.
        """
        self._check_alive()
        value = unwrap(value)
        self._client.add(self.name, value, self._expiry, self.raw_mode)
        self._client.set(self.name, value, self._expiry, self.raw_mode)
        return self.get()

    read = get
    write = set

    def reset(self) -> Any:
        """Overwrite the stored value with the type's reset value and return it."""
        self._check_alive()
        value = type(self).RESET_VALUE
        self._client.set(self.name, value, self._expiry, self.raw_mode)
        return value

    # ── Interlock ────────────────────────────────────────────────

    def lock(self) -> bool:
        """Try to take the advisory interlock.

        Returns True if this instance holds the lock (including when it
        already did), False if another holder has it.
        """
        self._check_alive()
        if self._locked_by_us:
            return True
        status = self._client.add(self.lock_name, self._identity)
        self._locked_by_us = status is StoreStatus.STORED
        if self._locked_by_us:
            self._log("cell_locked")
        else:
            self._log("cell_lock_refused")
        return self._locked_by_us

    def unlock(self) -> bool:
        """Release the interlock if this instance holds it.

        Returns False (no-op) if this instance does not believe it holds the
        lock. Raises LockInconsistency if the backend lock key does not hold
        this instance's identity, or the backend does not confirm deleting
        it.
        """
        self._check_alive()
        if not self._locked_by_us:
            return False
        holder = self._client.get(self.lock_name)
        if holder != self._identity:
            self._log("cell_lock_inconsistency", "warning", holder=holder)
            raise LockInconsistency(self.lock_name, self._identity, repr(holder)).with_context(
                cell=self.name, lock_key=self.lock_name, identity=self._identity
            )
        self._locked_by_us = False
        status = self._client.delete(self.lock_name)
        if status is not DeleteStatus.DELETED:
            self._log("cell_lock_inconsistency", "warning", delete_status=status.value)
            raise LockInconsistency(self.lock_name, DeleteStatus.DELETED.value, status.value).with_context(
                cell=self.name, lock_key=self.lock_name, identity=self._identity
            )
        self._log("cell_unlocked")
        return True

    @contextmanager
    def held(self) -> Iterator[bool]:
        """Attempt the interlock for the duration of a ``with`` block.

        Yields whether the lock was acquired; releases it on exit only if it
        was acquired here::

            with cell.held() as acquired:
                if acquired:
                    cell.set(cell.get() + [item])
        """
        already_held = self._locked_by_us
        acquired = self.lock()
        try:
            yield acquired
        finally:
            if acquired and not already_held and not self._destroyed:
                self.unlock()

    # ── Lifecycle ────────────────────────────────────────────────

    def destroy(self) -> None:
        """Release any held lock and make this instance permanently unusable.

        The backend value itself is left in place.
        """
        self._check_alive()
        if self._name is not None:
            self.unlock()
        self._destroyed = True
        self._log("cell_destroyed")

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else ("locked" if self._locked_by_us else "unlocked")
        return f"<{type(self).__name__} name={self._name!r} {state}>"


class Counter(Blob):
    """Integer-only cell stored raw so the server can increment it atomically.

    Raw values round-trip as text, so ``get`` converts back to ``int``; an
    absent entry reads as 0.
    """

    RESET_VALUE: ClassVar[Any] = 0
    RAW_MODE: ClassVar[bool] = True

    def _check_integer(self, value: Any) -> None:
        if not _is_integer(value):
            raise CounterIntegerOnly(repr(self._name)).with_context(cell=self._name, value=repr(value))

    def get(self) -> int:
        value = super().get()
        if value is None:
            return 0
        return int(value)

    def set(self, value: Any) -> int:
        self._check_alive()
        self._check_integer(value)
        return int(super().set(value))

    read = get
    write = set

    def increment(self, amount: int = 1) -> int | None:
        """Atomically add *amount*. Returns the new value, None if the entry is absent."""
        self._check_alive()
        self._check_integer(amount)
        return self._client.increment(self.name, amount)

    def decrement(self, amount: int = 1) -> int | None:
        """Atomically subtract *amount*; the backend floors the result at 0."""
        self._check_alive()
        self._check_integer(amount)
        return self._client.decrement(self.name, amount)

    incr = increment
    decr = decrement


class CellKind(str, Enum):
    """Kinds of cell the declarative front-end can construct."""

    BLOB = "blob"
    COUNTER = "counter"


_CELL_TYPES: dict[CellKind, type[Blob]] = {
    CellKind.BLOB: Blob,
    CellKind.COUNTER: Counter,
}


def create_cell(kind: CellKind | str, client: CacheClient, name: str | None = None, **kwargs: Any) -> Blob:
    """Construct a cell of the given *kind*.

    Args:
        kind: ``CellKind.BLOB`` / ``"blob"`` or ``CellKind.COUNTER`` / ``"counter"``
        client: Backend client
        name: Backend key, or None to bind later
        **kwargs: Passed through to the cell constructor (initial, ttl, sharing)
    """
    return _CELL_TYPES[CellKind(kind)](client, name, **kwargs)


__all__ = [
    "Blob",
    "Counter",
    "CellKind",
    "create_cell",
    "make_identity",
]

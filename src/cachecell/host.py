"""
Declarative cache-backed attributes for host classes.

Declare variables on a :class:`CacheHost` subclass and each instance gets
one Cell per variable, built eagerly when the instance is constructed::

    class Cart(CacheHost):
        items = cached_accessor()                                # SHARED, instance-scoped key
        views = cached_counter(namer=lambda var: f"site-{var}")  # SHARED across instances
        token = cached_reader(SharingMode.PRIVATE)               # PRIVATE, deleted on close()

    with Cart(client) as cart:
        cart.items = ["apple"]
        cart.items.append("pear")      # written back
        if cart.increment("views") is None:   # no entry yet; incr never creates one
            cart.reset("views")
            cart.increment("views")
        if cart.lock("items"):
            ...
            cart.unlock("items")

Construction is two-phase: the class body records a declaration table, and
``CacheHost.__init__`` resolves every declaration into a Cell through its
:class:`~cachecell.naming.NamingPolicy`. PRIVATE cells are reset as they
are created.

Lifecycle is explicit. ``close()`` (or leaving the ``with`` block) unlocks
and destroys every Cell and deletes the backend value and lock entries of
PRIVATE variables. Nothing is released by garbage collection; a process
that exits while holding a lock leaves the lock key behind.

Hosts that need the same instance-scoped keys across processes can pin
``cache_identity`` (set it before calling ``CacheHost.__init__``).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, ClassVar

from cachecell.cell import Blob, CellKind, Counter, create_cell
from cachecell.client import CacheClient
from cachecell.errors import SharedOnly
from cachecell.logging import get_logger, host_context
from cachecell.naming import NamingPolicy, SharingMode

logger = get_logger(__name__)


class CellDeclaration:
    """Descriptor recording one declared cache-backed variable."""

    def __init__(
        self,
        kind: CellKind,
        *,
        writable: bool,
        sharing: SharingMode = SharingMode.SHARED,
        namer: Callable[[str], str] | None = None,
        ttl: int = 0,
    ) -> None:
        if sharing is SharingMode.PRIVATE and namer is not None:
            raise SharedOnly()
        self.kind = kind
        self.writable = writable
        self.sharing = sharing
        self.namer = namer
        self.ttl = ttl
        self.policy: NamingPolicy | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.policy = NamingPolicy(name, self.sharing, self.namer)

    @property
    def variable(self) -> str:
        if self.policy is None:
            raise RuntimeError("declaration is not attached to a class")
        return self.policy.variable

    def materialize(self, host: Any, client: CacheClient) -> Blob:
        """Build the Cell backing this variable on *host*."""
        cell = create_cell(
            self.kind,
            client,
            self.policy.cell_name(host),
            ttl=self.ttl,
            sharing=self.sharing,
        )
        if self.policy.is_private:
            cell.reset()
        return cell

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.cell(self.variable).get()

    def __set__(self, instance: Any, value: Any) -> None:
        if not self.writable:
            raise AttributeError(f"cache-backed variable {self.variable!r} is read-only")
        instance.cell(self.variable).set(value)

    def __repr__(self) -> str:
        variable = self.policy.variable if self.policy else "?"
        return f"<CellDeclaration {variable} kind={self.kind.value} sharing={self.sharing.value}>"


def _sharing_mode(sharing: SharingMode | None) -> SharingMode:
    return SharingMode.SHARED if sharing is None else SharingMode(sharing)


def cached_reader(
    sharing: SharingMode | None = None,
    *,
    namer: Callable[[str], str] | None = None,
    ttl: int = 0,
) -> CellDeclaration:
    """Declare a read-only cache-backed variable (Blob)."""
    return CellDeclaration(CellKind.BLOB, writable=False, sharing=_sharing_mode(sharing), namer=namer, ttl=ttl)


def cached_accessor(
    sharing: SharingMode | None = None,
    *,
    namer: Callable[[str], str] | None = None,
    ttl: int = 0,
) -> CellDeclaration:
    """Declare a readable and assignable cache-backed variable (Blob)."""
    return CellDeclaration(CellKind.BLOB, writable=True, sharing=_sharing_mode(sharing), namer=namer, ttl=ttl)


def cached_counter(
    sharing: SharingMode | None = None,
    *,
    namer: Callable[[str], str] | None = None,
    ttl: int = 0,
) -> CellDeclaration:
    """Declare an integer cache-backed variable (Counter)."""
    return CellDeclaration(CellKind.COUNTER, writable=True, sharing=_sharing_mode(sharing), namer=namer, ttl=ttl)


class CacheHost:
    """Base class for objects whose declared variables live in the cache.

    Args:
        client: Backend client every Cell of this host uses
    """

    _cell_declarations: ClassVar[Mapping[str, CellDeclaration]] = MappingProxyType({})

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        declarations: dict[str, CellDeclaration] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, CellDeclaration):
                    declarations[name] = attr
        cls._cell_declarations = MappingProxyType(declarations)

    def __init__(self, client: CacheClient) -> None:
        self._cache_client = client
        self._closed = False
        self._cells: dict[str, Blob] = {}
        with host_context(self):
            for variable, declaration in self._cell_declarations.items():
                self._cells[variable] = declaration.materialize(self, client)

    @property
    def cells(self) -> Mapping[str, Blob]:
        return MappingProxyType(self._cells)

    @property
    def closed(self) -> bool:
        return self._closed

    def cell(self, variable: str) -> Blob:
        """Return the Cell backing *variable*."""
        try:
            return self._cells[variable]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} declares no cache-backed variable {variable!r}"
            ) from None

    def _counter(self, variable: str) -> Counter:
        cell = self.cell(variable)
        if not isinstance(cell, Counter):
            raise TypeError(f"{variable!r} is not a counter variable")
        return cell

    # ── Per-variable operations ──────────────────────────────────

    def lock(self, variable: str) -> bool:
        with host_context(self):
            return self.cell(variable).lock()

    def unlock(self, variable: str) -> bool:
        with host_context(self):
            return self.cell(variable).unlock()

    def expiry(self, variable: str) -> int:
        return self.cell(variable).expiry

    def set_expiry(self, variable: str, ttl: int = 0) -> int:
        self.cell(variable).expiry = ttl
        return ttl

    def reset(self, variable: str) -> Any:
        return self.cell(variable).reset()

    def destroy(self, variable: str) -> None:
        with host_context(self):
            self.cell(variable).destroy()

    def increment(self, variable: str, amount: int = 1) -> int | None:
        """Atomically add *amount*. None if the entry is absent; reset() creates it."""
        return self._counter(variable).increment(amount)

    def decrement(self, variable: str, amount: int = 1) -> int | None:
        return self._counter(variable).decrement(amount)

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Unlock and destroy every Cell; delete backend entries of PRIVATE ones.

        Every Cell is visited even when one of them fails to release (e.g.
        LockInconsistency after ``cachecell break-lock``). PRIVATE entries
        of a failing Cell are still deleted, the host is marked closed, and
        the first error is re-raised once the loop is done.
        """
        if self._closed:
            return
        errors: list[Exception] = []
        with host_context(self):
            for cell in self._cells.values():
                try:
                    if not cell.destroyed:
                        cell.destroy()
                except Exception as exc:
                    errors.append(exc)
                    logger.warning("host_close_failed", cell=cell.name, error=str(exc))
                finally:
                    if cell.is_private:
                        self._cache_client.delete(cell.name)
                        self._cache_client.delete(cell.lock_name)
            self._closed = True
            logger.debug("host_closed", cells=len(self._cells), failed=len(errors))
        if errors:
            raise errors[0]

    def __enter__(self) -> CacheHost:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = [
    "CacheHost",
    "CellDeclaration",
    "cached_reader",
    "cached_accessor",
    "cached_counter",
]

"""
Write-back wrappers for values fetched from a Cell.

``Cell.get()`` hands its result through :func:`enwrap`. Mutable values come
back wrapped, and each wrapper persists in-place edits to the owning Cell
without an explicit ``set()``::

    items = cart.get()          # CachedList
    items.append("apple")       # snapshot, append, compare, cart.set(items)
    cart.get()                  # [..., 'apple']

Every wrapper exposes a fixed, enumerated set of mutating operations. There
is no generic interception of arbitrary methods: a value whose type is not
one of the builtin containers is wrapped in a :class:`CachedObject` handle
whose ``setattr``/``delattr``/``apply``/``replace`` are the only mutators.

Each mutator:
    1. snapshots the current value
    2. runs the builtin operation and keeps its result
    3. compares the value to the snapshot
    4. if it changed, checks the value is still an instance of the type it
       was fetched as (``IncompatibleType`` otherwise, cache untouched) and
       calls ``owner.set(value)``
    5. returns the builtin operation's result

Wrappers pickle and deep-copy as their plain builtin type, and
:func:`unwrap` strips them, so nothing stored in the backend ever carries a
reference to a Cell.

The snapshot/mutate/compare/write sequence is not atomic. Two processes
mutating their own fetched copies of the same entry race, and the last
write wins; the other update is lost. Use the Cell's interlock to serialize
read-modify-write cycles.

Non-thread-safe: one mutation at a time per fetched value.
"""

from __future__ import annotations

import copy
import datetime
import functools
from collections.abc import Callable
from enum import Enum
from numbers import Number
from typing import TYPE_CHECKING, Any

from cachecell.errors import IncompatibleType

if TYPE_CHECKING:
    from cachecell.cell import Blob

_IMMUTABLE_TYPES: tuple[type, ...] = (
    type(None),
    Number,
    str,
    bytes,
    tuple,
    frozenset,
    range,
    Enum,
    datetime.date,
    datetime.time,
    datetime.timedelta,
)


class WriteBack:
    """Base of every write-back wrapper.

    Attributes:
        _owner: Cell that produced the value
        _datatype: Type of the value when it was fetched
        _mutators: Names of the intercepted operations
    """

    __slots__ = ()

    _mutators: tuple[str, ...] = ()

    def _plain(self) -> Any:
        raise NotImplementedError

    def _snapshot(self) -> Any:
        return copy.copy(self._plain())

    def _write_back(self, snapshot: Any) -> None:
        current = self._plain()
        if current == snapshot:
            return
        if not isinstance(current, self._datatype):
            raise IncompatibleType(
                type(current).__name__,
                self._datatype.__name__,
                self._owner.name,
            ).with_context(cell=self._owner.name)
        self._owner.set(current)

    @property
    def owner(self) -> Blob:
        return self._owner


def _intercept(builtin: type, name: str) -> Callable[..., Any]:
    original = getattr(builtin, name)

    @functools.wraps(original)
    def mutator(self: WriteBack, *args: Any, **kwargs: Any) -> Any:
        snapshot = self._snapshot()
        result = original(self, *args, **kwargs)
        self._write_back(snapshot)
        return result

    return mutator


class CachedList(WriteBack, list):
    """A ``list`` fetched from a Cell."""

    __slots__ = ("_owner", "_datatype")

    _mutators = (
        "append", "extend", "insert", "remove", "pop", "clear", "sort",
        "reverse", "__setitem__", "__delitem__", "__iadd__", "__imul__",
    )

    append = _intercept(list, "append")
    extend = _intercept(list, "extend")
    insert = _intercept(list, "insert")
    remove = _intercept(list, "remove")
    pop = _intercept(list, "pop")
    clear = _intercept(list, "clear")
    sort = _intercept(list, "sort")
    reverse = _intercept(list, "reverse")
    __setitem__ = _intercept(list, "__setitem__")
    __delitem__ = _intercept(list, "__delitem__")
    __iadd__ = _intercept(list, "__iadd__")
    __imul__ = _intercept(list, "__imul__")

    def _plain(self) -> list:
        return list(self)

    def __reduce_ex__(self, protocol: Any) -> Any:
        return (list, (list(self),))


class CachedDict(WriteBack, dict):
    """A ``dict`` fetched from a Cell."""

    __slots__ = ("_owner", "_datatype")

    _mutators = (
        "__setitem__", "__delitem__", "pop", "popitem", "clear", "update",
        "setdefault", "__ior__",
    )

    __setitem__ = _intercept(dict, "__setitem__")
    __delitem__ = _intercept(dict, "__delitem__")
    pop = _intercept(dict, "pop")
    popitem = _intercept(dict, "popitem")
    clear = _intercept(dict, "clear")
    update = _intercept(dict, "update")
    setdefault = _intercept(dict, "setdefault")
    __ior__ = _intercept(dict, "__ior__")

    def _plain(self) -> dict:
        return dict(self)

    def __reduce_ex__(self, protocol: Any) -> Any:
        return (dict, (dict(self),))


class CachedSet(WriteBack, set):
    """A ``set`` fetched from a Cell."""

    __slots__ = ("_owner", "_datatype")

    _mutators = (
        "add", "discard", "remove", "pop", "clear", "update",
        "intersection_update", "difference_update",
        "symmetric_difference_update", "__ior__", "__iand__", "__isub__",
        "__ixor__",
    )

    add = _intercept(set, "add")
    discard = _intercept(set, "discard")
    remove = _intercept(set, "remove")
    pop = _intercept(set, "pop")
    clear = _intercept(set, "clear")
    update = _intercept(set, "update")
    intersection_update = _intercept(set, "intersection_update")
    difference_update = _intercept(set, "difference_update")
    symmetric_difference_update = _intercept(set, "symmetric_difference_update")
    __ior__ = _intercept(set, "__ior__")
    __iand__ = _intercept(set, "__iand__")
    __isub__ = _intercept(set, "__isub__")
    __ixor__ = _intercept(set, "__ixor__")

    def _plain(self) -> set:
        return set(self)

    def __reduce_ex__(self, protocol: Any) -> Any:
        return (set, (list(self),))


class CachedObject(WriteBack):
    """Handle around any other mutable value fetched from a Cell.

    Reads pass through to the wrapped value; writes must go through the
    handle::

        profile = cell.get()                 # CachedObject
        profile.name                         # read-through
        profile.setattr("name", "Ada")       # persisted
        profile.apply(lambda p: p.tags.append("x"))
        profile.replace(Profile("Bob"))      # whole-value swap, type-checked
    """

    __slots__ = ("_value", "_owner", "_datatype")

    _mutators = ("setattr", "delattr", "apply", "replace")

    @property
    def value(self) -> Any:
        return self._value

    def _plain(self) -> Any:
        return self._value

    def _snapshot(self) -> Any:
        return copy.deepcopy(self._value)

    def setattr(self, name: str, value: Any) -> None:
        snapshot = self._snapshot()
        setattr(self._value, name, unwrap(value))
        self._write_back(snapshot)

    def delattr(self, name: str) -> None:
        snapshot = self._snapshot()
        delattr(self._value, name)
        self._write_back(snapshot)

    def apply(self, func: Callable[[Any], Any]) -> Any:
        """Run *func* against the value in place and persist any change."""
        snapshot = self._snapshot()
        result = func(self._value)
        self._write_back(snapshot)
        return result

    def replace(self, new_value: Any) -> None:
        """Swap the whole value. It must stay an instance of the fetched type."""
        snapshot = self._value
        self._value = unwrap(new_value)
        self._write_back(snapshot)

    def __getattr__(self, name: str) -> Any:
        if name in CachedObject.__slots__:
            raise AttributeError(name)
        return getattr(self._value, name)

    def __eq__(self, other: object) -> bool:
        return self._value == unwrap(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"CachedObject({self._value!r})"

    def __str__(self) -> str:
        return str(self._value)

    def __reduce_ex__(self, protocol: Any) -> Any:
        return self._value.__reduce_ex__(protocol)


_CONTAINERS: dict[type, type[WriteBack]] = {
    list: CachedList,
    dict: CachedDict,
    set: CachedSet,
}


def is_wrapped(value: Any) -> bool:
    """True if *value* carries write-back instrumentation."""
    return isinstance(value, WriteBack)


def unwrap(value: Any) -> Any:
    """Return *value* in its plain form. No-op for plain values."""
    if isinstance(value, WriteBack):
        return value._plain()
    return value


def enwrap(value: Any, owner: Blob) -> Any:
    """Attach write-back instrumentation binding *value* to *owner*.

    Immutable values, and values that cannot be duplicated, come back
    unchanged.
    """
    value = unwrap(value)
    if isinstance(value, _IMMUTABLE_TYPES):
        return value

    wrapper_type = _CONTAINERS.get(type(value))
    if wrapper_type is not None:
        wrapped = wrapper_type(value)
    else:
        try:
            duplicate = copy.deepcopy(value)
        except (TypeError, copy.Error):
            return value
        wrapped = CachedObject.__new__(CachedObject)
        wrapped._value = duplicate

    wrapped._owner = owner
    wrapped._datatype = type(value)
    return wrapped


__all__ = [
    "WriteBack",
    "CachedList",
    "CachedDict",
    "CachedSet",
    "CachedObject",
    "enwrap",
    "unwrap",
    "is_wrapped",
]

"""
Deterministic naming of backend keys.

Concurrent processes agree on which cache entry backs which logical
variable only if they derive the same key. A ``NamingPolicy`` is resolved
once per (host instance, variable) pair and the resulting name is fixed for
the life of the Cell.

Rules:
    PRIVATE            ``<OwnerType>:<owner-identity>:@<variable>``
                       (a custom namer is rejected with SharedOnly)
    SHARED + namer     ``namer(variable)``
    SHARED, no namer   same instance-scoped form as PRIVATE

So "shared" without a namer still yields an instance-private key; sharing
across instances requires a namer that returns the same key for each of
them.

Examples:
    >>> policy = NamingPolicy("hits", namer=lambda var: f"site-{var}")
    >>> policy.cell_name(object())
    'site-hits'
    >>> NamingPolicy("token", SharingMode.PRIVATE, namer=str)
    Traceback (most recent call last):
    ...
    cachecell.errors.SharedOnly: custom names are only permitted for shared variables; 'token' is labelled as private
"""

from __future__ import annotations

import os
import socket
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cachecell.errors import SharedOnly

LOCK_SUFFIX = "-lock"


class SharingMode(str, Enum):
    """Whether a variable's backend key may be addressed by other instances."""

    SHARED = "SHARED"
    PRIVATE = "PRIVATE"


def owner_identity(owner: Any) -> str:
    """Identity string of a host instance.

    Hosts may expose ``cache_identity`` to pin the identity (e.g. to a
    database primary key). Otherwise it is ``<hostname>.<pid>.<id(owner)>``:
    ``id()`` alone repeats across forked workers, so the machine and process
    are part of it.
    """
    identity = getattr(owner, "cache_identity", None)
    if identity is not None:
        return str(identity)
    return "%s.%d.%d" % (socket.gethostname().strip(), os.getpid(), id(owner))


def lock_name(name: str) -> str:
    """Backend key of the interlock entry for cell *name*."""
    return name + LOCK_SUFFIX


@dataclass(frozen=True)
class NamingPolicy:
    """Naming rule for one declared variable.

    Attributes:
        variable: Declared variable identifier
        sharing: SHARED (default) or PRIVATE
        namer: Optional callable mapping the variable identifier to a key,
            permitted only for SHARED variables
    """

    variable: str
    sharing: SharingMode = SharingMode.SHARED
    namer: Callable[[str], str] | None = None

    def __post_init__(self) -> None:
        if not self.variable:
            raise ValueError("variable identifier must not be empty")
        if self.sharing is SharingMode.PRIVATE and self.namer is not None:
            raise SharedOnly(self.variable).with_context(variable=self.variable)

    @property
    def is_shared(self) -> bool:
        return self.sharing is SharingMode.SHARED

    @property
    def is_private(self) -> bool:
        return self.sharing is SharingMode.PRIVATE

    def instance_name(self, owner: Any) -> str:
        return f"{type(owner).__name__}:{owner_identity(owner)}:@{self.variable}"

    def cell_name(self, owner: Any) -> str:
        """Resolve the backend key for this variable on *owner*."""
        if self.namer is not None:
            name = str(self.namer(self.variable))
            if not name:
                raise ValueError(f"namer returned an empty name for {self.variable!r}")
            return name
        return self.instance_name(owner)


__all__ = [
    "LOCK_SUFFIX",
    "SharingMode",
    "NamingPolicy",
    "owner_identity",
    "lock_name",
]

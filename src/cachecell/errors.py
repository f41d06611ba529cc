"""
Structured error types for cachecell.

Every failure a Cell can signal is a distinct, explicit type. None of them
are retried internally and none are resolved silently: each is raised
synchronously from the call that detects it.

Manifesto:
    - **Typed taxonomy:** One class per failure kind, not generic errors
    - **Never retryable:** Cell failures are precondition violations
    - **Rich context:** Errors carry the cell name, lock key and identity
    - **Backend errors pass through:** Connectivity failures from the
      client library propagate unmodified

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                         CellError                             │
        │        (category, retryable=False, context, cause)            │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  Destroyed          LockInconsistency     CounterIntegerOnly  │
        │  (LIFECYCLE)        (LOCK)                (VALIDATION)        │
        │                                                               │
        │  SharedOnly         IncompatibleType      IncompleteError     │
        │  (CONFIG)           (VALIDATION)          (INTERNAL)          │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = Destroyed("Session:42:@cart")
    >>> str(err)
    'attempt to access destroyed variable "Session:42:@cart"'
    >>> err.category
    <ErrorCategory.LIFECYCLE: 'LIFECYCLE'>

    >>> LockInconsistency("k-lock", "me", "None").to_dict()["category"]
    'LOCK'

Guardrails:
    ❌ DON'T: Catch LockInconsistency and clear the local lock flag
    ✅ DO: Surface it; the backend lock key was touched by someone else

    ❌ DON'T: Wrap redis/pymemcache connection errors in CellError
    ✅ DO: Let them propagate so callers see the real transport failure

Tags:
    error-handling, exception-hierarchy, cachecell, locking
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories for classification and log routing."""

    LIFECYCLE = "LIFECYCLE"      # Use after destroy
    LOCK = "LOCK"                # Interlock state disagreement
    VALIDATION = "VALIDATION"    # Bad values handed to a cell
    CONFIG = "CONFIG"            # Bad declarations or settings
    BACKEND = "BACKEND"          # Cache server reported a failure
    INTERNAL = "INTERNAL"        # Bugs, improperly-coded errors
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to a :class:`CellError`.

    Attributes:
        cell: Backend key of the cell involved
        lock_key: Backend key of the companion lock entry
        identity: Lock-owner token of the cell instance
        variable: Declared variable identifier on a host type
        metadata: Additional key-value pairs
    """

    cell: str | None = None
    lock_key: str | None = None
    identity: str | None = None
    variable: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["cell", "lock_key", "identity", "variable"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CellError(Exception):
    """
    Base exception for all cachecell errors.

    Subclasses declare ``message_formats``: a pair of ``%``-format strings.
    The first is used when the error is raised without detail arguments, the
    second is filled in with the positional detail arguments otherwise::

        class Destroyed(CellError):
            message_formats = (
                "attempt to access destroyed variable",
                'attempt to access destroyed variable "%s"',
            )

        Destroyed()              # attempt to access destroyed variable
        Destroyed("cart")        # attempt to access destroyed variable "cart"

    A subclass that forgets ``message_formats`` cannot be raised; trying to
    construct it raises :class:`IncompleteError` instead.

    Attributes:
        message: Rendered, human-readable message
        args_detail: The positional detail arguments as supplied
        category: ErrorCategory for routing
        retryable: Always ``False`` for the cachecell taxonomy
        context: ErrorContext with structured metadata
        cause: Optional underlying exception
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    message_formats: tuple[str, str] | None = None

    def __init__(
        self,
        *details: Any,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        if self.message_formats is None:
            raise IncompleteError(type(self).__name__)
        fmt = self.message_formats[1 if details else 0]
        message = fmt % details if details else fmt
        super().__init__(message)
        self.message = message
        self.args_detail = details
        self.category = category or self.default_category
        self.retryable = self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CellError:
        """
        Add context to this error (fluent API).

        Usage:
            raise Destroyed(name).with_context(cell=name, identity=ident)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class IncompleteError(Exception):
    """A CellError subclass was raised without declaring message formats."""

    def __init__(self, error_class: str | None = None):
        if error_class:
            message = f'improperly-coded exception "{error_class}" raised'
        else:
            message = "improperly-coded exception raised"
        super().__init__(message)
        self.message = message
        self.error_class = error_class
        self.category = ErrorCategory.INTERNAL
        self.retryable = False


# =============================================================================
# CELL ERRORS
# =============================================================================


class Destroyed(CellError):
    """Operation attempted on a cell after ``destroy()``.

    Always detected locally, before any backend call.
    """

    default_category = ErrorCategory.LIFECYCLE
    message_formats = (
        "attempt to access destroyed variable",
        'attempt to access destroyed variable "%s"',
    )


class LockInconsistency(CellError):
    """Local lock belief disagrees with the lock key found in the backend.

    Raised by ``unlock()`` when this instance believes it holds the lock
    but the lock key is missing or holds another identity, and when the
    backend does not confirm deletion of the lock key.
    """

    default_category = ErrorCategory.LOCK
    message_formats = (
        "interlock cell inconsistency",
        "interlock cell inconsistency\n\tcell='%s', expected='%s', actual='%s'",
    )


class CounterIntegerOnly(CellError, TypeError):
    """Non-integer value handed to a Counter. No backend call is made."""

    default_category = ErrorCategory.VALIDATION
    message_formats = (
        "counter variables can only be set to integers",
        "counter variable %s can only be set to integers",
    )


class SharedOnly(CellError, ValueError):
    """A custom naming function was supplied for a PRIVATE variable."""

    default_category = ErrorCategory.CONFIG
    message_formats = (
        "custom names are only permitted for shared variables",
        "custom names are only permitted for shared variables; '%s' is labelled as private",
    )


class IncompatibleType(CellError, TypeError):
    """A fetched value was mutated into a type its cell cannot hold.

    The in-memory value is left as mutated; the cache is not updated.
    """

    default_category = ErrorCategory.VALIDATION
    message_formats = (
        "value mutated into an incompatible type",
        "value mutated into incompatible type %s (was %s) for variable '%s'",
    )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable.

    Cell errors never are. Transport-level failures (connection resets,
    socket errors) raised by the backend client usually are.
    """
    if isinstance(error, (CellError, IncompleteError)):
        return False
    retryable_types = (
        ConnectionError,
        TimeoutError,
        OSError,
    )
    return isinstance(error, retryable_types)


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, (CellError, IncompleteError)):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError, OSError)):
        return ErrorCategory.BACKEND
    if isinstance(error, (TypeError, ValueError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CellError",
    "IncompleteError",
    "Destroyed",
    "LockInconsistency",
    "CounterIntegerOnly",
    "SharedOnly",
    "IncompatibleType",
    "is_retryable",
    "categorize_error",
]

"""cachecell -- cache-backed variables with advisory interlocks.

Manifesto:
    Application objects want to keep state in a shared memcached or redis
    cache as if it were a local field, and concurrent processes need to
    agree on which entry backs which variable and take turns changing it.
    The backend only offers single-key atomics, so everything here is built
    from add/set/get/delete/increment/decrement.

Architecture::

    errors.py       CellError taxonomy (Destroyed, LockInconsistency, ...)
    client.py       CacheClient protocol + InMemory/Memcached/Redis adapters
    naming.py       SharingMode + NamingPolicy (deterministic backend keys)
    writeback.py    enwrap/unwrap: persist in-place edits of fetched values
    cell.py         Blob, Counter, interlock, create_cell()
    host.py         CacheHost + cached_reader/accessor/counter declarations
    config/         pydantic settings + create_cache_client()
    logging.py      structlog configuration
    cli/            typer CLI (get/set/reset/incr/decr/lock-holder/break-lock)

Quick start::

    from cachecell import Blob, Counter
    from cachecell.config import create_cache_client, get_settings

    client = create_cache_client(get_settings())
    queue = Blob(client, "jobs:queue")
    with queue.held() as acquired:
        if acquired:
            jobs = queue.get() or []
            queue.set(jobs + ["job-17"])
"""

__version__ = "0.1.0"

from cachecell.cell import Blob, CellKind, Counter, create_cell
from cachecell.client import (
    CacheClient,
    DeleteStatus,
    InMemoryClient,
    MemcachedClient,
    RedisClient,
    StoreStatus,
)
from cachecell.errors import (
    CellError,
    CounterIntegerOnly,
    Destroyed,
    IncompatibleType,
    IncompleteError,
    LockInconsistency,
    SharedOnly,
)
from cachecell.host import CacheHost, cached_accessor, cached_counter, cached_reader
from cachecell.naming import NamingPolicy, SharingMode
from cachecell.writeback import enwrap, is_wrapped, unwrap

SHARED = SharingMode.SHARED
PRIVATE = SharingMode.PRIVATE

__all__ = [
    "__version__",
    # Cells
    "Blob",
    "Counter",
    "CellKind",
    "create_cell",
    # Clients
    "CacheClient",
    "InMemoryClient",
    "MemcachedClient",
    "RedisClient",
    "StoreStatus",
    "DeleteStatus",
    # Naming
    "SharingMode",
    "NamingPolicy",
    "SHARED",
    "PRIVATE",
    # Host
    "CacheHost",
    "cached_reader",
    "cached_accessor",
    "cached_counter",
    # Write-back
    "enwrap",
    "unwrap",
    "is_wrapped",
    # Errors
    "CellError",
    "IncompleteError",
    "Destroyed",
    "LockInconsistency",
    "CounterIntegerOnly",
    "SharedOnly",
    "IncompatibleType",
]

"""Memoizing cache with pluggable storage.

Key features:
- Canonical, type-tagged argument fingerprints (order and type sensitive)
- Pluggable byte stores: memory, filesystem, remote object store, null
- LRU/FIFO eviction by entry count and/or total bytes, optional ttl
- Failures are never cached; store outages surface as StoreUnavailable

Example:
    >>> from memento.core.caching import FSStore, MemoCache, memoize
    >>>
    >>> cache = MemoCache(FSStore("data/cache"), capacity=1000, ttl_seconds=3600)
    >>>
    >>> @memoize(cache=cache)
    ... def summarize(dataset: str, year: int) -> dict:
    ...     ...
"""

from memento.core.caching.backends import FSStore, MemoryStore, NullStore, RemoteStore
from memento.core.caching.cache import MISSING, MemoCache
from memento.core.caching.eviction import select_victims
from memento.core.caching.fingerprint import (
    bind_arguments,
    canonicalize,
    compute_fingerprint,
    derive_key,
)
from memento.core.caching.models import (
    CacheEntry,
    CacheOptions,
    CacheStats,
    Capacity,
    EvictionPolicy,
)
from memento.core.caching.protocols import Store
from memento.core.caching.serializers import (
    JSONSerializer,
    PickleSerializer,
    PydanticSerializer,
    Serializer,
)
from memento.core.caching.wrapper import (
    AsyncMemoizedFunction,
    MemoizedFunction,
    memoize,
    wrap,
)

__all__ = [
    # Core
    "MemoCache",
    "MISSING",
    "Store",
    "CacheEntry",
    "CacheOptions",
    "CacheStats",
    "Capacity",
    "EvictionPolicy",
    # Wrappers
    "memoize",
    "wrap",
    "MemoizedFunction",
    "AsyncMemoizedFunction",
    # Backends
    "FSStore",
    "MemoryStore",
    "NullStore",
    "RemoteStore",
    # Serializers
    "Serializer",
    "PickleSerializer",
    "JSONSerializer",
    "PydanticSerializer",
    # Utils
    "bind_arguments",
    "canonicalize",
    "compute_fingerprint",
    "derive_key",
    "select_victims",
]

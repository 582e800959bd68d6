"""MemoCache: a store bound to a serializer, a capacity and a ttl.

MemoCache owns the policy side of caching (expiry, capacity eviction,
serialization, statistics); stores only move bytes.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import threading
import time
from typing import Any

from memento.core.errors import SerializationError

from .backends.memory import MemoryStore
from .eviction import select_victims
from .models import Capacity, CacheEntry, CacheStats, EvictionPolicy
from .protocols import Store
from .serializers import PickleSerializer, Serializer

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel type for cache misses (None is a valid cached value)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class MemoCache:
    """
    Explicit cache instance shared by memoized functions.

    Reads never take the cache-wide lock; only writes that may trigger eviction
    are serialized, so eviction never blocks a read of a different key.

    Example:
        >>> cache = MemoCache(FSStore("data/cache"), capacity=Capacity(max_entries=500))
        >>> cache.set(b"k", {"answer": 42})
        >>> cache.get(b"k")
        {'answer': 42}
    """

    def __init__(
        self,
        store: Store | None = None,
        *,
        serializer: Serializer | None = None,
        capacity: Capacity | int | None = None,
        ttl_seconds: float | None = None,
        eviction: EvictionPolicy = EvictionPolicy.LRU,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize cache.

        Args:
            store: Storage backend (default: in-memory)
            serializer: Value serializer (default: pickle)
            capacity: Capacity bounds, or an int meaning max entries (default: unbounded)
            ttl_seconds: Max entry age before it is treated as a miss
            eviction: Eviction policy under capacity pressure
            clock: Time source used for expiry checks
        """
        if isinstance(capacity, int):
            capacity = Capacity(max_entries=capacity)
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.store: Store = store if store is not None else MemoryStore(clock=clock)
        self.serializer: Serializer = serializer or PickleSerializer()
        self.capacity = capacity or Capacity()
        self.ttl_seconds = ttl_seconds
        self.eviction = eviction
        self._clock = clock
        self._write_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = CacheStats()

    def __repr__(self) -> str:
        return (
            f"MemoCache(store={self.store.name}, capacity={self.capacity!r}, "
            f"ttl_seconds={self.ttl_seconds}, eviction={self.eviction.value})"
        )

    @property
    def stats(self) -> CacheStats:
        """Snapshot of cache-wide counters."""
        with self._stats_lock:
            return self._stats.model_copy()

    def _count(self, field: str, n: int = 1) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + n)

    def _expired(self, entry: CacheEntry, ttl_seconds: float | None) -> bool:
        return entry.is_expired(self._clock(), ttl_seconds or self.ttl_seconds)

    def get(self, key: bytes, ttl_seconds: float | None = None, count_miss: bool = True) -> Any:
        """
        Load and deserialize a cached value.

        Expired entries are evicted and reported as a miss; corrupt entries are
        evicted and reported as a miss.

        Args:
            key: Entry key
            ttl_seconds: Optional ttl override for this lookup
            count_miss: Record a miss in stats (False for a repeated lookup of the same call)

        Returns:
            Cached value, or MISSING

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        value = self._load(key, ttl_seconds or self.ttl_seconds)
        if value is not MISSING:
            self._count("hits")
        elif count_miss:
            self._count("misses")
        return value

    def _load(self, key: bytes, ttl: float | None) -> Any:
        if ttl is not None:
            entry = self.store.stat(key)
            if entry is None:
                return MISSING
            if self._expired(entry, ttl):
                logger.debug(f"Cache entry expired: {key!r}")
                self.store.evict(key)
                return MISSING

        data = self.store.get(key)
        if data is None:
            return MISSING

        try:
            return self.serializer.loads(data)
        except SerializationError as e:
            logger.warning(f"Evicting unreadable cache entry {key!r}: {e}")
            self.store.evict(key)
            return MISSING

    def set(self, key: bytes, value: Any) -> CacheEntry | None:
        """
        Serialize and store a value, then enforce capacity.

        Args:
            key: Entry key
            value: Value to cache

        Returns:
            Metadata of the stored entry, or None if the value alone exceeds max_bytes
            (any previous entry under the key is removed)

        Raises:
            SerializationError: If the value is not representable (cache unmodified)
            StoreUnavailable: If the backend cannot be reached
        """
        data = self.serializer.dumps(value)

        if self.capacity.max_bytes is not None and len(data) > self.capacity.max_bytes:
            logger.debug(
                f"Not caching {key!r}: {len(data)} bytes exceeds "
                f"max_bytes={self.capacity.max_bytes}"
            )
            # Any older value under this key is stale now
            self.store.evict(key)
            return None

        with self._write_lock:
            self.store.put(key, data)
            self._count("stores")
            if self.capacity.bounded:
                self._enforce_capacity()

        now = self._clock()
        return CacheEntry(key=key, created_at=now, last_accessed_at=now, size=len(data))

    def contains(self, key: bytes, ttl_seconds: float | None = None) -> bool:
        """Check for a live entry without loading it or refreshing its access time."""
        entry = self.store.stat(key)
        return entry is not None and not self._expired(entry, ttl_seconds)

    def invalidate(self, key: bytes) -> None:
        """Remove one entry."""
        self.store.evict(key)

    def keys(self, prefix: bytes = b"") -> list[bytes]:
        """List stored keys, optionally restricted to a prefix."""
        return [k for k in self.store.list_keys() if k.startswith(prefix)]

    def entries(self, prefix: bytes = b"") -> list[CacheEntry]:
        """List entry metadata (values are not loaded)."""
        entries = []
        for key in self.keys(prefix):
            entry = self.store.stat(key)
            if entry is not None:
                entries.append(entry)
        return entries

    def clear(self, prefix: bytes = b"") -> int:
        """
        Remove all entries (or all entries under a prefix).

        Returns:
            Number of entries removed
        """
        with self._write_lock:
            keys = self.keys(prefix)
            for key in keys:
                self.store.evict(key)
        logger.debug(f"Cleared {len(keys)} cache entries")
        return len(keys)

    def prune(self, ttl_seconds: float | None = None) -> int:
        """
        Remove expired entries, then enforce capacity.

        Returns:
            Number of entries removed
        """
        removed = 0
        with self._write_lock:
            if ttl_seconds or self.ttl_seconds:
                for entry in self.entries():
                    if self._expired(entry, ttl_seconds):
                        self.store.evict(entry.key)
                        removed += 1
            if self.capacity.bounded:
                removed += self._enforce_capacity()
        return removed

    def _enforce_capacity(self) -> int:
        """Evict entries until within capacity. Caller holds the write lock."""
        victims = select_victims(self.entries(), self.capacity, self.eviction)
        for victim in victims:
            logger.debug(f"Evicting cache entry {victim.key!r} ({self.eviction.value})")
            self.store.evict(victim.key)
        if victims:
            self._count("evictions", len(victims))
        return len(victims)

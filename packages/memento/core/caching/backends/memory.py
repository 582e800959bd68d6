"""In-process cache store.

Entries live in an insertion/access ordered dict guarded by a lock.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
import threading
import time

from memento.core.caching.models import CacheEntry


class MemoryStore:
    """
    Thread-safe in-memory store.

    `list_keys()` returns keys least recently accessed first, so ties in the
    clock still resolve in access order.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """
        Initialize memory store.

        Args:
            clock: Time source for entry timestamps (injectable for tests)
        """
        self._clock = clock
        self._entries: OrderedDict[bytes, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: bytes) -> bytes | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries[key] = entry.model_copy(update={"last_accessed_at": self._clock()})
            self._entries.move_to_end(key)
            return entry.value

    def put(self, key: bytes, value: bytes) -> None:
        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=bytes(value),
            created_at=now,
            last_accessed_at=now,
            size=len(value),
        )
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)

    def evict(self, key: bytes) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def list_keys(self) -> list[bytes]:
        with self._lock:
            return list(self._entries)

    def stat(self, key: bytes) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        return entry.model_copy(update={"value": None})

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

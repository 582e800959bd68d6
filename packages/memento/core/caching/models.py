"""Models for the memoizing cache.

Provides entry metadata, capacity bounds, per-function options and counters.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EvictionPolicy(str, Enum):
    """Order in which entries are removed under capacity pressure."""

    LRU = "lru"
    FIFO = "fifo"


class CacheEntry(BaseModel):
    """
    One stored result.

    `value` is the serialized result; backends leave it as None when only
    metadata is requested (`Store.stat`, `MemoCache.entries`).
    """

    key: bytes = Field(description="Canonical key derived from the call arguments")
    value: bytes | None = Field(default=None, description="Serialized result")
    created_at: float = Field(description="Unix timestamp (seconds) of the write")
    last_accessed_at: float = Field(description="Unix timestamp (seconds) of the last hit")
    size: int = Field(ge=0, description="Byte size of the serialized value")

    model_config = ConfigDict(frozen=True)

    def age(self, now: float) -> float:
        """Seconds since the entry was written."""
        return now - self.created_at

    def is_expired(self, now: float, ttl_seconds: float | None) -> bool:
        """Check whether the entry is older than `ttl_seconds` (never expires without ttl)."""
        if ttl_seconds is None:
            return False
        return self.age(now) > ttl_seconds


class Capacity(BaseModel):
    """
    Capacity bounds for a cache.

    Both bounds may be set; both are enforced. Unset means unbounded.
    """

    max_entries: int | None = Field(default=None, gt=0, description="Maximum number of entries")
    max_bytes: int | None = Field(default=None, gt=0, description="Maximum total value bytes")

    @property
    def bounded(self) -> bool:
        return self.max_entries is not None or self.max_bytes is not None


class CacheOptions(BaseModel):
    """
    Per-function cache behavior configuration.
    """

    enabled: bool = Field(default=True, description="Cache toggle for this function")
    force: bool = Field(
        default=False,
        description="Ignore cached entries and recompute (still stores if enabled)",
    )
    ttl_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Max entry age; overrides the cache-wide ttl for this function",
    )
    fallback_on_unavailable: bool = Field(
        default=False,
        description="Compute directly when the store is unreachable instead of raising",
    )


class CacheStats(BaseModel):
    """Hit/miss counters for a cache or a memoized function."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    evictions: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

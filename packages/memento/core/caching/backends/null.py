"""No-op cache store for development/testing.

Always reports a miss, discards all writes.
"""

from memento.core.caching.models import CacheEntry


class NullStore:
    """No-op store. Memoized functions backed by it always recompute."""

    name = "null"

    def get(self, key: bytes) -> bytes | None:
        """Always returns None."""
        return None

    def put(self, key: bytes, value: bytes) -> None:
        """Discard."""
        pass

    def evict(self, key: bytes) -> None:
        """No-op."""
        pass

    def list_keys(self) -> list[bytes]:
        """Always empty."""
        return []

    def stat(self, key: bytes) -> CacheEntry | None:
        """Always returns None."""
        return None

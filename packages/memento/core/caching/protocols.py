"""Protocol for cache storage backends.

Stores are byte-level: keys and values are opaque bytes. Serialization,
expiry and capacity policy live in MemoCache.
"""

from typing import Protocol

from .models import CacheEntry


class Store(Protocol):
    """
    Protocol for storage backends.

    All implementations must support:
    - Round-trip fidelity (get after put returns the same bytes)
    - Concurrent get/put from multiple threads without corruption
    - Surfacing unreachable backends as StoreUnavailable
    """

    name: str

    def get(self, key: bytes) -> bytes | None:
        """
        Read a value and refresh its last access time.

        Args:
            key: Entry key

        Returns:
            Stored bytes, or None when absent

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """
        Write a value, replacing any previous one (created_at is reset).

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        ...

    def evict(self, key: bytes) -> None:
        """Remove an entry. Removing an absent key is not an error."""
        ...

    def list_keys(self) -> list[bytes]:
        """List all stored keys."""
        ...

    def stat(self, key: bytes) -> CacheEntry | None:
        """
        Read entry metadata without the value and without refreshing access time.

        Returns:
            CacheEntry with value=None, or None when absent
        """
        ...

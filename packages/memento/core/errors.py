"""Error taxonomy shared by the cache and the reconciler.

Failures raised by a memoized computation are not wrapped: they propagate to
the caller untouched and are never cached. Supersession of a reconciler request
is a request state, not an exception.
"""

from __future__ import annotations


class MementoError(Exception):
    """Base exception for all memento errors."""


class CacheError(MementoError):
    """Base exception for cache failures."""


class StoreUnavailable(CacheError):
    """Storage backend could not be reached.

    Transient infrastructure failure. Callers may retry at their discretion;
    the cache never retries internally.

    Attributes:
        backend: Backend name (e.g. "fs", "remote")
        operation: Store operation that failed (get, put, evict, list_keys, stat)
        cause: Original exception, if any
    """

    def __init__(
        self,
        message: str,
        *,
        backend: str,
        operation: str,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.backend = backend
        self.operation = operation
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.message} | backend={self.backend} op={self.operation}"


class SerializationError(CacheError):
    """Value could not be serialized or deserialized. The cache is left unmodified."""


class KeyDerivationError(CacheError):
    """Arguments could not be encoded into a cache key.

    Raised before the computation is attempted.
    """


class ReconcilerError(MementoError):
    """Reconciler misuse, e.g. completing a sequence id that was never dispatched."""

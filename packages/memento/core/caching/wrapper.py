"""Memoizing wrappers.

Provides memoize() (decorator or call form) and wrap(), returning
MemoizedFunction for plain callables and AsyncMemoizedFunction for coroutine
functions. Both share a MemoCache instance passed in explicitly or built from
the given store/capacity/ttl.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
import functools
import inspect
import threading
from typing import Any

from memento.core.errors import KeyDerivationError, StoreUnavailable
from memento.core.utils.logging import get_logger

from .cache import MISSING, MemoCache
from .fingerprint import bind_arguments, derive_key, function_prefix
from .models import Capacity, CacheOptions, CacheStats
from .protocols import Store
from .serializers import Serializer

KeyFn = Callable[..., Any]


class _KeyedLocks:
    """Per-key locks, dropped once no caller holds or waits on them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[bytes, list[Any]] = {}  # key -> [lock, refcount]

    @contextmanager
    def hold(self, key: bytes) -> Iterator[None]:
        with self._guard:
            slot = self._locks.setdefault(key, [threading.Lock(), 0])
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    self._locks.pop(key, None)


class _MemoizedBase:
    """Key derivation, lookups and per-function bookkeeping shared by both wrappers."""

    def __init__(
        self,
        func: Callable[..., Any],
        cache: MemoCache,
        *,
        key_fn: KeyFn | None = None,
        omit_args: Iterable[str] = (),
        version: str = "1",
        options: CacheOptions | None = None,
    ) -> None:
        functools.update_wrapper(self, func)
        self._func = func
        self.cache = cache
        self.key_fn = key_fn
        self.omit_args = tuple(omit_args)
        self.version = version
        self.options = options or CacheOptions()
        self.namespace = f"{func.__module__}.{func.__qualname__}"
        self.prefix = function_prefix(self.namespace, version)
        self._stats = CacheStats()
        self._stats_lock = threading.Lock()
        self._log = get_logger(__name__, memoized=self.namespace)

    def __repr__(self) -> str:
        return f"<memoized {self.namespace} v{self.version} {self.cache!r}>"

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        # Bind like a function so decorated methods receive self
        if instance is None:
            return self
        return BoundMemoized(self, instance)

    def cache_key(self, *args: Any, **kwargs: Any) -> bytes:
        """
        Derive the store key for a call.

        Raises:
            KeyDerivationError: If the arguments (or key_fn's result) cannot be encoded
            TypeError: If the arguments do not match the wrapped signature
        """
        if self.key_fn is not None:
            try:
                inputs = self.key_fn(*args, **kwargs)
            except Exception as e:
                raise KeyDerivationError(f"key_fn failed for {self.namespace}: {e}") from e
        else:
            inputs = bind_arguments(self._func, args, kwargs, self.omit_args)
        return derive_key(self.namespace, self.version, inputs)

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def _lookup(self, key: bytes, record_miss: bool = True) -> Any:
        """Cache read honoring fallback_on_unavailable. Returns MISSING on miss."""
        try:
            value = self.cache.get(
                key, ttl_seconds=self.options.ttl_seconds, count_miss=record_miss
            )
        except StoreUnavailable as e:
            self._count("errors")
            if not self.options.fallback_on_unavailable:
                raise
            self._log.warning(f"Cache read failed for {self.namespace}, computing directly: {e}")
            return MISSING
        if value is not MISSING:
            self._count("hits")
        elif record_miss:
            self._count("misses")
        return value

    def _store(self, key: bytes, result: Any) -> None:
        """Cache write honoring fallback_on_unavailable. Serialization errors propagate."""
        try:
            self.cache.set(key, result)
        except StoreUnavailable as e:
            self._count("errors")
            if not self.options.fallback_on_unavailable:
                raise
            self._log.warning(f"Cache write failed for {self.namespace}, result not cached: {e}")
            return
        self._count("stores")

    def _use_cache(self) -> bool:
        return self.options.enabled and not self.options.force

    def has_cache(self, *args: Any, **kwargs: Any) -> bool:
        """Check whether a live entry exists for these arguments."""
        return self.cache.contains(self.cache_key(*args, **kwargs), self.options.ttl_seconds)

    def drop_cache(self, *args: Any, **kwargs: Any) -> None:
        """Remove the entry for these arguments."""
        self.cache.invalidate(self.cache_key(*args, **kwargs))

    def forget(self) -> int:
        """
        Remove every entry of this function (this version).

        Returns:
            Number of entries removed
        """
        removed = self.cache.clear(prefix=self.prefix)
        self._log.debug(f"Forgot {removed} entries for {self.namespace}")
        return removed

    def cache_info(self) -> CacheStats:
        """Snapshot of this function's hit/miss counters."""
        with self._stats_lock:
            return self._stats.model_copy()


class MemoizedFunction(_MemoizedBase):
    """
    Memoized plain callable.

    Concurrent callers requesting the same key wait for a single computation.
    """

    def __init__(self, func: Callable[..., Any], cache: MemoCache, **kwargs: Any) -> None:
        super().__init__(func, cache, **kwargs)
        self._locks = _KeyedLocks()

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if not self.options.enabled:
            return self._func(*args, **kwargs)

        key = self.cache_key(*args, **kwargs)

        if self._use_cache():
            value = self._lookup(key)
            if value is not MISSING:
                return value

        with self._locks.hold(key):
            # Another caller may have filled the entry while we waited
            if self._use_cache():
                value = self._lookup(key, record_miss=False)
                if value is not MISSING:
                    return value

            result = self._func(*args, **kwargs)
            self._store(key, result)
            return result


class AsyncMemoizedFunction(_MemoizedBase):
    """
    Memoized coroutine function.

    Store I/O runs in a worker thread. Concurrent awaiters of the same key
    share one in-flight computation.
    """

    def __init__(self, func: Callable[..., Any], cache: MemoCache, **kwargs: Any) -> None:
        super().__init__(func, cache, **kwargs)
        self._inflight: dict[bytes, asyncio.Future[Any]] = {}
        # Keep inspect.iscoroutinefunction() true for the wrapper
        inspect.markcoroutinefunction(self)

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if not self.options.enabled:
            return await self._func(*args, **kwargs)

        key = self.cache_key(*args, **kwargs)

        loop = asyncio.get_running_loop()
        record_miss = True
        while self._use_cache():
            value = await asyncio.to_thread(self._lookup, key, record_miss)
            if value is not MISSING:
                return value
            record_miss = False

            pending = self._inflight.get(key)
            if pending is None or pending.get_loop() is not loop:
                break
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if not pending.cancelled() or (task is not None and task.cancelling()):
                    raise
                # The computing caller was cancelled, not this one: look again, then compute
                continue

        return await self._compute(key, loop, args, kwargs)

    async def _compute(
        self,
        key: bytes,
        loop: asyncio.AbstractEventLoop,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        future: asyncio.Future[Any] = loop.create_future()
        self._inflight[key] = future
        try:
            result = await self._func(*args, **kwargs)
            await asyncio.to_thread(self._store, key, result)
        except asyncio.CancelledError:
            # Waiters see a cancelled future and take over the computation
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved: the failure is re-raised to this caller below
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]


class BoundMemoized:
    """
    A memoized function accessed through an instance.

    Calls and the per-call operations (cache_key, has_cache, drop_cache) get the
    instance prepended; everything else is delegated to the memoized function.
    """

    def __init__(self, memoized: _MemoizedBase, instance: Any) -> None:
        self.__func__ = memoized
        self.__self__ = instance
        functools.update_wrapper(self, memoized, updated=())
        if isinstance(memoized, AsyncMemoizedFunction):
            inspect.markcoroutinefunction(self)

    def __repr__(self) -> str:
        return f"<bound {self.__func__!r} of {self.__self__!r}>"

    def __getattr__(self, name: str) -> Any:
        return getattr(self.__func__, name)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.__func__(self.__self__, *args, **kwargs)

    def cache_key(self, *args: Any, **kwargs: Any) -> bytes:
        return self.__func__.cache_key(self.__self__, *args, **kwargs)

    def has_cache(self, *args: Any, **kwargs: Any) -> bool:
        return self.__func__.has_cache(self.__self__, *args, **kwargs)

    def drop_cache(self, *args: Any, **kwargs: Any) -> None:
        self.__func__.drop_cache(self.__self__, *args, **kwargs)


def memoize(
    func: Callable[..., Any] | None = None,
    *,
    cache: MemoCache | None = None,
    store: Store | None = None,
    serializer: Serializer | None = None,
    capacity: Capacity | int | None = None,
    ttl: float | None = None,
    key_fn: KeyFn | None = None,
    omit_args: Iterable[str] = (),
    version: str = "1",
    options: CacheOptions | None = None,
) -> Any:
    """
    Memoize a computation.

    Usable as `@memoize`, `@memoize(cache=...)` or `memoize(fn, ...)`.

    Workflow per call:
    1. Derive key from key_fn(*args, **kwargs) or the bound arguments
    2. Attempt cache load (if enabled and not forced)
    3. On miss: run the computation, store the result (failures are never cached)
    4. Return the result

    Args:
        func: Computation to wrap
        cache: Shared cache instance (mutually exclusive with store/serializer/capacity)
        store: Storage backend for a new cache (default: in-memory)
        serializer: Value serializer for a new cache (default: pickle)
        capacity: Capacity bounds for a new cache, or an int meaning max entries
        ttl: Max entry age in seconds for this function
        key_fn: Custom key derivation; receives the call arguments
        omit_args: Parameter names excluded from the key
        version: Function version (bump on logic changes)
        options: Per-function cache behavior overrides

    Returns:
        MemoizedFunction / AsyncMemoizedFunction, or a decorator when func is None

    Example:
        >>> cache = MemoCache(FSStore("data/cache"))
        >>> @memoize(cache=cache, omit_args=("conn",))
        ... def load_table(conn, table: str) -> list[dict]:
        ...     return conn.fetch_all(table)
    """
    if cache is not None and any(v is not None for v in (store, serializer, capacity)):
        raise ValueError("Pass either cache or store/serializer/capacity, not both")

    opts = options or CacheOptions()
    if ttl is not None:
        opts = opts.model_copy(update={"ttl_seconds": ttl})

    def decorate(fn: Callable[..., Any]) -> _MemoizedBase:
        target = cache or MemoCache(store, serializer=serializer, capacity=capacity)
        cls = AsyncMemoizedFunction if inspect.iscoroutinefunction(fn) else MemoizedFunction
        return cls(
            fn,
            target,
            key_fn=key_fn,
            omit_args=omit_args,
            version=version,
            options=opts,
        )

    if func is None:
        return decorate
    return decorate(func)


def wrap(computation: Callable[..., Any], **options: Any) -> _MemoizedBase:
    """Return a memoized version of `computation`. Same options as memoize()."""
    return memoize(computation, **options)

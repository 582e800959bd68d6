"""Dispatchers: run computations concurrently and report outcomes to a reconciler.

The reconciler stays a plain synchronized data structure; dispatchers adapt a
concurrency primitive (asyncio tasks or a thread pool) to its
dispatch/complete/fail contract. Superseded work is not cancelled: only its
relevance ends.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
import logging
from typing import Any, Generic, TypeVar

from .base import Reconciler

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DispatchHandle(Generic[T]):
    """A dispatched computation: its sequence id and the future running it."""

    sequence_id: int
    future: asyncio.Future[T | None] | Future[T | None]


class AsyncDispatcher:
    """
    Runs coroutines as asyncio tasks and reports each outcome exactly once.

    Example:
        >>> dispatcher = AsyncDispatcher(LatestWinsReconciler(slot))
        >>> dispatcher.submit(lambda: fetch_plot(query))
        >>> await dispatcher.join()
    """

    def __init__(self, reconciler: Reconciler) -> None:
        self.reconciler = reconciler
        self._tasks: set[asyncio.Task[Any]] = set()

    def submit(self, factory: Callable[[], Awaitable[T]]) -> DispatchHandle[T]:
        """
        Dispatch a computation on the running event loop.

        Args:
            factory: Zero-argument callable returning the awaitable to run

        Returns:
            DispatchHandle with the sequence id and task
        """
        sequence_id = self.reconciler.dispatch()
        task = asyncio.get_running_loop().create_task(self._run(sequence_id, factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return DispatchHandle(sequence_id=sequence_id, future=task)

    async def _run(self, sequence_id: int, factory: Callable[[], Awaitable[T]]) -> T | None:
        try:
            result = await factory()
        except asyncio.CancelledError as e:
            # Report so ordered delivery is not blocked forever
            self.reconciler.fail(sequence_id, e)
            raise
        except Exception as e:
            logger.debug(f"Dispatched request {sequence_id} raised {e!r}")
            self.reconciler.fail(sequence_id, e)
            return None
        self.reconciler.complete(sequence_id, result)
        return result

    @property
    def outstanding(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every dispatched task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ThreadDispatcher:
    """
    Runs blocking callables on a thread pool and reports each outcome exactly once.

    Example:
        >>> with ThreadDispatcher(OrderedReconciler(observer), max_workers=4) as d:
        ...     for query in queries:
        ...         d.submit(run_query, query)
    """

    def __init__(self, reconciler: Reconciler, max_workers: int | None = None) -> None:
        self.reconciler = reconciler
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="memento-dispatch"
        )

    def __enter__(self) -> ThreadDispatcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> DispatchHandle[T]:
        """
        Dispatch a computation on the pool.

        Returns:
            DispatchHandle with the sequence id and concurrent future
        """
        sequence_id = self.reconciler.dispatch()
        future = self._executor.submit(self._run, sequence_id, fn, args, kwargs)
        return DispatchHandle(sequence_id=sequence_id, future=future)

    def _run(
        self,
        sequence_id: int,
        fn: Callable[..., T],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> T | None:
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            logger.debug(f"Dispatched request {sequence_id} raised {e!r}")
            self.reconciler.fail(sequence_id, e)
            return None
        self.reconciler.complete(sequence_id, result)
        return result

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

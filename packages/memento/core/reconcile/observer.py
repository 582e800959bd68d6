"""Observers receiving accepted reconciler outcomes.

The reconciler owns all staleness decisions; observers only ever see accepted
results and errors.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import queue
import threading
from typing import Any, Protocol


class Observer(Protocol):
    """Protocol for reconciler observers."""

    def on_result(self, sequence_id: int, result: Any) -> None:
        """Receive an accepted result."""
        ...

    def on_error(self, sequence_id: int, error: BaseException) -> None:
        """Receive an accepted failure."""
        ...


@dataclass(frozen=True)
class Delivery:
    """One accepted outcome: either a result or an error."""

    sequence_id: int
    result: Any = None
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ResultSlot:
    """
    Single-slot sink holding the most recently accepted outcome.

    An accepted error clears any previously surfaced result. Readers can block
    until an outcome for a given sequence id (or later) arrives.

    Example:
        >>> slot = ResultSlot()
        >>> reconciler = LatestWinsReconciler(slot)
        >>> seq = reconciler.dispatch()
        >>> _ = reconciler.complete(seq, "rendered")
        >>> slot.result()
        'rendered'
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._delivery: Delivery | None = None
        self._generation = 0

    def on_result(self, sequence_id: int, result: Any) -> None:
        self._set(Delivery(sequence_id=sequence_id, result=result))

    def on_error(self, sequence_id: int, error: BaseException) -> None:
        self._set(Delivery(sequence_id=sequence_id, error=error))

    def _set(self, delivery: Delivery) -> None:
        with self._cond:
            self._delivery = delivery
            self._generation += 1
            self._cond.notify_all()

    @property
    def generation(self) -> int:
        """Number of outcomes accepted so far."""
        with self._cond:
            return self._generation

    @property
    def delivery(self) -> Delivery | None:
        with self._cond:
            return self._delivery

    @property
    def sequence_id(self) -> int | None:
        delivery = self.delivery
        return delivery.sequence_id if delivery else None

    @property
    def has_value(self) -> bool:
        delivery = self.delivery
        return delivery is not None and not delivery.failed

    def result(self) -> Any:
        """
        Return the surfaced result, or raise the surfaced error.

        Raises:
            LookupError: If nothing has been accepted yet
        """
        delivery = self.delivery
        if delivery is None:
            raise LookupError("No result has been accepted yet")
        if delivery.error is not None:
            raise delivery.error
        return delivery.result

    def wait(self, sequence_id: int | None = None, timeout: float | None = None) -> bool:
        """
        Block until an outcome is accepted.

        Args:
            sequence_id: Wait for an outcome with at least this id (default: any outcome)
            timeout: Max seconds to wait

        Returns:
            True if a matching outcome is present, False on timeout
        """

        def ready() -> bool:
            if self._delivery is None:
                return False
            return sequence_id is None or self._delivery.sequence_id >= sequence_id

        with self._cond:
            return self._cond.wait_for(ready, timeout=timeout)

    def clear(self) -> None:
        with self._cond:
            self._delivery = None


class CallbackObserver:
    """Adapts plain callables to the Observer protocol."""

    def __init__(
        self,
        on_result: Callable[[int, Any], None],
        on_error: Callable[[int, BaseException], None] | None = None,
    ) -> None:
        self._on_result = on_result
        self._on_error = on_error

    def on_result(self, sequence_id: int, result: Any) -> None:
        self._on_result(sequence_id, result)

    def on_error(self, sequence_id: int, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(sequence_id, error)


class QueueObserver:
    """
    Publishes accepted outcomes as Delivery messages on a queue.

    Lets a consumer thread observe outcomes without sharing state with the
    reconciler.
    """

    def __init__(self, channel: queue.Queue[Delivery] | None = None) -> None:
        self.channel: queue.Queue[Delivery] = channel if channel is not None else queue.Queue()

    def on_result(self, sequence_id: int, result: Any) -> None:
        self.channel.put(Delivery(sequence_id=sequence_id, result=result))

    def on_error(self, sequence_id: int, error: BaseException) -> None:
        self.channel.put(Delivery(sequence_id=sequence_id, error=error))

    def drain(self) -> list[Delivery]:
        """Return every queued delivery without blocking."""
        deliveries = []
        while True:
            try:
                deliveries.append(self.channel.get_nowait())
            except queue.Empty:
                return deliveries

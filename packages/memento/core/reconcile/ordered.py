"""Ordered-delivery reconciliation.

Outcomes reach the observer in dispatch order. Outcomes arriving early are
held until every earlier request has been delivered, then drained.

A request that never completes blocks delivery of every later one and the
holding area grows without bound; callers impose their own dispatch-side
timeout (and report it through `fail`).
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from .base import BaseReconciler
from .models import RequestState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Held:
    result: Any = None
    error: BaseException | None = None


class OrderedReconciler(BaseReconciler):
    """
    Delivers every outcome, in dispatch order.

    Example:
        >>> observer = QueueObserver()
        >>> r = OrderedReconciler(observer)
        >>> a, b = r.dispatch(), r.dispatch()
        >>> r.complete(b, "second")  # held until a arrives
        True
        >>> r.complete(a, "first")
        True
        >>> [d.result for d in observer.drain()]
        ['first', 'second']
    """

    policy = "ordered"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._next_expected_id = 1
        self._held: dict[int, _Held] = {}

    @property
    def next_expected_id(self) -> int:
        with self._lock:
            return self._next_expected_id

    def held_ids(self) -> list[int]:
        """Ids whose outcomes arrived early and wait for a gap to close."""
        with self._lock:
            return sorted(self._held)

    def complete(self, sequence_id: int, result: Any) -> bool:
        """
        Report a successful outcome.

        Returns:
            True if delivered or held for delivery, False if discarded as late/duplicate
        """
        return self._arrive(sequence_id, _Held(result=result), RequestState.COMPLETED)

    def fail(self, sequence_id: int, error: BaseException) -> bool:
        """
        Report a failed outcome; delivered in order like results.

        Returns:
            True if delivered or held for delivery, False if discarded as late/duplicate
        """
        return self._arrive(sequence_id, _Held(error=error), RequestState.FAILED)

    def _arrive(self, sequence_id: int, outcome: _Held, state: RequestState) -> bool:
        with self._lock:
            if sequence_id < self._next_expected_id:
                # Validates the id; late or duplicate arrivals are discarded
                self._lookup(sequence_id)
                logger.debug(f"{self.policy}: discarding late outcome for {sequence_id}")
                return False
            if self._lookup(sequence_id) is None:
                return False

            self._resolve(sequence_id, state)
            if sequence_id > self._next_expected_id:
                self._held[sequence_id] = outcome
                logger.debug(
                    f"{self.policy}: holding {sequence_id} (waiting for {self._next_expected_id})"
                )
                return True

            self._deliver(sequence_id, outcome)
            self._drain()
        return True

    def _deliver(self, sequence_id: int, outcome: _Held) -> None:
        if outcome.error is not None:
            self.observer.on_error(sequence_id, outcome.error)
        else:
            self.observer.on_result(sequence_id, outcome.result)
        self._next_expected_id = sequence_id + 1

    def _drain(self) -> None:
        while self._next_expected_id in self._held:
            sequence_id = self._next_expected_id
            self._deliver(sequence_id, self._held.pop(sequence_id))

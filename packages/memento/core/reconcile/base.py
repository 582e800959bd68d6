"""Shared reconciler bookkeeping.

Reconcilers are plain synchronized data structures: every mutation of the
sequence counter, request records and holding area happens inside one
re-entrant lock. Observers are called inside that critical section so that
delivery order always matches acceptance order; they must not block.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
import logging
import threading
import time
from typing import Any, Protocol

from memento.core.errors import ReconcilerError

from .models import PendingRequest, RequestState
from .observer import Observer

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1024


class Reconciler(Protocol):
    """What dispatchers need from a reconciler."""

    def dispatch(self) -> int: ...

    def complete(self, sequence_id: int, result: Any) -> bool: ...

    def fail(self, sequence_id: int, error: BaseException) -> bool: ...


class BaseReconciler:
    """
    Sequence-id tracking shared by both reconciliation policies.

    Terminal request records beyond `history_limit` are pruned oldest-first;
    outcomes for pruned ids are discarded as late.
    """

    policy = "base"

    def __init__(
        self,
        observer: Observer,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize reconciler.

        Args:
            observer: Sink for accepted outcomes
            history_limit: Max terminal request records kept for inspection
            clock: Time source for request timestamps
        """
        if history_limit < 0:
            raise ValueError(f"history_limit must be >= 0, got {history_limit}")
        self.observer = observer
        self.history_limit = history_limit
        self._clock = clock
        self._lock = threading.RLock()
        self._requests: OrderedDict[int, PendingRequest] = OrderedDict()
        self._last_dispatched_id = 0

    @property
    def last_dispatched_id(self) -> int:
        """Id of the most recently dispatched request (0 before the first dispatch)."""
        with self._lock:
            return self._last_dispatched_id

    def dispatch(self) -> int:
        """
        Register a new request.

        Never blocks on anything but the critical section.

        Returns:
            New sequence id (1, 2, 3, ...)
        """
        with self._lock:
            self._last_dispatched_id += 1
            sequence_id = self._last_dispatched_id
            self._requests[sequence_id] = PendingRequest(
                sequence_id=sequence_id,
                dispatched_at=self._clock(),
            )
            self._on_dispatch(sequence_id)
            self._prune_history()
        logger.debug(f"{self.policy}: dispatched request {sequence_id}")
        return sequence_id

    def request(self, sequence_id: int) -> PendingRequest | None:
        """Copy of a request record, or None if unknown or pruned."""
        with self._lock:
            record = self._requests.get(sequence_id)
            return record.model_copy() if record else None

    def pending(self) -> list[int]:
        """Ids of requests still in flight, oldest first."""
        with self._lock:
            return [
                r.sequence_id
                for r in self._requests.values()
                if r.state is RequestState.IN_FLIGHT
            ]

    def _on_dispatch(self, sequence_id: int) -> None:
        """Policy hook, called inside the critical section."""

    def _lookup(self, sequence_id: int) -> PendingRequest | None:
        """
        Find an in-flight record for an arriving outcome. Caller holds the lock.

        Returns:
            The record, or None if the outcome must be discarded (pruned or terminal)

        Raises:
            ReconcilerError: If the id was never dispatched
        """
        if sequence_id <= 0 or sequence_id > self._last_dispatched_id:
            raise ReconcilerError(
                f"Sequence id {sequence_id} was never dispatched "
                f"(last dispatched: {self._last_dispatched_id})"
            )
        record = self._requests.get(sequence_id)
        if record is None:
            logger.debug(f"{self.policy}: discarding outcome for pruned request {sequence_id}")
            return None
        if record.state.terminal:
            logger.debug(
                f"{self.policy}: discarding outcome for request {sequence_id} "
                f"({record.state.value})"
            )
            return None
        return record

    def _resolve(self, sequence_id: int, state: RequestState) -> None:
        """Move a record to a terminal state. Caller holds the lock."""
        record = self._requests.get(sequence_id)
        if record is None or record.state.terminal:
            return
        self._requests[sequence_id] = record.model_copy(
            update={"state": state, "resolved_at": self._clock()}
        )

    def _prune_history(self) -> None:
        terminal = [sid for sid, r in self._requests.items() if r.state.terminal]
        for sequence_id in terminal[: max(len(terminal) - self.history_limit, 0)]:
            del self._requests[sequence_id]

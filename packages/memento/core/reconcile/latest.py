"""Latest-wins reconciliation.

Only the most recently dispatched request's outcome reaches the observer.
Dispatching a new request supersedes every older in-flight request at once,
regardless of the order in which their results later arrive.
"""

from __future__ import annotations

import logging
from typing import Any

from .base import BaseReconciler
from .models import RequestState

logger = logging.getLogger(__name__)


class LatestWinsReconciler(BaseReconciler):
    """
    Surfaces only the newest request's result or error.

    Stale completions are discarded silently: `complete`/`fail` return False
    and never raise for them.

    Example:
        >>> slot = ResultSlot()
        >>> r = LatestWinsReconciler(slot)
        >>> first, second = r.dispatch(), r.dispatch()
        >>> r.complete(first, "old")
        False
        >>> r.complete(second, "new")
        True
        >>> slot.result()
        'new'
    """

    policy = "latest-wins"

    def _on_dispatch(self, sequence_id: int) -> None:
        for older_id in self.pending():
            if older_id < sequence_id:
                self._resolve(older_id, RequestState.SUPERSEDED)

    def complete(self, sequence_id: int, result: Any) -> bool:
        """
        Report a successful outcome.

        Returns:
            True if surfaced to the observer, False if discarded as stale
        """
        with self._lock:
            if not self._accept(sequence_id):
                return False
            self._resolve(sequence_id, RequestState.COMPLETED)
            self.observer.on_result(sequence_id, result)
        return True

    def fail(self, sequence_id: int, error: BaseException) -> bool:
        """
        Report a failed outcome. The observer's prior result is replaced by the error.

        Returns:
            True if surfaced to the observer, False if discarded as stale
        """
        with self._lock:
            if not self._accept(sequence_id):
                return False
            self._resolve(sequence_id, RequestState.FAILED)
            self.observer.on_error(sequence_id, error)
        logger.debug(f"{self.policy}: request {sequence_id} failed: {error!r}")
        return True

    def _accept(self, sequence_id: int) -> bool:
        if self._lookup(sequence_id) is None:
            return False
        if sequence_id != self._last_dispatched_id:
            self._resolve(sequence_id, RequestState.SUPERSEDED)
            logger.debug(f"{self.policy}: discarding superseded request {sequence_id}")
            return False
        return True

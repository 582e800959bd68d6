"""Stale-result reconciliation for concurrently dispatched computations.

Two policies:
- LatestWinsReconciler: only the newest request's outcome is surfaced
- OrderedReconciler: every outcome is surfaced, in dispatch order

Example:
    >>> from memento.core.reconcile import AsyncDispatcher, LatestWinsReconciler, ResultSlot
    >>>
    >>> slot = ResultSlot()
    >>> dispatcher = AsyncDispatcher(LatestWinsReconciler(slot))
    >>> for query in user_edits:
    ...     dispatcher.submit(lambda q=query: run_query(q))
    >>> await dispatcher.join()
    >>> slot.result()  # outcome of the last edit only
"""

from memento.core.reconcile.base import BaseReconciler, Reconciler
from memento.core.reconcile.dispatch import AsyncDispatcher, DispatchHandle, ThreadDispatcher
from memento.core.reconcile.latest import LatestWinsReconciler
from memento.core.reconcile.models import PendingRequest, RequestState
from memento.core.reconcile.observer import (
    CallbackObserver,
    Delivery,
    Observer,
    QueueObserver,
    ResultSlot,
)
from memento.core.reconcile.ordered import OrderedReconciler

__all__ = [
    # Reconcilers
    "Reconciler",
    "BaseReconciler",
    "LatestWinsReconciler",
    "OrderedReconciler",
    # Models
    "PendingRequest",
    "RequestState",
    # Observers
    "Observer",
    "Delivery",
    "ResultSlot",
    "CallbackObserver",
    "QueueObserver",
    # Dispatchers
    "AsyncDispatcher",
    "ThreadDispatcher",
    "DispatchHandle",
]

"""Models for stale-result reconciliation."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class RequestState(str, Enum):
    """Lifecycle of a dispatched request. All states but IN_FLIGHT are terminal."""

    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"
    SUPERSEDED = "superseded"

    @property
    def terminal(self) -> bool:
        return self is not RequestState.IN_FLIGHT


class PendingRequest(BaseModel):
    """
    Bookkeeping record for one dispatched request.

    Owned by the reconciler; callers receive copies.
    """

    sequence_id: int = Field(gt=0, description="Monotonic id assigned at dispatch")
    dispatched_at: float = Field(description="Unix timestamp (seconds) of dispatch")
    state: RequestState = Field(default=RequestState.IN_FLIGHT)
    resolved_at: float | None = Field(
        default=None, description="Unix timestamp of the transition to a terminal state"
    )

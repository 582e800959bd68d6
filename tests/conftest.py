"""Shared pytest fixtures for memento tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from memento.core.caching import FSStore, MemoCache, MemoryStore


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def tick(self) -> float:
        """Advance by one millisecond and return the new time."""
        self.now += 0.001
        return self.now


# ============================================================================
# Clock Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryStore:
    """Provide fresh MemoryStore on the fake clock."""
    return MemoryStore(clock=clock)


@pytest.fixture
def fs_store(tmp_path: Path) -> FSStore:
    """Provide FSStore rooted in a temp directory."""
    return FSStore(tmp_path / ".cache")


@pytest.fixture
def cache(memory_store: MemoryStore, clock: FakeClock) -> MemoCache:
    """Provide unbounded MemoCache over the memory store."""
    return MemoCache(memory_store, clock=clock)

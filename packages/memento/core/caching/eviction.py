"""Victim selection for capacity-bounded caches."""

from __future__ import annotations

from collections.abc import Sequence

from .models import Capacity, CacheEntry, EvictionPolicy


def eviction_order(entries: Sequence[CacheEntry], policy: EvictionPolicy) -> list[CacheEntry]:
    """
    Order entries from first-to-evict to last-to-evict.

    LRU orders by last access, FIFO by creation. The sort is stable, so entries
    with equal timestamps keep the order the store listed them in.
    """
    if policy == EvictionPolicy.FIFO:
        return sorted(entries, key=lambda e: e.created_at)
    return sorted(entries, key=lambda e: (e.last_accessed_at, e.created_at))


def select_victims(
    entries: Sequence[CacheEntry],
    capacity: Capacity,
    policy: EvictionPolicy = EvictionPolicy.LRU,
) -> list[CacheEntry]:
    """
    Pick the entries to evict so the remainder fits within capacity.

    Args:
        entries: Current entry metadata
        capacity: Entry-count and byte bounds
        policy: Eviction order

    Returns:
        Entries to evict, in eviction order (empty when already within bounds)
    """
    if not capacity.bounded:
        return []

    count = len(entries)
    total = sum(e.size for e in entries)
    victims: list[CacheEntry] = []

    for entry in eviction_order(entries, policy):
        over_count = capacity.max_entries is not None and count > capacity.max_entries
        over_bytes = capacity.max_bytes is not None and total > capacity.max_bytes
        if not (over_count or over_bytes):
            break
        victims.append(entry)
        count -= 1
        total -= entry.size

    return victims

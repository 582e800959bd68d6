"""Tests for MemoCache."""

import pytest

from memento.core.caching import (
    MISSING,
    Capacity,
    EvictionPolicy,
    FSStore,
    JSONSerializer,
    MemoCache,
    MemoryStore,
)
from memento.core.errors import SerializationError


class TestGetSet:
    """Tests for basic reads and writes."""

    def test_round_trip(self, cache: MemoCache):
        """Test a stored value is returned."""
        cache.set(b"k", {"answer": 42})
        assert cache.get(b"k") == {"answer": 42}

    def test_absent_key_is_missing(self, cache: MemoCache):
        """Test a miss returns the MISSING sentinel."""
        assert cache.get(b"absent") is MISSING
        assert not MISSING
        assert repr(MISSING) == "MISSING"

    def test_none_is_a_cacheable_value(self, cache: MemoCache):
        """Test None is distinguished from a miss."""
        cache.set(b"k", None)
        assert cache.get(b"k") is None

    def test_set_returns_entry_metadata(self, cache: MemoCache, clock):
        """Test set returns the stored entry's metadata."""
        entry = cache.set(b"k", "value")
        assert entry.key == b"k"
        assert entry.created_at == clock()
        assert entry.size > 0

    def test_stats_count_hits_misses_and_stores(self, cache: MemoCache):
        """Test cache-wide counters."""
        cache.get(b"k")
        cache.set(b"k", 1)
        cache.get(b"k")
        cache.get(b"k")

        stats = cache.stats
        assert (stats.hits, stats.misses, stats.stores) == (2, 1, 1)
        assert stats.hit_rate == pytest.approx(2 / 3)

    def test_unserializable_value_leaves_cache_unmodified(self, cache: MemoCache):
        """Test SerializationError on set leaves no entry behind."""
        cache.set(b"k", "old")
        with pytest.raises(SerializationError):
            cache.set(b"k", lambda: None)
        assert cache.get(b"k") == "old"

    def test_corrupt_entry_is_a_miss_and_evicted(
        self, cache: MemoCache, memory_store: MemoryStore
    ):
        """Test bytes the serializer cannot read are treated as a miss."""
        memory_store.put(b"k", b"definitely not a pickle")
        assert cache.get(b"k") is MISSING
        assert memory_store.get(b"k") is None

    def test_invalidate(self, cache: MemoCache):
        """Test invalidate removes one entry."""
        cache.set(b"a", 1)
        cache.set(b"b", 2)
        cache.invalidate(b"a")
        assert cache.get(b"a") is MISSING
        assert cache.get(b"b") == 2

    def test_int_capacity_means_max_entries(self, memory_store: MemoryStore):
        """Test capacity=N is shorthand for Capacity(max_entries=N)."""
        cache = MemoCache(memory_store, capacity=5)
        assert cache.capacity == Capacity(max_entries=5)

    def test_non_positive_ttl_rejected(self):
        """Test ttl must be positive."""
        with pytest.raises(ValueError, match="ttl_seconds"):
            MemoCache(ttl_seconds=0)


class TestExpiry:
    """Tests for ttl handling."""

    @pytest.fixture
    def ttl_cache(self, memory_store: MemoryStore, clock) -> MemoCache:
        return MemoCache(memory_store, ttl_seconds=10, clock=clock)

    def test_fresh_entry_hits(self, ttl_cache: MemoCache, clock):
        """Test entries younger than ttl are returned."""
        ttl_cache.set(b"k", "v")
        clock.advance(10)
        assert ttl_cache.get(b"k") == "v"

    def test_expired_entry_misses_and_is_evicted(
        self, ttl_cache: MemoCache, memory_store: MemoryStore, clock
    ):
        """Test entries older than ttl read as a miss and are removed."""
        ttl_cache.set(b"k", "v")
        clock.advance(10.5)
        assert ttl_cache.get(b"k") is MISSING
        assert memory_store.stat(b"k") is None

    def test_ttl_counts_from_write_not_last_read(self, ttl_cache: MemoCache, clock):
        """Test reads do not extend an entry's lifetime."""
        ttl_cache.set(b"k", "v")
        clock.advance(8)
        assert ttl_cache.get(b"k") == "v"
        clock.advance(8)
        assert ttl_cache.get(b"k") is MISSING

    def test_per_lookup_ttl_override(self, cache: MemoCache, clock):
        """Test a lookup-level ttl applies to an otherwise non-expiring cache."""
        cache.set(b"k", "v")
        clock.advance(60)
        assert cache.get(b"k") == "v"
        assert cache.get(b"k", ttl_seconds=30) is MISSING

    def test_contains_respects_ttl(self, ttl_cache: MemoCache, clock):
        """Test contains reports expired entries as absent."""
        ttl_cache.set(b"k", "v")
        assert ttl_cache.contains(b"k")
        clock.advance(11)
        assert not ttl_cache.contains(b"k")

    def test_prune_removes_expired(self, ttl_cache: MemoCache, clock):
        """Test prune deletes only expired entries."""
        ttl_cache.set(b"old", 1)
        clock.advance(8)
        ttl_cache.set(b"new", 2)
        clock.advance(5)

        assert ttl_cache.prune() == 1
        assert ttl_cache.keys() == [b"new"]

    def test_prune_without_ttl_keeps_everything(self, cache: MemoCache, clock):
        """Test prune is a no-op for an unbounded, non-expiring cache."""
        cache.set(b"k", 1)
        clock.advance(10_000)
        assert cache.prune() == 0


class TestEviction:
    """Tests for capacity enforcement."""

    def test_lru_evicts_first_inserted_when_untouched(self, memory_store, clock):
        """Test C+1 insertions without reads evicts the first one."""
        cache = MemoCache(memory_store, capacity=3, clock=clock)
        for key in (b"a", b"b", b"c", b"d"):
            cache.set(key, key.decode())

        assert cache.get(b"a") is MISSING
        assert sorted(cache.keys()) == [b"b", b"c", b"d"]
        assert cache.stats.evictions == 1

    def test_lru_keeps_recently_read_entry(self, memory_store, clock):
        """Test a read protects an entry from eviction."""
        cache = MemoCache(memory_store, capacity=3, clock=clock)
        for key in (b"a", b"b", b"c"):
            cache.set(key, 1)
            clock.advance(1)
        cache.get(b"a")
        clock.advance(1)
        cache.set(b"d", 1)

        assert sorted(cache.keys()) == [b"a", b"c", b"d"]

    def test_lru_ties_resolve_in_access_order(self, memory_store, clock):
        """Test LRU order holds even when the clock does not move."""
        cache = MemoCache(memory_store, capacity=2, clock=clock)
        cache.set(b"a", 1)
        cache.set(b"b", 2)
        cache.get(b"a")
        cache.set(b"c", 3)

        assert sorted(cache.keys()) == [b"a", b"c"]

    def test_contains_does_not_refresh_access(self, memory_store, clock):
        """Test contains is not counted as a use."""
        cache = MemoCache(memory_store, capacity=2, clock=clock)
        cache.set(b"a", 1)
        clock.advance(1)
        cache.set(b"b", 2)
        clock.advance(1)
        assert cache.contains(b"a")
        cache.set(b"c", 3)

        assert sorted(cache.keys()) == [b"b", b"c"]

    def test_fifo_ignores_reads(self, memory_store, clock):
        """Test FIFO evicts the oldest write regardless of reads."""
        cache = MemoCache(memory_store, capacity=2, eviction=EvictionPolicy.FIFO, clock=clock)
        cache.set(b"a", 1)
        clock.advance(1)
        cache.set(b"b", 2)
        clock.advance(1)
        cache.get(b"a")
        cache.set(b"c", 3)

        assert sorted(cache.keys()) == [b"b", b"c"]

    def test_max_bytes_evicts_until_within_budget(self, memory_store, clock):
        """Test total serialized size is kept within max_bytes."""
        cache = MemoCache(
            memory_store,
            serializer=JSONSerializer(),
            capacity=Capacity(max_bytes=25),
            clock=clock,
        )
        cache.set(b"a", "x" * 8)  # '"xxxxxxxx"' is 10 bytes
        clock.advance(1)
        cache.set(b"b", "x" * 8)
        clock.advance(1)
        cache.set(b"c", "x" * 8)

        assert sorted(cache.keys()) == [b"b", b"c"]
        assert sum(e.size for e in cache.entries()) == 20

    def test_oversize_value_is_not_stored(self, memory_store, clock):
        """Test a value larger than max_bytes is returned to no one and stores nothing."""
        cache = MemoCache(
            memory_store,
            serializer=JSONSerializer(),
            capacity=Capacity(max_bytes=25),
            clock=clock,
        )
        cache.set(b"small", "x")

        assert cache.set(b"big", "x" * 40) is None
        assert cache.keys() == [b"small"]

    def test_oversize_overwrite_drops_previous_value(self, memory_store, clock):
        """Test an oversize write does not leave the key's older value readable."""
        cache = MemoCache(
            memory_store,
            serializer=JSONSerializer(),
            capacity=Capacity(max_bytes=25),
            clock=clock,
        )
        cache.set(b"k", "x")

        assert cache.set(b"k", "x" * 40) is None
        assert cache.get(b"k") is MISSING
        assert cache.keys() == []

    def test_both_bounds_enforced(self, memory_store, clock):
        """Test entry count and byte bounds apply together."""
        cache = MemoCache(
            memory_store,
            serializer=JSONSerializer(),
            capacity=Capacity(max_entries=3, max_bytes=1000),
            clock=clock,
        )
        for i in range(5):
            cache.set(f"k{i}".encode(), i)
            clock.advance(1)

        assert sorted(cache.keys()) == [b"k2", b"k3", b"k4"]

    def test_prune_enforces_capacity_on_existing_entries(self, memory_store, clock):
        """Test prune trims entries written behind the cache's back."""
        for i in range(4):
            memory_store.put(f"k{i}".encode(), b"v")
            clock.advance(1)
        cache = MemoCache(memory_store, capacity=2, clock=clock)

        assert cache.prune() == 2
        assert sorted(cache.keys()) == [b"k2", b"k3"]

    def test_lru_over_fs_store(self, fs_store: FSStore):
        """Test capacity eviction works over the filesystem store."""
        cache = MemoCache(fs_store, capacity=2)
        cache.set(b"a", 1)
        cache.set(b"b", 2)
        cache.set(b"c", 3)

        assert len(cache.keys()) == 2
        assert cache.stats.evictions == 1


class TestListing:
    """Tests for keys, entries and clear."""

    def test_keys_by_prefix(self, cache: MemoCache):
        """Test prefix filtering."""
        cache.set(b"ns1-a", 1)
        cache.set(b"ns1-b", 2)
        cache.set(b"ns2-a", 3)
        assert sorted(cache.keys(b"ns1-")) == [b"ns1-a", b"ns1-b"]

    def test_entries_do_not_load_values(self, cache: MemoCache):
        """Test entries returns metadata only."""
        cache.set(b"k", "value")
        [entry] = cache.entries()
        assert entry.key == b"k"
        assert entry.value is None

    def test_clear_prefix(self, cache: MemoCache):
        """Test clear with a prefix leaves other entries."""
        cache.set(b"ns1-a", 1)
        cache.set(b"ns2-a", 2)
        assert cache.clear(b"ns1-") == 1
        assert cache.keys() == [b"ns2-a"]

    def test_clear_all(self, cache: MemoCache):
        """Test clear removes every entry."""
        cache.set(b"a", 1)
        cache.set(b"b", 2)
        assert cache.clear() == 2
        assert cache.keys() == []

    def test_repr(self, cache: MemoCache):
        """Test repr names the store."""
        assert "store=memory" in repr(cache)

"""
Tests for OperationCache module
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from rasterkit.core.cache import OperationCache


class TestOperationCache:
    """Test OperationCache functionality"""

    @pytest.fixture
    def cache(self):
        """Create a cache holding up to 3 items / 100 bytes"""
        return OperationCache(max_items=3, max_memory_bytes=100)

    def test_initialization(self, cache):
        """Test cache initialization"""
        stats = cache.get_stats()
        assert cache.enabled
        assert stats.items == 0
        assert stats.memory_bytes == 0
        assert stats.hits == 0
        assert stats.misses == 0

    def test_get_put(self, cache):
        """Test storing and reading back"""
        assert cache.get(("a",)) is None
        cache.put(("a",), b"12345")

        assert cache.get(("a",)) == b"12345"
        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.memory_bytes == 5

    def test_replace_entry(self, cache):
        """Test storing the same key twice keeps one entry"""
        cache.put(("a",), b"1" * 10)
        cache.put(("a",), b"1" * 4)

        stats = cache.get_stats()
        assert stats.items == 1
        assert stats.memory_bytes == 4

    def test_item_limit_evicts_lru(self, cache):
        """Test the least recently used entry is evicted first"""
        cache.put(("a",), b"a")
        cache.put(("b",), b"b")
        cache.put(("c",), b"c")
        cache.get(("a",))  # a is now most recent
        cache.put(("d",), b"d")

        assert cache.get(("b",)) is None
        assert cache.get(("a",)) == b"a"
        assert cache.get_stats().evictions == 1

    def test_memory_limit(self, cache):
        """Test the byte budget"""
        cache.put(("a",), b"x" * 60)
        cache.put(("b",), b"y" * 60)

        stats = cache.get_stats()
        assert stats.items == 1
        assert stats.memory_bytes == 60
        assert cache.get(("b",)) is not None

    def test_oversized_value_not_stored(self, cache):
        """Test values larger than the whole budget are skipped"""
        cache.put(("a",), b"x" * 101)
        assert cache.get_stats().items == 0

    @pytest.mark.parametrize("max_items, max_memory", [(0, 100), (3, 0), (0, 0)])
    def test_disabled(self, max_items, max_memory):
        """Test either limit at zero disables caching"""
        cache = OperationCache(max_items=max_items, max_memory_bytes=max_memory)
        cache.put(("a",), b"1")

        assert not cache.enabled
        assert cache.get(("a",)) is None

    def test_invalidate_owner(self, cache):
        """Test invalidation by key prefix"""
        cache.put((1, 0, "png"), b"a")
        cache.put((1, 1, "png"), b"b")
        cache.put((2, 0, "png"), b"c")

        assert cache.invalidate(1) == 2
        stats = cache.get_stats()
        assert stats.items == 1
        assert stats.memory_bytes == 1

    def test_clear(self, cache):
        """Test clearing the cache"""
        cache.put(("a",), b"123")
        cache.clear()

        assert cache.get_stats().items == 0
        assert cache.get_stats().memory_bytes == 0

    def test_to_dict(self, cache):
        """Test statistics as a dictionary"""
        cache.put(("a",), b"123")
        data = cache.to_dict()

        assert data["items"] == 1
        assert data["memory_bytes"] == 3
        assert set(data) == {"items", "memory_bytes", "hits", "misses", "evictions"}

    def test_thread_safety(self):
        """Test concurrent writers keep the accounting consistent"""
        cache = OperationCache(max_items=50, max_memory_bytes=10_000)

        def writer(thread_id):
            for i in range(200):
                cache.put((thread_id, i), b"x" * 10)
                cache.get((thread_id, i))

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(writer, range(8)))

        stats = cache.get_stats()
        assert stats.items == 50
        assert stats.memory_bytes == 500

"""
Operation Cache - LRU cache for encoded outputs
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Snapshot of cache counters"""

    items: int
    memory_bytes: int
    hits: int
    misses: int
    evictions: int


class OperationCache:
    """LRU cache bounded by item count and total memory"""

    def __init__(self, max_items: int, max_memory_bytes: int):
        """
        Initialize Operation Cache

        Args:
            max_items: Maximum number of cached results (0 disables the cache)
            max_memory_bytes: Maximum total size of cached results (0 disables the cache)
        """
        self.max_items = max_items
        self.max_memory_bytes = max_memory_bytes
        self.entries: "OrderedDict[Hashable, bytes]" = OrderedDict()
        self.memory_bytes = 0

        # Statistics
        self.hits = 0
        self.misses = 0
        self.evictions = 0

        # Thread safety (RLock allows reentrant locking)
        self.lock = RLock()

        logger.debug(
            f"Operation cache initialized: max_items={max_items}, "
            f"max_memory_bytes={max_memory_bytes}"
        )

    @property
    def enabled(self) -> bool:
        return self.max_items > 0 and self.max_memory_bytes > 0

    def get(self, key: Hashable) -> Optional[bytes]:
        """Get a cached result and mark it as most recently used"""
        with self.lock:
            value = self.entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self.entries.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: Hashable, value: bytes) -> None:
        """
        Store a result, evicting least recently used entries as needed

        Results larger than the whole memory budget are not stored.
        """
        if not self.enabled or len(value) > self.max_memory_bytes:
            return

        with self.lock:
            previous = self.entries.pop(key, None)
            if previous is not None:
                self.memory_bytes -= len(previous)

            self.entries[key] = value
            self.memory_bytes += len(value)

            while len(self.entries) > self.max_items or self.memory_bytes > self.max_memory_bytes:
                _, evicted = self.entries.popitem(last=False)
                self.memory_bytes -= len(evicted)
                self.evictions += 1

    def invalidate(self, owner: Any) -> int:
        """
        Drop every entry whose key starts with owner

        Returns:
            Number of entries removed
        """
        with self.lock:
            stale = [key for key in self.entries if isinstance(key, tuple) and key[0] == owner]
            for key in stale:
                self.memory_bytes -= len(self.entries.pop(key))
            return len(stale)

    def clear(self) -> None:
        """Remove all entries"""
        with self.lock:
            self.entries.clear()
            self.memory_bytes = 0

    def get_stats(self) -> CacheStats:
        """Get cache statistics"""
        with self.lock:
            return CacheStats(
                items=len(self.entries),
                memory_bytes=self.memory_bytes,
                hits=self.hits,
                misses=self.misses,
                evictions=self.evictions,
            )

    def to_dict(self) -> Dict[str, int]:
        stats = self.get_stats()
        return {
            "items": stats.items,
            "memory_bytes": stats.memory_bytes,
            "hits": stats.hits,
            "misses": stats.misses,
            "evictions": stats.evictions,
        }

"""Cache statistics tracking and reporting."""

from typing import Dict, Any
import time


class CacheStatistics:
    """Tracks cache performance counters.

    Not synchronized on its own; :class:`ResponseCache` only mutates it while
    holding its lock.
    """

    def __init__(self):
        self.cache_hits = 0
        self.cache_misses = 0
        self.stores = 0
        self.evictions = 0
        self.expirations = 0
        self.invalidations = 0
        self.start_time = time.time()

    def record_hit(self):
        self.cache_hits += 1

    def record_miss(self):
        self.cache_misses += 1

    def record_store(self):
        self.stores += 1

    def record_eviction(self, count: int = 1):
        """Record capacity eviction(s)."""
        self.evictions += count

    def record_expiration(self, count: int = 1):
        """Record entries removed because their TTL elapsed."""
        self.expirations += count

    def record_invalidation(self):
        self.invalidations += 1

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": round(self.hit_rate, 3),
            "stores": self.stores,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "invalidations": self.invalidations,
            "uptime_seconds": round(self.uptime_seconds, 1),
        }


"""Bounded, time-expiring response cache shared by all worker threads."""

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from .models import CachedResponse
from .statistics import CacheStatistics
from ...constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    LOG_KEY_PREVIEW_CHARS,
)
from ...logging import debug, info, LogRecord, LogEvent


def _preview(key: str) -> str:
    if len(key) <= LOG_KEY_PREVIEW_CHARS:
        return key
    return key[:LOG_KEY_PREVIEW_CHARS] + "..."


class ResponseCache:
    """
    LRU response cache with expire-after-write TTL.

    - At most ``max_size`` entries are held; storing into a full cache evicts
      the least recently used entry (lookups refresh recency).
    - An entry whose age is >= ``ttl_seconds`` is never returned, and is
      dropped the moment a lookup finds it expired.
    - Every public operation holds one ``threading.Lock``, so a stored entry
      is either fully visible to ``lookup`` or not at all.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, CachedResponse] = OrderedDict()
        self._statistics = CacheStatistics()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def lookup(self, key: str, request_id: Optional[str] = None) -> Optional[bytes]:
        """Return the cached body for ``key`` or ``None`` if absent or expired."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._statistics.record_miss()
                return None

            if entry.is_expired(self._ttl_seconds, now):
                del self._entries[key]
                self._statistics.record_expiration()
                self._statistics.record_miss()
                debug(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message="Cache entry expired",
                        request_id=request_id,
                        data={"cache_key": _preview(key)},
                    )
                )
                return None

            self._entries.move_to_end(key)
            entry.update_access(now)
            self._statistics.record_hit()
            return entry.body

    def store(self, key: str, body: bytes, request_id: Optional[str] = None) -> None:
        """Insert or replace ``key``, evicting expired and then LRU entries as needed."""
        with self._lock:
            now = self._clock()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_size:
                self._evict_expired_locked(now)
                while len(self._entries) >= self._max_size:
                    self._evict_lru_locked(request_id)

            self._entries[key] = CachedResponse(
                key=key, body=body, inserted_at=now, last_accessed=now
            )
            self._statistics.record_store()

    def invalidate_all(self) -> None:
        """Drop every entry."""
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self._statistics.record_invalidation()

        info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Cache cleared",
                data={"dropped_entries": dropped},
            )
        )

    def evict_expired(self) -> List[str]:
        """
        Physically remove all expired entries.

        Returns:
            List of removed keys
        """
        with self._lock:
            return self._evict_expired_locked(self._clock())

    def _evict_expired_locked(self, now: float) -> List[str]:
        expired_keys = [
            key
            for key, entry in self._entries.items()
            if entry.is_expired(self._ttl_seconds, now)
        ]
        for key in expired_keys:
            del self._entries[key]
        if expired_keys:
            self._statistics.record_expiration(len(expired_keys))
        return expired_keys

    def _evict_lru_locked(self, request_id: Optional[str] = None) -> None:
        key, entry = self._entries.popitem(last=False)
        self._statistics.record_eviction()
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Evicted LRU cache entry",
                request_id=request_id,
                data={
                    "evicted_key": _preview(key),
                    "size_bytes": entry.size_bytes,
                    "access_count": entry.access_count,
                },
            )
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get comprehensive cache statistics."""
        with self._lock:
            stats = self._statistics.get_stats()
            stats.update(
                {
                    "cache_size": len(self._entries),
                    "max_size": self._max_size,
                    "ttl_seconds": self._ttl_seconds,
                    "size_bytes": sum(e.size_bytes for e in self._entries.values()),
                }
            )
        return stats

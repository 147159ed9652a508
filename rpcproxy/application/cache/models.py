"""Data models for the cache module."""

from dataclasses import dataclass, field


@dataclass
class CachedResponse:
    """Represents a cached upstream response body with metadata.

    ``body`` and ``inserted_at`` never change after creation; only the access
    bookkeeping is updated on hits.
    """

    key: str
    body: bytes
    inserted_at: float
    access_count: int = 0
    last_accessed: float = field(default=0.0)

    @property
    def size_bytes(self) -> int:
        return len(self.body)

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        """An entry whose age has reached the TTL is expired."""
        return now - self.inserted_at >= ttl_seconds

    def update_access(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed = now

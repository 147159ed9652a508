"""Cache module for upstream response caching."""

from .response_cache import ResponseCache
from .models import CachedResponse
from .statistics import CacheStatistics

__all__ = ["ResponseCache", "CachedResponse", "CacheStatistics"]

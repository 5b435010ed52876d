"""Process-wide response cache shared by concurrent dispatches."""

from mirror_gateway.cache.rwlock import ReadWriteLock
from mirror_gateway.cache.store import CacheEntry, ResponseCache, cache_key

__all__ = [
    "CacheEntry",
    "ReadWriteLock",
    "ResponseCache",
    "cache_key",
]

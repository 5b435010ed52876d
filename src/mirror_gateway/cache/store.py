from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from mirror_gateway.cache.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: bytes
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now <= self.expires_at


def cache_key(upstream_base: str, request_path: str) -> str:
    return f"{upstream_base}{request_path}"


class ResponseCache:
    """
    In-memory response bodies keyed by upstream URL, each valid for `ttl_seconds`.

    Expired entries are never swept; they read as absent and are overwritten by the
    next successful fetch. When `max_entries` is set, a write that would exceed it first
    drops expired entries, then the ones closest to expiry.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got: {ttl_seconds}")
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got: {max_entries}")
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def get(self, key: str) -> Tuple[Optional[bytes], bool]:
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None or not entry.is_valid(self._clock()):
                return None, False
            return entry.value, True

    def set(self, key: str, value: bytes) -> None:
        with self._lock.write():
            now = self._clock()
            if self._max_entries is not None and key not in self._entries:
                self._make_room(now)
            self._entries[key] = CacheEntry(value=value, expires_at=now + self._ttl_seconds)

    def _make_room(self, now: float) -> None:
        # Caller holds the write lock.
        if len(self._entries) < self._max_entries:
            return
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            del self._entries[key]
        overflow = len(self._entries) - self._max_entries + 1
        if overflow <= 0:
            return
        by_expiry = sorted(self._entries, key=lambda k: self._entries[k].expires_at)
        for key in by_expiry[:overflow]:
            del self._entries[key]
        logger.debug(
            "Evicted response cache entries. expired=%d evicted=%d", len(expired), overflow
        )

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class DispatchCursor:
    """
    Process-wide index of the upstream to try first.

    Every read-modify-write happens under one lock, so concurrent dispatches see a
    consistent value. The index returns to 0 once `reset_interval_seconds` have passed
    since the previous reset.
    """

    def __init__(
        self,
        *,
        reset_interval_seconds: float = 180.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if reset_interval_seconds < 0:
            raise ValueError(f"reset_interval_seconds must not be negative, got: {reset_interval_seconds}")
        self._reset_interval_seconds = reset_interval_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._index = 0
        self._last_reset = clock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._index

    def start_index(self, upstream_count: int) -> int:
        with self._lock:
            now = self._clock()
            if now - self._last_reset >= self._reset_interval_seconds:
                if self._index:
                    logger.debug("Dispatch cursor reset. previous_index=%d", self._index)
                self._index = 0
                self._last_reset = now
            if upstream_count <= 0:
                return 0
            return self._index % upstream_count

    def advance_past(self, index: int, upstream_count: int) -> None:
        if upstream_count <= 0:
            return
        with self._lock:
            self._index = (index + 1) % upstream_count

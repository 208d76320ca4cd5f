"""
Reusable event buffers shared by calculators.

A BufferPool is an explicit free list owned by whoever creates iterators.
Every iterator built from the same pool draws its calculators' buffers from
it. acquire() and release() take an internal lock, so iterators running on
separate threads may share one pool; a single buffer is only ever touched by
the calculator currently holding it.
"""

import threading
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class BufferPool:
    """Thread-safe free list of event buffers."""

    def __init__(self, max_size: int = 64) -> None:
        if max_size < 0:
            raise ValueError("max_size must not be negative")
        self.max_size = max_size
        self._free: list[list[Any]] = []
        self._lock = threading.Lock()
        self._acquired = 0
        self._reused = 0
        self._released = 0
        self.logger = logger.bind(component="buffer_pool")

    def acquire(self) -> list[Any]:
        """Return an empty buffer, reusing a released one when available."""
        with self._lock:
            self._acquired += 1
            if self._free:
                self._reused += 1
                return self._free.pop()
        return []

    def release(self, buffer: list[Any]) -> None:
        """Clear the buffer and keep it for a later acquire()."""
        buffer.clear()
        with self._lock:
            self._released += 1
            if len(self._free) < self.max_size:
                self._free.append(buffer)
                return
        self.logger.debug("buffer_pool_full", max_size=self.max_size)

    @property
    def size(self) -> int:
        """Number of idle buffers."""
        with self._lock:
            return len(self._free)

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "acquired": self._acquired,
                "reused": self._reused,
                "released": self._released,
                "idle": len(self._free),
            }

"""
Shared lifecycle for calculators driven by a TimeIterator.

Every calculator follows add_span* -> finalize -> process* -> release and
raises UsageError when that order is broken. Span filtering and clamping
against the iterator range live here so both calculators drop exactly the
same spans.
"""

from datetime import datetime
from typing import Any

from core.domain.errors import UsageError
from core.domain.models import quantize, to_unix
from core.services.time_iterator import TimeIterator, logger


class BaseCalculator:
    """Lifecycle and span filtering common to all calculators."""

    def __init__(self, iterator: TimeIterator) -> None:
        self.iterator = iterator
        self._pos = 0
        self._finalized = False
        self._released = False
        self.logger = logger.bind(component=type(self).__name__)
        iterator.register(self)
        self._events: list[Any] = iterator.pool.acquire()

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pending_events(self) -> int:
        """Boundary events not yet consumed by process()."""
        return len(self._events) - self._pos

    def _check_span(self, start: datetime, end: datetime | None) -> tuple[int, int | None] | None:
        """
        Convert a span to Unix seconds, or return None if it must be dropped.

        Dropped: spans ending at or before the iterator start, spans with a
        non-positive length, and spans starting at or after the iterator end.
        """
        if self._released:
            raise UsageError("calculator used after release")
        if self._finalized:
            raise UsageError("cannot add spans after finalize")

        start_ts = to_unix(start)
        end_ts = None if end is None else to_unix(end)

        reason = None
        if end_ts is not None and end_ts <= self.iterator.start:
            reason = "ends_before_range"
        elif end_ts is not None and end_ts <= start_ts:
            reason = "non_positive_duration"
        elif start_ts >= self.iterator.end:
            reason = "starts_after_range"

        if reason is not None:
            self.logger.debug("span_dropped", reason=reason, start=start_ts, end=end_ts)
            return None
        return start_ts, end_ts

    def _start_tick(self, ts: int) -> tuple[int, int]:
        """Quantized start tick clamped to the iterator start, plus the unclamped tick."""
        original = quantize(ts, self.iterator.step)
        if ts < self.iterator.start:
            return self.iterator.start, original
        return original, original

    def _end_tick(self, ts: int) -> int:
        return quantize(ts, self.iterator.step)

    def _sort_events(self) -> None:
        self._events.sort(key=lambda e: e.time)

    def finalize(self) -> "BaseCalculator":
        """Sort buffered events. Must be called once before the walk; repeats are no-ops."""
        if self._released:
            raise UsageError("calculator used after release")
        if self._finalized:
            return self
        self._finalized = True
        self._sort_events()
        self.logger.debug("calculator_finalized", events=len(self._events))
        return self

    def _require_processable(self) -> None:
        if self._released:
            raise UsageError("calculator used after release")
        if not self._finalized:
            raise UsageError("finalize() was never called")

    def release(self) -> None:
        """Return the event buffer to the pool. The calculator is unusable afterwards."""
        if self._released:
            raise UsageError("calculator already released")
        if not self._finalized:
            raise UsageError("cannot release a calculator before finalize")
        self._released = True
        self.iterator.pool.release(self._events)
        self._events = []
        self._pos = 0

    def discard(self) -> None:
        """
        Return the event buffer to the pool at any point of the lifecycle.

        Used by TimeIterator.close() during teardown; a no-op once released.
        """
        if self._released:
            return
        self._released = True
        self.iterator.pool.release(self._events)
        self._events = []
        self._pos = 0

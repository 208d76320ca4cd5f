"""
Binary activity calculator.

Merges spans into a single on/off timeline. Spans for one calculator should
not overlap; back-to-back spans are merged into one.
"""

from datetime import datetime

from core.domain.models import BoundaryEvent, from_unix
from core.services.calculator import BaseCalculator
from core.services.time_iterator import TimeIterator


class ActiveCalculator(BaseCalculator):
    """Reports whether the current tick falls inside any span."""

    _events: list[BoundaryEvent]

    def __init__(self, iterator: TimeIterator) -> None:
        super().__init__(iterator)
        self._current: BoundaryEvent | None = None
        self._changed = False

    def add_span(self, start: datetime, end: datetime | None = None) -> None:
        """Add an active span. `end=None` keeps the span open past the range end."""
        checked = self._check_span(start, end)
        if checked is None:
            return

        start_ts, end_ts = checked
        self._add_event(start_ts, is_start=True)
        if end_ts is not None:
            self._add_event(end_ts, is_start=False)

    def _add_event(self, ts: int, is_start: bool) -> None:
        if is_start:
            tick, original = self._start_tick(ts)
        else:
            tick = original = self._end_tick(ts)

        # A start landing on the previous event's tick cancels it: an end at
        # the same tick merges the two spans, a start at the same tick
        # cancels both starts.
        if is_start and self._events and self._events[-1].time == tick:
            self._events.pop()
            return

        self._events.append(BoundaryEvent(time=tick, is_start=is_start, original_time=original))

    def finalize(self) -> "ActiveCalculator":
        super().finalize()
        return self

    def process(self, tick: int) -> int | None:
        """Consume the next event if it falls on `tick`; return the next event time."""
        self._require_processable()

        if self._pos >= len(self._events):
            self._changed = False
            return None

        event = self._events[self._pos]
        self._changed = event.time == tick
        if not self._changed:
            return event.time

        self._current = event
        self._pos += 1
        if self._pos < len(self._events):
            return self._events[self._pos].time
        return None

    def active(self) -> bool:
        """True if the current tick is within a span."""
        return self._current is not None and self._current.is_start

    def changed(self) -> bool:
        """True if the current tick changed active()."""
        return self._changed

    def active_since(self) -> datetime | None:
        """Original start of the current active span, or None if inactive."""
        if self._current is None or not self._current.is_start:
            return None
        return from_unix(self._current.original_time)

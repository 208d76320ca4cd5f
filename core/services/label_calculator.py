"""
Multi-label activity calculator.

Merges labeled spans into the ordered set of labels active at each tick.
Spans for the same label may overlap: each label carries a reference count
of open spans and stays active until every one of them has ended.
"""

from datetime import datetime

from core.domain.models import LabeledBoundaryEvent, from_unix
from core.services.calculator import BaseCalculator
from core.services.time_iterator import TimeIterator


class LabelCalculator(BaseCalculator):
    """Reports which labels are active at the current tick, in activation order."""

    _events: list[LabeledBoundaryEvent]

    def __init__(self, iterator: TimeIterator) -> None:
        super().__init__(iterator)
        self._open_spans: dict[str, int] = {}
        # label -> original start time; insertion order is activation order
        self._active: dict[str, int] = {}
        self._changed = False
        self._observed = False

    def add_span(self, start: datetime, end: datetime | None, label: str) -> None:
        """Add a span during which `label` is active. `end=None` never ends."""
        checked = self._check_span(start, end)
        if checked is None:
            return

        start_ts, end_ts = checked
        tick, original = self._start_tick(start_ts)
        self._events.append(
            LabeledBoundaryEvent(time=tick, is_start=True, original_time=original, label=label)
        )
        if end_ts is not None:
            tick = self._end_tick(end_ts)
            self._events.append(
                LabeledBoundaryEvent(time=tick, is_start=False, original_time=tick, label=label)
            )

    def finalize(self) -> "LabelCalculator":
        super().finalize()
        return self

    def process(self, tick: int) -> int | None:
        """Consume every event at `tick` and return the next event time, if any."""
        self._require_processable()

        before = list(self._active)
        started: dict[str, int] = {}
        events = self._events
        while self._pos < len(events) and events[self._pos].time <= tick:
            event = events[self._pos]
            self._pos += 1
            if event.is_start:
                self._open_spans[event.label] = self._open_spans.get(event.label, 0) + 1
                started.setdefault(event.label, event.original_time)
                continue

            remaining = self._open_spans.get(event.label, 0) - 1
            if remaining > 0:
                self._open_spans[event.label] = remaining
            else:
                self._open_spans.pop(event.label, None)

        for label in before:
            if label not in self._open_spans:
                del self._active[label]
        for label, original in started.items():
            if label in self._open_spans and label not in self._active:
                self._active[label] = original

        # The first observation is the baseline, not a transition.
        self._changed = self._observed and list(self._active) != before
        self._observed = True

        if self._pos < len(events):
            return events[self._pos].time
        return None

    def active_labels(self) -> list[str]:
        """Copy of the active labels in the order they became active."""
        return list(self._active)

    def is_active(self, label: str) -> bool:
        return label in self._active

    def active_since(self, label: str) -> datetime | None:
        """Original start time of the span that activated `label`, or None."""
        original = self._active.get(label)
        if original is None:
            return None
        return from_unix(original)

    def changed(self) -> bool:
        """True if this tick changed the active label set."""
        return self._changed

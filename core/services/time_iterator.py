"""
Driving iterator that walks synchronized ticks over a fixed time range.

Key behaviors:
- Calculators register themselves and are processed in registration order
- Skip-ahead: each advance jumps straight to the earliest tick any
  calculator reported interest in, instead of stepping one unit at a time
- The first tick is always `start` and the last is always `end`
"""

from collections.abc import Iterator
from datetime import datetime, timedelta
from types import TracebackType
from typing import TYPE_CHECKING, Any, Literal, Protocol

import structlog

from core.domain.errors import UsageError
from core.domain.models import TimeRange, from_unix, quantize, to_unix
from core.services.buffer_pool import BufferPool

if TYPE_CHECKING:
    from core.services.active_calculator import ActiveCalculator
    from core.services.label_calculator import LabelCalculator


def configure_logging(format: Literal["json", "console"] = "json") -> None:
    """Configure structlog; `format` picks the JSON or the human-readable renderer."""
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger(__name__)


class SubIterator(Protocol):
    """
    Capability a calculator implements so a TimeIterator can drive it.

    process() returns the next tick the calculator cares about, or None when
    it has nothing left to report. release() is the strict end of a normal
    lifecycle; discard() gives resources back at any point during teardown.
    """

    @property
    def released(self) -> bool: ...

    def process(self, tick: int) -> int | None: ...

    def release(self) -> None: ...

    def discard(self) -> None: ...


class TimeIterator:
    """
    Walks ticks between start and end (inclusive), quantized to step.

    Ticks are integer Unix seconds. With dense=True every step is visited;
    otherwise only ticks where some calculator's state may change, plus the
    two endpoints.
    """

    def __init__(
        self,
        start: datetime,
        end: datetime,
        step: timedelta,
        *,
        pool: BufferPool | None = None,
        dense: bool = False,
    ) -> None:
        time_range = TimeRange(start=start, end=end, step=step)
        self.time_range = time_range
        self._step = time_range.step_seconds
        self._start = quantize(to_unix(time_range.start), self._step)
        self._end = quantize(to_unix(time_range.end), self._step)
        self.pool = pool if pool is not None else BufferPool()
        self.dense = dense

        self._subs: list[SubIterator] = []
        self._tick: int | None = None
        self._next_wake: int | None = None
        self._exhausted = False
        self._tick_count = 0
        self.logger = logger.bind(
            component="time_iterator", start=self._start, end=self._end, step=self._step
        )

    @property
    def start(self) -> int:
        return self._start

    @property
    def end(self) -> int:
        return self._end

    @property
    def step(self) -> int:
        return self._step

    @property
    def start_time(self) -> datetime:
        return from_unix(self._start)

    @property
    def end_time(self) -> datetime:
        return from_unix(self._end)

    @property
    def step_delta(self) -> timedelta:
        return timedelta(seconds=self._step)

    @property
    def started(self) -> bool:
        return self._tick is not None

    @property
    def sub_iterators(self) -> list[SubIterator]:
        return list(self._subs)

    def register(self, sub: SubIterator) -> None:
        """Add a sub-iterator. Only allowed before the walk begins."""
        if self.started:
            raise UsageError("cannot register sub-iterators after the walk has started")
        self._subs.append(sub)
        self.logger.debug("calculator_registered", calculator=type(sub).__name__)

    def active_calculator(self) -> "ActiveCalculator":
        """Create a binary calculator bound to this iterator."""
        from core.services.active_calculator import ActiveCalculator

        return ActiveCalculator(self)

    def label_calculator(self) -> "LabelCalculator":
        """Create a multi-label calculator bound to this iterator."""
        from core.services.label_calculator import LabelCalculator

        return LabelCalculator(self)

    def advance(self) -> bool:
        """
        Move to the next relevant tick.

        Returns False once `end` has been emitted.
        """
        if self._exhausted:
            return False

        if self._tick is None:
            tick = self._start
        elif self._tick >= self._end:
            self._exhausted = True
            self.logger.info("walk_completed", ticks=self._tick_count, subs=len(self._subs))
            return False
        else:
            tick = self._end
            if self._next_wake is not None:
                tick = min(tick, self._next_wake)
            if self.dense:
                tick = min(tick, self._tick + self._step)

        self._tick = tick
        next_wake: int | None = None
        for sub in self._subs:
            wake = sub.process(tick)
            # Wakes before the current tick can never be reached.
            if wake is None or wake < tick:
                continue
            if next_wake is None or wake < next_wake:
                next_wake = wake

        self._next_wake = next_wake
        self._tick_count += 1
        return True

    def current_tick(self) -> int:
        """The current tick as Unix seconds."""
        if self._tick is None:
            raise UsageError("advance() has not been called")
        return self._tick

    def current_time(self) -> datetime:
        return from_unix(self.current_tick())

    def ticks(self) -> Iterator[int]:
        """Drive the walk, yielding each tick."""
        while self.advance():
            yield self.current_tick()

    def close(self) -> None:
        """Hand back the buffers of every sub-iterator not yet released, finalized or not."""
        for sub in self._subs:
            if not sub.released:
                sub.discard()

    def __enter__(self) -> "TimeIterator":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

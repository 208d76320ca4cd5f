"""
Span producers feeding calculators.

Key patterns:
- Protocol-based sources so rule engines or stores can plug in
- Result type for expected failures (missing or malformed input files)
- Pydantic validation at the boundary, before spans reach a calculator
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from core.domain.models import Span
from core.services.active_calculator import ActiveCalculator
from core.services.label_calculator import LabelCalculator
from core.services.time_iterator import logger

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)

_span_list = TypeAdapter(list[Span])


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Used where failure is ordinary input trouble, not caller misuse.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class SpanSource(Protocol):
    """Anything that can hand over a batch of resolved spans."""

    source_name: str

    def load_spans(self) -> Result[list[Span], Exception]: ...


class StaticSpanSource:
    """In-memory spans, e.g. already expanded by a rules engine."""

    def __init__(self, source_name: str, spans: Iterable[Span]) -> None:
        self.source_name = source_name
        self._spans = list(spans)

    def load_spans(self) -> Result[list[Span], Exception]:
        return Result.ok(list(self._spans))


class JsonFileSpanSource:
    """
    Spans read from a JSON file.

    The file holds an array of objects with `start`, optional `end` and
    optional `label`, timestamps in ISO 8601.
    """

    def __init__(self, source_name: str, path: str | Path) -> None:
        self.source_name = source_name
        self.path = Path(path)
        self.logger = logger.bind(source=source_name, path=str(self.path))

    def load_spans(self) -> Result[list[Span], Exception]:
        try:
            spans = _span_list.validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as e:
            self.logger.warning("span_source_load_failed", error=str(e))
            return Result.err(e)

        self.logger.info("spans_loaded", count=len(spans))
        return Result.ok(spans)


def feed_spans(calculator: ActiveCalculator | LabelCalculator, spans: Iterable[Span]) -> int:
    """
    Add spans to a calculator and return how many were handed over.

    Labels are ignored by binary calculators and required by label calculators.
    """
    count = 0
    for span in spans:
        if isinstance(calculator, LabelCalculator):
            if span.label is None:
                raise ValueError(f"span starting {span.start.isoformat()} has no label")
            calculator.add_span(span.start, span.end, span.label)
        else:
            calculator.add_span(span.start, span.end)
        count += 1
    return count

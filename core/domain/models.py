"""
Domain models for span merging and tick reporting.

Spans and ranges are validated with Pydantic at the boundary. Boundary events
are plain dataclasses since calculators create and sort a lot of them.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_unix(value: datetime) -> int:
    """Whole Unix seconds for a datetime (sub-second precision is truncated)."""
    return int(ensure_utc(value).timestamp() // 1)


def from_unix(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, UTC)


def quantize(ts: int, step: int) -> int:
    """Truncate a Unix timestamp down to a multiple of step."""
    return ts - ts % step


class TimeRange(BaseModel):
    """Inclusive range walked by a TimeIterator."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    step: timedelta = Field(description="Quantization granularity, whole seconds")

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("step")
    @classmethod
    def validate_step(cls, v: timedelta) -> timedelta:
        if v < timedelta(seconds=1):
            raise ValueError("step must be at least one second")
        if v.microseconds:
            raise ValueError("step must be a whole number of seconds")
        return v

    @model_validator(mode="after")
    def end_not_before_start(self) -> "TimeRange":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @property
    def step_seconds(self) -> int:
        return int(self.step.total_seconds())


class Span(BaseModel):
    """A half-open activity interval. A missing end means the span never ends."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime | None = Field(default=None, description="None for an unbounded span")
    label: str | None = Field(default=None, description="Label for multi-label calculators")

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return None if v is None else ensure_utc(v)


@dataclass(slots=True)
class BoundaryEvent:
    """One endpoint of a span, quantized to the iterator step."""

    time: int
    is_start: bool
    # Quantized time before clamping to the iterator start.
    original_time: int


@dataclass(slots=True)
class LabeledBoundaryEvent(BoundaryEvent):
    label: str


class TickSnapshot(BaseModel):
    """Observed calculator state at a single tick."""

    model_config = ConfigDict(frozen=True)

    tick: datetime
    flags: dict[str, bool] = Field(default_factory=dict)
    labels: dict[str, list[str]] = Field(default_factory=dict)
    changed: list[str] = Field(default_factory=list, description="Calculators that changed")


class TimelineReport(BaseModel):
    """All snapshots produced by one walk of a TimeIterator."""

    start: datetime
    end: datetime
    step_seconds: int = Field(gt=0)
    snapshots: list[TickSnapshot]
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def ticks(self) -> list[datetime]:
        return [s.tick for s in self.snapshots]

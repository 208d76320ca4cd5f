"""
On-call specific models on top of the core timeline engine.

Shifts are spans whose label is a user id; a UserCalculator answers "who is
on call at this tick". Rotation and schedule rules are expanded elsewhere;
this adapter only sees concrete shifts.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from core.domain.models import ensure_utc
from core.services.buffer_pool import BufferPool
from core.services.label_calculator import LabelCalculator
from core.services.time_iterator import TimeIterator


class Shift(BaseModel):
    """A concrete on-call shift for one user."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    start: datetime
    end: datetime | None = Field(default=None, description="None while the shift is ongoing")

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return None if v is None else ensure_utc(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> timedelta | None:
        """Shift length, None for an ongoing shift."""
        if self.end is None:
            return None
        return self.end - self.start


class OnCallSnapshot(BaseModel):
    """Users on call at one tick."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    user_ids: list[str]
    changed: bool


class UserCalculator(LabelCalculator):
    """LabelCalculator keyed by user id."""

    def add_shift(self, shift: Shift) -> None:
        self.add_span(shift.start, shift.end, shift.user_id)

    def active_users(self) -> list[str]:
        """User ids on call, in the order they came on shift."""
        return self.active_labels()


def compute_on_call(
    shifts: Iterable[Shift],
    start: datetime,
    end: datetime,
    step: timedelta = timedelta(minutes=1),
    pool: BufferPool | None = None,
) -> list[OnCallSnapshot]:
    """Walk [start, end] and report who is on call at every tick where it may change."""
    with TimeIterator(start, end, step, pool=pool) as iterator:
        calc = UserCalculator(iterator)
        for shift in shifts:
            calc.add_shift(shift)
        calc.finalize()

        return [
            OnCallSnapshot(
                time=iterator.current_time(),
                user_ids=calc.active_users(),
                changed=calc.changed(),
            )
            for _ in iterator.ticks()
        ]

"""
Tests for the binary ActiveCalculator.

Testing philosophy:
- Walk a real TimeIterator rather than poking internals
- Property-based testing against a brute-force membership check
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.domain.errors import UsageError
from core.services.active_calculator import ActiveCalculator
from core.services.time_iterator import TimeIterator

START = datetime(2000, 1, 2, 3, 4, tzinfo=UTC)
END = datetime(2000, 1, 2, 3, 8, tzinfo=UTC)
MINUTE = timedelta(minutes=1)


def at(minute: int, second: int = 0) -> datetime:
    return datetime(2000, 1, 2, 3, minute, second, tzinfo=UTC)


Row = tuple[datetime, bool, bool]


def walk(
    setup: Callable[[ActiveCalculator], None] | None = None,
    start: datetime = START,
    end: datetime = END,
) -> list[Row]:
    iterator = TimeIterator(start, end, MINUTE)
    calc = iterator.active_calculator()
    if setup is not None:
        setup(calc)
    calc.finalize()

    rows = [(iterator.current_time(), calc.active(), calc.changed()) for _ in iterator.ticks()]
    iterator.close()
    return rows


class TestActiveCalculator:
    def test_empty(self) -> None:
        assert walk() == [(START, False, False), (END, False, False)]

    def test_single_span(self) -> None:
        rows = walk(lambda c: c.add_span(at(5), at(7)))

        assert rows == [
            (at(4), False, False),
            (at(5), True, True),
            (at(7), False, True),
            (at(8), False, False),
        ]

    def test_start_before_range_is_clamped(self) -> None:
        iterator = TimeIterator(START, END, MINUTE)
        calc = iterator.active_calculator()
        calc.add_span(at(3), at(7))
        calc.finalize()

        assert iterator.advance()
        assert calc.active()
        assert calc.active_since() == at(3)
        assert iterator.current_time() == START

    def test_active_since_is_quantized_original_start(self) -> None:
        iterator = TimeIterator(START, END, MINUTE)
        calc = iterator.active_calculator()
        calc.add_span(at(5, 42), at(7))
        calc.finalize()

        seen = {iterator.current_time(): calc.active_since() for _ in iterator.ticks()}

        assert seen[at(5)] == at(5)
        assert seen[at(7)] is None

    def test_unbounded_span_stays_active_through_end(self) -> None:
        rows = walk(lambda c: c.add_span(at(6), None))

        assert rows == [(at(4), False, False), (at(6), True, True), (at(8), True, False)]

    @pytest.mark.parametrize(
        "span",
        [
            (at(1), at(4)),  # ends at range start
            (at(6), at(6)),  # zero length
            (at(7), at(6)),  # negative length
            (at(8), at(9)),  # starts at range end
            (at(9), None),  # unbounded, starts after range end
        ],
    )
    def test_out_of_range_spans_are_dropped(self, span: tuple[datetime, datetime | None]) -> None:
        assert walk(lambda c: c.add_span(*span)) == [(START, False, False), (END, False, False)]

    def test_duplicate_start_cancels_unmatched_start(self) -> None:
        def setup(calc: ActiveCalculator) -> None:
            calc.add_span(at(5), None)
            calc.add_span(at(5, 30), at(7))

        rows = walk(setup)

        assert not any(active for _, active, _ in rows)

    def test_span_shorter_than_step_repeats_its_tick(self) -> None:
        rows = walk(lambda c: c.add_span(at(5, 10), at(5, 50)))

        assert rows == [
            (at(4), False, False),
            (at(5), True, True),
            (at(5), False, True),
            (at(8), False, False),
        ]

    def test_back_to_back_spans_are_merged(self) -> None:
        iterator = TimeIterator(START, END, MINUTE)
        calc = iterator.active_calculator()
        calc.add_span(at(5), at(6))
        calc.add_span(at(6), at(7))
        calc.finalize()

        assert calc.pending_events == 2
        ticks = {
            iterator.current_time(): (calc.active(), calc.active_since())
            for _ in iterator.ticks()
        }
        assert ticks == {
            at(4): (False, None),
            at(5): (True, at(5)),
            at(7): (False, None),
            at(8): (False, None),
        }

    def test_finalize_twice_does_not_duplicate_events(self) -> None:
        start = datetime(2000, 1, 2, 3, 0, tzinfo=UTC)
        end = datetime(2000, 1, 2, 3, 10, tzinfo=UTC)

        def setup(calc: ActiveCalculator) -> None:
            calc.add_span(at(6), at(7))
            calc.add_span(at(2), at(3))
            calc.finalize()
            calc.finalize()
            assert calc.pending_events == 4

        rows = walk(setup, start=start, end=end)

        assert [(t.minute, active) for t, active, _ in rows] == [
            (0, False),
            (2, True),
            (3, False),
            (6, True),
            (7, False),
            (10, False),
        ]

    def test_process_returns_pending_tick_without_consuming(self) -> None:
        iterator = TimeIterator(START, END, MINUTE)
        calc = iterator.active_calculator()
        calc.add_span(at(5), at(7))
        calc.finalize()
        five = int(at(5).timestamp())

        assert calc.process(int(START.timestamp())) == five
        assert calc.process(int(START.timestamp())) == five
        assert not calc.changed()
        assert calc.process(five) == int(at(7).timestamp())
        assert calc.changed() and calc.active()


class TestActiveCalculatorMisuse:
    @pytest.fixture
    def calc(self) -> ActiveCalculator:
        return TimeIterator(START, END, MINUTE).active_calculator()

    def test_add_span_after_finalize(self, calc: ActiveCalculator) -> None:
        calc.finalize()
        with pytest.raises(UsageError, match="after finalize"):
            calc.add_span(at(5), at(6))

    def test_advance_before_finalize(self, calc: ActiveCalculator) -> None:
        with pytest.raises(UsageError, match="finalize"):
            calc.iterator.advance()

    def test_release_before_finalize(self, calc: ActiveCalculator) -> None:
        with pytest.raises(UsageError):
            calc.release()

    def test_use_after_release(self, calc: ActiveCalculator) -> None:
        calc.finalize()
        calc.release()

        with pytest.raises(UsageError, match="after release"):
            calc.process(0)
        with pytest.raises(UsageError, match="already released"):
            calc.release()

    def test_misuse_error_is_a_runtime_error(self, calc: ActiveCalculator) -> None:
        with pytest.raises(RuntimeError):
            calc.process(0)


@st.composite
def disjoint_spans(draw: st.DrawFn) -> list[tuple[int, int]]:
    """Non-touching minute offsets, possibly starting before the range."""
    cursor = -4
    spans = []
    for gap, length in draw(
        st.lists(st.tuples(st.integers(1, 4), st.integers(1, 5)), max_size=6)
    ):
        start = cursor + gap
        spans.append((start, start + length))
        cursor = start + length
    return spans


class TestActiveCalculatorProperties:
    @given(spans=disjoint_spans())
    def test_dense_walk_matches_brute_force(self, spans: list[tuple[int, int]]) -> None:
        base = datetime(2000, 1, 1, tzinfo=UTC)
        iterator = TimeIterator(base, base + 20 * MINUTE, MINUTE, dense=True)
        calc = iterator.active_calculator()
        for s, e in spans:
            calc.add_span(base + s * MINUTE, base + e * MINUTE)
        calc.finalize()

        for tick in iterator.ticks():
            minute = (tick - iterator.start) // 60
            expected = any(s < 20 and max(s, 0) <= minute < e for s, e in spans)
            assert calc.active() == expected, (minute, spans)

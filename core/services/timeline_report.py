"""
Drive a TimeIterator to completion and report what each calculator saw.

This is the consumer side of the engine: it turns a walk into a
TimelineReport and renders it as a rich table for the command line.

Run with: python -m core.services.timeline_report spans.json --start ... --end ...
"""

import argparse
import logging
import sys
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta

from rich.console import Console
from rich.table import Table

from core.config import get_config
from core.domain.models import TickSnapshot, TimelineReport
from core.services.active_calculator import ActiveCalculator
from core.services.buffer_pool import BufferPool
from core.services.label_calculator import LabelCalculator
from core.services.span_sources import JsonFileSpanSource, feed_spans
from core.services.time_iterator import TimeIterator, configure_logging, logger


def collect_timeline(
    iterator: TimeIterator,
    binary: Mapping[str, ActiveCalculator] | None = None,
    labeled: Mapping[str, LabelCalculator] | None = None,
) -> TimelineReport:
    """
    Finalize the given calculators and walk the iterator, one snapshot per tick.

    Calculators are not released; that stays with the caller.
    """
    binary = binary or {}
    labeled = labeled or {}
    for calc in [*binary.values(), *labeled.values()]:
        calc.finalize()

    snapshots: list[TickSnapshot] = []
    for _ in iterator.ticks():
        changed = [name for name, calc in binary.items() if calc.changed()]
        changed += [name for name, calc in labeled.items() if calc.changed()]
        snapshots.append(
            TickSnapshot(
                tick=iterator.current_time(),
                flags={name: calc.active() for name, calc in binary.items()},
                labels={name: calc.active_labels() for name, calc in labeled.items()},
                changed=changed,
            )
        )

    logger.info(
        "timeline_collected",
        ticks=len(snapshots),
        binary_calculators=len(binary),
        label_calculators=len(labeled),
    )
    return TimelineReport(
        start=iterator.start_time,
        end=iterator.end_time,
        step_seconds=iterator.step,
        snapshots=snapshots,
    )


def render_timeline(report: TimelineReport) -> Table:
    """Build a rich table with one row per tick and one column per calculator."""
    table = Table(title=f"Timeline {report.start.isoformat()} → {report.end.isoformat()}")
    table.add_column("Tick", style="cyan")

    flag_names = list(report.snapshots[0].flags) if report.snapshots else []
    label_names = list(report.snapshots[0].labels) if report.snapshots else []
    for name in [*flag_names, *label_names]:
        table.add_column(name)

    for snapshot in report.snapshots:
        row = [snapshot.tick.strftime("%Y-%m-%d %H:%M:%S")]
        for name in flag_names:
            cell = "on" if snapshot.flags[name] else "off"
            row.append(f"[bold]{cell}[/bold]" if name in snapshot.changed else cell)
        for name in label_names:
            cell = ", ".join(snapshot.labels[name]) or "-"
            row.append(f"[bold]{cell}[/bold]" if name in snapshot.changed else cell)
        table.add_row(*row)

    return table


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print activity per tick for a file of spans.")
    parser.add_argument("spans", help="JSON file with an array of spans")
    parser.add_argument("--start", required=True, type=datetime.fromisoformat)
    parser.add_argument("--end", required=True, type=datetime.fromisoformat)
    parser.add_argument("--step-seconds", type=int, default=None)
    parser.add_argument("--dense", action="store_true", help="Sample every step")
    return parser


def main(argv: Sequence[str] | None = None, console: Console | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    logging.basicConfig(level=config.logging.level, format="%(message)s")
    configure_logging(config.logging.format)
    console = console or Console()

    source = JsonFileSpanSource("cli", args.spans)
    result = source.load_spans()
    if result.is_err():
        console.print(f"[red]Could not load spans:[/red] {result.unwrap_err()}")
        return 1
    spans = result.unwrap()

    step = timedelta(seconds=args.step_seconds or config.timeline.default_step_seconds)
    pool = BufferPool(max_size=config.timeline.pool_max_size)
    with TimeIterator(
        args.start, args.end, step, pool=pool, dense=args.dense or config.timeline.dense_walk
    ) as iterator:
        flag = iterator.active_calculator()
        labels = iterator.label_calculator()
        feed_spans(flag, [s for s in spans if s.label is None])
        feed_spans(labels, [s for s in spans if s.label is not None])
        report = collect_timeline(iterator, binary={"unlabeled": flag}, labeled={"labels": labels})

    console.print(render_timeline(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())

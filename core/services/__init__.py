"""
Core services for the timeline engine.

This package contains the driving iterator, the calculators it drives, the
buffer pool backing them, span sources and timeline reporting.
"""

from .active_calculator import ActiveCalculator
from .buffer_pool import BufferPool
from .label_calculator import LabelCalculator
from .span_sources import (
    JsonFileSpanSource,
    Result,
    SpanSource,
    StaticSpanSource,
    feed_spans,
)
from .time_iterator import SubIterator, TimeIterator

__all__ = [
    "ActiveCalculator",
    "BufferPool",
    "LabelCalculator",
    "SubIterator",
    "TimeIterator",
    "Result",
    "SpanSource",
    "StaticSpanSource",
    "JsonFileSpanSource",
    "feed_spans",
]

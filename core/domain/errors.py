"""
Error types raised by the timeline engine.

Only caller misuse is raised. Bad span data is dropped, never raised.
"""


class TimelineError(Exception):
    """Base class for timeline engine errors."""


class UsageError(TimelineError, RuntimeError):
    """
    A calculator or iterator was used out of order.

    The legal sequence is: add_span* -> finalize -> process* -> release.
    """

"""
Recovery window evaluation.

A recovery window bounds which soft-deleted records may be restored. It is
either an explicit ``(start, end)`` range, a duration anchored on the
record's own deletion timestamp, or absent (restore always allowed).
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from .timestamps import INFINITY

WindowRange = Tuple[datetime, datetime]


def get_recovery_window_range(
    deleted_at: datetime,
    recovery_window: Optional[timedelta] = None,
    recovery_window_range: Optional[WindowRange] = None,
) -> Optional[WindowRange]:
    """
    Compute the range a deletion timestamp must fall in to be restorable.

    Args:
        deleted_at: The record's lifecycle column value
        recovery_window: Duration applied on both sides of ``deleted_at``
        recovery_window_range: Explicit range, takes precedence

    Returns:
        Inclusive ``(start, end)`` tuple, or None when unbounded
    """
    if recovery_window_range:
        return recovery_window_range
    if recovery_window is None:
        return None
    if deleted_at == INFINITY:
        # Active records carry no deletion time to anchor on
        return None
    return (deleted_at - recovery_window, deleted_at + recovery_window)


def within_recovery_window(
    deleted_at: datetime, window_range: Optional[WindowRange]
) -> bool:
    """Return True when ``deleted_at`` falls inside ``window_range``."""
    if not window_range:
        return True
    start, end = window_range
    return start <= deleted_at <= end

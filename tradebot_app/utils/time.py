"""
Time utilities.

Deadlines are measured on the monotonic clock so wall-clock adjustments
cannot stretch or shrink a watch timeout; timestamps that leave the
process (audit facts, broker query filters) are timezone-aware UTC.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """
    Format a timestamp for audit records and logging.

    Args:
        ts: Timestamp to format; naive values are assumed UTC

    Returns:
        ISO8601 formatted string
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def lookback_start(minutes: float, now: Optional[datetime] = None) -> datetime:
    """Start of a rolling lookback window ending at ``now``."""
    if now is None:
        now = utc_now()
    return now - timedelta(minutes=minutes)


def deadline_after(seconds: float, clock: Callable[[], float] = time.monotonic) -> float:
    """Absolute monotonic deadline ``seconds`` from now."""
    return clock() + seconds


def has_expired(deadline: float, clock: Callable[[], float] = time.monotonic) -> bool:
    """True once the monotonic clock has passed ``deadline``."""
    return clock() > deadline

"""
Nanosecond timestamp helpers.

Samples and timeline events carry integer nanoseconds since the epoch so
packets and events can be sequenced below millisecond resolution.
"""

import time
from datetime import datetime, timezone

NS_PER_US = 1_000
NS_PER_MS = 1_000_000
NS_PER_SECOND = 1_000_000_000


def now_ns() -> int:
    """Current wall-clock time in nanoseconds."""
    return time.time_ns()


def ms_to_ns(ms: float) -> int:
    return int(ms * NS_PER_MS)


def ns_to_ms(ns: int) -> float:
    return ns / NS_PER_MS


def ns_to_datetime(ns: int) -> datetime:
    """Convert to an aware UTC datetime (sub-microsecond precision is lost)."""
    seconds, remainder = divmod(ns, NS_PER_SECOND)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=remainder // NS_PER_US)


def datetime_to_ns(dt: datetime) -> int:
    """Convert a datetime to nanoseconds. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    whole_seconds = int(dt.replace(microsecond=0).timestamp())
    return whole_seconds * NS_PER_SECOND + dt.microsecond * NS_PER_US


def format_ns(ns: int, include_date: bool = False, include_nanos: bool = True) -> str:
    """
    Format a nanosecond timestamp (UTC).

    Examples:
        >>> format_ns(1_700_000_000_123_456_789)
        '22:13:20.123 456μs 789ns'
        >>> format_ns(1_700_000_000_123_456_789, include_date=True, include_nanos=False)
        '2023-11-14 22:13:20.123'
    """
    dt = ns_to_datetime(ns)
    sub_ms = ns % NS_PER_MS
    micros, nanos = divmod(sub_ms, NS_PER_US)

    result = dt.strftime("%Y-%m-%d " if include_date else "")
    result += f"{dt:%H:%M:%S}.{dt.microsecond // 1000:03d}"
    if include_nanos:
        result += f" {micros:03d}μs {nanos:03d}ns"
    return result


def format_duration_ns(delta_ns: int) -> str:
    """Human-readable duration: ns, μs, ms or s depending on magnitude."""
    if delta_ns < NS_PER_US:
        return f"{delta_ns}ns"
    if delta_ns < NS_PER_MS:
        return f"{delta_ns / NS_PER_US:.2f}μs"
    if delta_ns < NS_PER_SECOND:
        return f"{delta_ns / NS_PER_MS:.3f}ms"
    return f"{delta_ns / NS_PER_SECOND:.3f}s"

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical). All token and lockout math uses this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime read back from the database to UTC-naive.

    Some backends return aware values for DateTime(timezone=True) columns;
    comparisons against utcnow() need both sides naive.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_in_future(dt: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if dt is None:
        return False
    return as_naive_utc(dt) > (now or utcnow())


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")

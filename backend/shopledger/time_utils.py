from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def _to_utc_naive(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_period_bounds(
    period: str,
    tz_name: str = "UTC",
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """
    Resolve a reporting period to a UTC-naive [start, end] window.

    Boundaries are taken in the shop's local timezone:
    - daily: local midnight today
    - monthly: local midnight on the first of this month
    - all-time: the Unix epoch
    The window always ends at the last microsecond of the local day.

    `now` may be naive (treated as UTC) or aware.
    """
    tz = ZoneInfo(tz_name)
    if now is None:
        local_now = datetime.now(tz)
    elif now.tzinfo is None:
        local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)
    else:
        local_now = now.astimezone(tz)

    today = local_now.date()
    end = datetime.combine(today, time.max, tzinfo=tz)

    if period == "daily":
        start = datetime.combine(today, time.min, tzinfo=tz)
    elif period == "monthly":
        start = datetime.combine(today.replace(day=1), time.min, tzinfo=tz)
    elif period == "all-time":
        start = datetime(1970, 1, 1, tzinfo=timezone.utc)
    else:
        raise ValueError(f"Unknown period: {period}")

    return _to_utc_naive(start), _to_utc_naive(end)

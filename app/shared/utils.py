"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime, time, timezone, tzinfo


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_local_day(dt: datetime, tz: tzinfo) -> datetime:
    """Return local midnight of the calendar day that contains ``dt`` in ``tz``."""
    local = ensure_utc(dt).astimezone(tz)
    return datetime.combine(local.date(), time.min, tzinfo=tz)

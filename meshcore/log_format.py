"""Timestamp formatting used by log output."""

from __future__ import annotations

from datetime import datetime, timezone

__all__ = ["format_date"]


def format_date(t: datetime) -> str:
    """Format ``t`` in UTC as ``YYYY-MM-DDTHH:MM:SS.ffffffZ``.

    Naive datetimes are taken to be in UTC.
    """
    if t.tzinfo is not None:
        t = t.astimezone(timezone.utc)
    return (
        f"{t.year % 10000:04d}-{t.month:02d}-{t.day:02d}"
        f"T{t.hour:02d}:{t.minute:02d}:{t.second:02d}.{t.microsecond:06d}Z"
    )
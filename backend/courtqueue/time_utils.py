"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def coerce_utc(value: datetime | None) -> datetime | None:
    """Return a UTC-normalized datetime, assuming naive values are already UTC.

    SQLite drops timezone information on the way back out of the database,
    so every timestamp read from a row goes through this before arithmetic.
    """

    if value is None:
        return None

    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)


def minutes_between(later: datetime, earlier: datetime) -> float:
    """Return the minutes elapsed from ``earlier`` to ``later``, never negative."""

    delta = coerce_utc(later) - coerce_utc(earlier)
    return max(0.0, delta.total_seconds() / 60.0)

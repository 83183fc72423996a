"""Time utility helpers for consistent timezone and date handling."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional


def utc_now() -> datetime:
    """Return the current time in UTC as an aware datetime."""

    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Return the current local time as an aware datetime."""

    return utc_now().astimezone()


def local_today() -> date:
    """Return today's date in the local timezone."""

    return local_now().date()


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` string, returning None for blanks or bad input."""

    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def days_back(start: date, limit: int) -> Iterator[date]:
    """Yield ``start`` and the ``limit - 1`` days before it, newest first."""

    for offset in range(limit):
        yield start - timedelta(days=offset)


def days_ahead(start: date, count: int) -> Iterator[date]:
    """Yield the ``count`` calendar days after ``start``."""

    for offset in range(1, count + 1):
        yield start + timedelta(days=offset)

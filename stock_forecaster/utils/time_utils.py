"""
Time and date utilities.

All timestamps handled by the package are timezone-aware UTC datetimes.
The SQLite store persists them as fixed-width ISO-8601 strings
(``YYYY-MM-DDTHH:MM:SS.ffffffZ``) so that lexicographic comparison in SQL
matches chronological order.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

DB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """Serialize a datetime into the store's fixed-width UTC text format."""
    return ensure_utc(value).strftime(DB_TIMESTAMP_FORMAT)


def from_db_timestamp(value: str) -> datetime:
    """Parse a timestamp written by ``to_db_timestamp``.

    Falls back to ``datetime.fromisoformat`` for rows written by other tools.
    """
    try:
        parsed = datetime.strptime(value, DB_TIMESTAMP_FORMAT)
    except ValueError:
        parsed = datetime.fromisoformat(value)
    return ensure_utc(parsed)


def window_start(now: datetime, days_back: int) -> datetime:
    """Return the inclusive lower bound of a ``days_back`` lookback window."""
    return ensure_utc(now) - timedelta(days=days_back)


def utc_date(value: datetime) -> date:
    """Return the UTC calendar date of ``value``."""
    return ensure_utc(value).date()

"""Datetime helpers: UTC now, storage format, wire format."""

from __future__ import annotations

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for storage."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def format_timestamp(dt: datetime) -> str:
    """Format datetime as the client-facing timestamp.

    Output: YYYY-MM-DDTHH:MM:SS.mmmZ (UTC, millisecond precision), the format
    mobile clients compare sync times with.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"

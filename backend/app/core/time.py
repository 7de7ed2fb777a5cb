from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return an aware UTC timestamp.

    Use this instead of datetime.utcnow() to avoid tz-naive datetimes.
    """

    return datetime.now(timezone.utc)


def as_aware_utc(dt: datetime) -> datetime:
    # SQLite hands back tz-naive datetimes; normalize to aware UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_unix(dt: datetime) -> int:
    return int(as_aware_utc(dt).timestamp())


def from_unix(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)

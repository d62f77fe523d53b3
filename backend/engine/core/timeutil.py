from __future__ import annotations

from datetime import datetime, timedelta, timezone


UTC = timezone.utc

PERIODS: dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive values (SQLite round-trips drop tzinfo)."""
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def period_length(period: str) -> timedelta:
    try:
        return PERIODS[period]
    except KeyError as e:
        raise ValueError(f"unknown period {period!r}; expected one of {sorted(PERIODS)}") from e

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive values as UTC (the storage convention)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

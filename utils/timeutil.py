from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat_utc(dt):
    if dt is None:
        return None
    return to_utc_naive(dt).isoformat(timespec="seconds") + "Z"


def resolve_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def combine_local(day: str, clock: str, zone: ZoneInfo) -> datetime:
    """Combine "YYYY-MM-DD" and "HH:MM" in `zone` into a naive UTC datetime."""
    d = date.fromisoformat(day)
    t = time.fromisoformat(clock)
    return to_utc_naive(datetime.combine(d, t, tzinfo=zone))


def add_minutes(dt: datetime, minutes: int) -> datetime:
    return dt + timedelta(minutes=minutes)

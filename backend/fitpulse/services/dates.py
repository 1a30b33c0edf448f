"""Timezone helpers: everything is stored in UTC, calendar logic runs in the user's local zone."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fitpulse.config import settings


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (as returned by some drivers) and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_tz(name: str | None) -> ZoneInfo:
    """ZoneInfo for a user's timezone name; falls back to settings.default_timezone."""
    try:
        return ZoneInfo(name or settings.default_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(settings.default_timezone)


def local_date(dt: datetime, tz: ZoneInfo) -> date:
    return as_utc(dt).astimezone(tz).date()


def local_day_start(d: date, tz: ZoneInfo) -> datetime:
    """UTC instant of local midnight starting day d."""
    return datetime.combine(d, time.min, tzinfo=tz).astimezone(timezone.utc)


def local_day_end(d: date, tz: ZoneInfo) -> datetime:
    """UTC instant of local midnight ending day d (exclusive bound)."""
    return local_day_start(d + timedelta(days=1), tz)

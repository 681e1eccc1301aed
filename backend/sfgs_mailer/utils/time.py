"""Time helpers - UTC storage, school-local calendar days"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from sfgs_mailer.core.config import settings


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware in UTC (naive input is assumed to be UTC).

    SQLite drops tzinfo on the way back out, so every value read from the
    database passes through here before arithmetic.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def school_timezone() -> ZoneInfo:
    return ZoneInfo(settings.SCHOOL_TIMEZONE)


def local_date(now: datetime) -> date:
    """Calendar date of `now` in the school time zone"""
    return ensure_aware_utc(now).astimezone(school_timezone()).date()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a school-local calendar day"""
    tz = school_timezone()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """UTC [start, end) of the school-local calendar day containing `now`"""
    return day_bounds(local_date(now))

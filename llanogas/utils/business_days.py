"""Business day calculator with Colombian public holidays.

Regulatory response deadlines are counted in business days (Mon-Fri,
excluding Colombian holidays) in Bogotá local time.
"""

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

import holidays

BOGOTA_TZ = ZoneInfo("America/Bogota")


@lru_cache(maxsize=10)
def get_colombia_holidays(year: int) -> set[date]:
    """Cache holiday sets per year for performance."""
    return set(holidays.Colombia(years=year).keys())


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_local_day(dt: datetime) -> datetime:
    """Midnight of ``dt``'s Bogotá calendar day, as UTC."""
    local = as_utc(dt).astimezone(BOGOTA_TZ)
    return local.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(timezone.utc)


def is_business_day(day: date | datetime) -> bool:
    """Check if date is a business day (Mon-Fri, not a holiday)."""
    if isinstance(day, datetime):
        day = day.date()
    if day.weekday() >= 5:  # Weekend
        return False
    return day not in get_colombia_holidays(day.year)


def add_business_days(start: datetime, days: int) -> datetime:
    """
    Add business days to a UTC datetime, keeping the local time of day.

    Counting starts on the day after ``start``; ``days <= 0`` returns start.
    """
    start = as_utc(start)
    if days <= 0:
        return start

    local = start.astimezone(BOGOTA_TZ)
    remaining = days
    while remaining > 0:
        local += timedelta(days=1)
        if is_business_day(local):
            remaining -= 1
    return local.astimezone(timezone.utc)


def business_days_between(start: datetime, end: datetime) -> int:
    """Business days after ``start`` up to and including ``end`` (0 if end <= start)."""
    current = as_utc(start).astimezone(BOGOTA_TZ).date()
    last = as_utc(end).astimezone(BOGOTA_TZ).date()
    count = 0
    while current < last:
        current += timedelta(days=1)
        if is_business_day(current):
            count += 1
    return count

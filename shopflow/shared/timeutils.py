"""
Shop time zone helpers

Storage convention: naive UTC datetimes. API inputs without an offset are
shop-local wall-clock times; inputs with an offset are converted.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dateutil import tz

from ..config import SHOP_TIMEZONE


def get_zone(tz_name: str = SHOP_TIMEZONE):
    zone = tz.gettz(tz_name)
    if zone is None:
        raise ValueError(f"Unknown time zone: {tz_name}")
    return zone


def to_storage(value: Optional[datetime], tz_name: str = SHOP_TIMEZONE) -> Optional[datetime]:
    """Convert an API datetime to naive UTC for the database"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=get_zone(tz_name))
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive database datetime"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Current instant as naive UTC (storage form)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def shop_today(now: Optional[datetime] = None, tz_name: str = SHOP_TIMEZONE) -> date:
    """The calendar date in the shop right now (or at ``now``)"""
    zone = get_zone(tz_name)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(zone).date()


def day_bounds(day: date, tz_name: str = SHOP_TIMEZONE) -> tuple[datetime, datetime]:
    """
    [start-of-day, start-of-next-day) for a shop calendar date, in storage form.

    The window is 23 or 25 hours long on DST change days.
    """
    zone = get_zone(tz_name)
    start_local = datetime(day.year, day.month, day.day, tzinfo=zone)
    next_day = day + timedelta(days=1)
    end_local = datetime(next_day.year, next_day.month, next_day.day, tzinfo=zone)
    return to_storage(start_local), to_storage(end_local)


def range_bounds(
    start_day: date, end_day: date, tz_name: str = SHOP_TIMEZONE
) -> tuple[datetime, datetime]:
    """Inclusive calendar-day range as a half-open storage window"""
    start, _ = day_bounds(start_day, tz_name)
    _, end = day_bounds(end_day, tz_name)
    return start, end


def format_local(value: datetime, tz_name: str = SHOP_TIMEZONE) -> str:
    """Render a stored datetime for customer-facing messages"""
    local = from_storage(value).astimezone(get_zone(tz_name))
    return local.strftime("%a %b %d at %I:%M %p").replace(" 0", " ")

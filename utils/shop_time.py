# utils/shop_time.py - Shop-local clock helpers
"""
Timestamps are stored as naive UTC. Anything that talks about "today",
"tomorrow" or business hours converts through the shop timezone first, so the
host machine's timezone never leaks into a comparison.
"""
from datetime import datetime, date, time, timedelta
from typing import Optional
import pytz

import config


def shop_tz():
    return pytz.timezone(config.SHOP_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(pytz.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    """Normalize to naive UTC. Naive input is read as shop-local time."""
    if dt.tzinfo is None:
        dt = shop_tz().localize(dt)
    return dt.astimezone(pytz.utc).replace(tzinfo=None)


def to_shop_local(dt: datetime) -> datetime:
    """Naive UTC (storage format) or aware datetime -> aware shop-local datetime."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(shop_tz())


def shop_today(now: Optional[datetime] = None) -> date:
    return to_shop_local(now or utcnow()).date()


def shop_datetime(day: date, at: time) -> datetime:
    """Shop-local wall clock time on ``day`` as naive UTC."""
    return to_utc_naive(datetime.combine(day, at))


def shop_day_bounds(day: date):
    """[start, end) of a shop-local calendar day, as naive UTC."""
    start = shop_datetime(day, time(0, 0))
    return start, start + timedelta(days=1)


def seconds_until_shop_time(at: time, now: Optional[datetime] = None) -> float:
    """Seconds until the next occurrence of shop-local ``at``."""
    now = now or utcnow()
    today = shop_today(now)
    target = shop_datetime(today, at)
    if target <= now:
        target = shop_datetime(today + timedelta(days=1), at)
    return (target - now).total_seconds()

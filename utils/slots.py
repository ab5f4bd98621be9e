# utils/slots.py - Appointment slot calculator
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple

import config
from utils.shop_time import shop_datetime, to_shop_local, utcnow


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval test: [a) and [b) share at least one instant"""
    return start_a < end_b and end_a > start_b


def compute_slots(
    slot_date: date,
    duration_minutes: int,
    booked: Iterable[Tuple[datetime, datetime]],
    now: Optional[datetime] = None,
    opening: Optional[time] = None,
    closing: Optional[time] = None,
    step_minutes: Optional[int] = None,
) -> List[str]:
    """
    Free start times for one barber on ``slot_date``.

    Candidates start at opening time and advance by ``step_minutes``. A
    candidate is offered when the service fits before closing, the start is
    not in the past, and it overlaps none of the ``booked`` intervals. All
    datetimes in and out of the comparison are naive UTC; the returned values
    are ISO strings in shop-local time.

    Pure: no store access, same input gives the same list.
    """
    if duration_minutes is None or duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    now = now or utcnow()
    step = timedelta(minutes=step_minutes or config.SLOT_STEP_MINUTES)
    duration = timedelta(minutes=duration_minutes)
    open_at = shop_datetime(slot_date, opening or config.SHOP_OPENING_TIME)
    close_at = shop_datetime(slot_date, closing or config.SHOP_CLOSING_TIME)
    booked = list(booked)

    slots = []
    start = open_at
    while start < close_at:
        end = start + duration
        if end > close_at:
            break
        if start >= now and not any(overlaps(b_start, b_end, start, end) for b_start, b_end in booked):
            slots.append(to_shop_local(start).isoformat())
        start += step
    return slots

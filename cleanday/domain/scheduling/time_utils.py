"""
Scheduling time arithmetic: slot overlap, day/week windows, recurrence dates
"""

from datetime import datetime, time, timedelta
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from ...constants import RecurrenceFrequency

DEFAULT_MAX_OCCURRENCES = 52  # One year of weekly bookings


def slot_end(start: datetime, duration_minutes: int) -> datetime:
    return start + timedelta(minutes=duration_minutes)


def do_time_slots_overlap(
    start1: datetime, duration1: int, start2: datetime, duration2: int
) -> bool:
    """
    True when two [start, start + duration) slots share any time.

    Back-to-back slots (one ends exactly when the other starts) do not
    overlap; a slot fully containing the other does.
    """
    end1 = slot_end(start1, duration1)
    end2 = slot_end(start2, duration2)

    return (
        (start1 < end2 and start1 >= start2)
        or (start2 < end1 and start2 >= start1)
        or (start1 <= start2 and end1 >= end2)
        or (start2 <= start1 and end2 >= end1)
    )


def get_day_boundaries(d: datetime) -> Tuple[datetime, datetime]:
    start = datetime.combine(d.date(), time.min)
    end = datetime.combine(d.date(), time.max)
    return start, end


def get_week_boundaries(d: datetime) -> Tuple[datetime, datetime]:
    """Sunday 00:00 through Saturday 23:59:59.999999 of the week containing d"""
    # weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (d.weekday() + 1) % 7
    sunday = d.date() - timedelta(days=days_since_sunday)
    start = datetime.combine(sunday, time.min)
    end = datetime.combine(sunday + timedelta(days=6), time.max)
    return start, end


def next_occurrence(d: datetime, frequency: str) -> datetime:
    if frequency == RecurrenceFrequency.WEEKLY:
        return d + timedelta(weeks=1)
    if frequency == RecurrenceFrequency.BIWEEKLY:
        return d + timedelta(weeks=2)
    if frequency == RecurrenceFrequency.MONTHLY:
        return d + relativedelta(months=1)
    raise ValueError(f"Unsupported recurrence frequency: {frequency}")


def generate_recurring_dates(
    start: datetime,
    frequency: str,
    end_date: Optional[datetime] = None,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> List[datetime]:
    """
    Occurrences that follow `start` (start itself is not included).

    Each step is taken from the previous occurrence, so a monthly series
    starting on the 31st settles on the shortest month's day after February.
    """
    dates: List[datetime] = []
    current = start
    while len(dates) < max_occurrences:
        current = next_occurrence(current, frequency)
        if end_date and current > end_date:
            break
        dates.append(current)
    return dates


def format_duration(minutes: int) -> str:
    """30 -> "30 min", 60 -> "1 hr", 90 -> "1 hr 30 min", 120 -> "2 hrs" """
    if minutes < 60:
        return f"{minutes} min"

    hours, remaining = divmod(minutes, 60)
    hour_text = "1 hr" if hours == 1 else f"{hours} hrs"
    if remaining == 0:
        return hour_text
    return f"{hour_text} {remaining} min"


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"

"""Calendar view with pairwise conflict detection"""

from datetime import datetime
from typing import List

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, TeamMember
from .time_utils import do_time_slots_overlap, get_day_boundaries, get_week_boundaries

VIEWS = ("day", "week")


def detect_conflicts(bookings: List[Booking]) -> List[dict]:
    """
    Pairwise scan of bookings in list order. For each booking, the ids of
    later bookings overlapping it; bookings without a later overlap are left out.
    """
    conflicts = []
    for i, booking in enumerate(bookings):
        overlaps = [
            other.id
            for other in bookings[i + 1 :]
            if do_time_slots_overlap(
                booking.scheduled_date, booking.duration, other.scheduled_date, other.duration
            )
        ]
        if overlaps:
            conflicts.append({"booking_id": booking.id, "overlaps": overlaps})
    return conflicts


def get_calendar(db: Session, company_id: int, date: datetime, view: str = "day") -> dict:
    if view not in VIEWS:
        view = "day"

    if view == "week":
        start, end = get_week_boundaries(date)
    else:
        start, end = get_day_boundaries(date)

    bookings = (
        db.query(Booking)
        .options(
            joinedload(Booking.client),
            joinedload(Booking.address),
            joinedload(Booking.assigned_cleaner).joinedload(TeamMember.user),
        )
        .filter(
            Booking.company_id == company_id,
            Booking.scheduled_date >= start,
            Booking.scheduled_date <= end,
        )
        .order_by(Booking.scheduled_date, Booking.id)
        .all()
    )

    return {
        "bookings": bookings,
        "conflicts": detect_conflicts(bookings),
        "view": view,
        "date": date.date().isoformat(),
        "range": {"start": start, "end": end},
    }

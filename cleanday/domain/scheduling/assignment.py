"""
Cleaner auto-assignment

Ranks a company's active cleaners for a time slot. Anyone on approved time
off that day, or already booked into an overlapping job, is dropped; the
rest are ordered by: the client's preferred cleaner first, then the
lightest load that day, then the best average rating.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ...constants import BookingStatus, TimeOffStatus
from ...models import Booking, TeamMember, TimeOffRequest
from .time_utils import do_time_slots_overlap, get_day_boundaries

logger = logging.getLogger(__name__)


def rank_cleaners(
    db: Session,
    company_id: int,
    start: datetime,
    duration: int,
    preferred_cleaner_id: Optional[int] = None,
    exclude_booking_id: Optional[int] = None,
) -> List[dict]:
    """Available cleaners, best first, each with the reasons behind its rank"""
    day_start, day_end = get_day_boundaries(start)

    cleaners = (
        db.query(TeamMember)
        .filter(TeamMember.company_id == company_id, TeamMember.is_active.is_(True))
        .all()
    )
    if not cleaners:
        return []

    on_leave = {
        r.team_member_id
        for r in db.query(TimeOffRequest).filter(
            TimeOffRequest.company_id == company_id,
            TimeOffRequest.status == TimeOffStatus.APPROVED,
            TimeOffRequest.start_date <= day_end,
            TimeOffRequest.end_date >= day_start,
        )
    }

    # Reach back a day so jobs running past midnight still block the slot
    nearby_bookings = (
        db.query(Booking)
        .filter(
            Booking.company_id == company_id,
            Booking.assigned_cleaner_id.isnot(None),
            Booking.status != BookingStatus.CANCELLED,
            Booking.scheduled_date >= day_start - timedelta(days=1),
            Booking.scheduled_date <= day_end,
        )
        .all()
    )

    ranked = []
    for cleaner in cleaners:
        if cleaner.id in on_leave:
            continue
        own = [
            b
            for b in nearby_bookings
            if b.assigned_cleaner_id == cleaner.id and b.id != exclude_booking_id
        ]
        if any(do_time_slots_overlap(start, duration, b.scheduled_date, b.duration) for b in own):
            continue
        jobs_that_day = sum(1 for b in own if b.scheduled_date >= day_start)

        reasons = []
        is_preferred = preferred_cleaner_id is not None and cleaner.id == preferred_cleaner_id
        if is_preferred:
            reasons.append("Client's preferred cleaner")
        reasons.append(f"{jobs_that_day} other job(s) that day")
        if cleaner.average_rating:
            reasons.append(f"Rated {cleaner.average_rating:.1f}")

        ranked.append(
            {
                "cleaner": cleaner,
                "is_preferred": is_preferred,
                "jobs_that_day": jobs_that_day,
                "average_rating": cleaner.average_rating,
                "reasons": reasons,
            }
        )

    ranked.sort(
        key=lambda r: (not r["is_preferred"], r["jobs_that_day"], -(r["average_rating"] or 0))
    )
    return ranked


def find_best_cleaner(
    db: Session,
    company_id: int,
    start: datetime,
    duration: int,
    preferred_cleaner_id: Optional[int] = None,
    exclude_booking_id: Optional[int] = None,
) -> Optional[TeamMember]:
    ranked = rank_cleaners(db, company_id, start, duration, preferred_cleaner_id, exclude_booking_id)
    if not ranked:
        return None
    best = ranked[0]
    logger.info(f"🤖 Auto-assign picked cleaner {best['cleaner'].id}: {', '.join(best['reasons'])}")
    return best["cleaner"]

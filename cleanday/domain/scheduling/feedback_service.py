"""Public customer feedback for finished jobs"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...constants import BookingStatus
from ...models import Booking, TeamMember
from ...shared.dates import utcnow
from .schemas import FeedbackSubmit

logger = logging.getLogger(__name__)


def get_booking_by_token(db: Session, token: str) -> Booking:
    booking = (
        db.query(Booking)
        .options(
            joinedload(Booking.company),
            joinedload(Booking.client),
            joinedload(Booking.assigned_cleaner).joinedload(TeamMember.user),
        )
        .filter(Booking.feedback_token == token)
        .first()
    )
    if not booking:
        raise HTTPException(status_code=404, detail="Feedback link not found")
    return booking


def feedback_summary(booking: Booking) -> dict:
    """Only what a customer following the link should see"""
    return {
        "booking_number": booking.booking_number,
        "company_name": booking.company.name,
        "client_first_name": booking.client.first_name if booking.client else None,
        "service_type": booking.service_type,
        "scheduled_date": booking.scheduled_date,
        "cleaner_name": booking.assigned_cleaner.name if booking.assigned_cleaner else None,
        "already_submitted": booking.feedback_submitted_at is not None,
        "customer_rating": booking.customer_rating,
        "google_review_url": booking.company.google_review_url,
    }


def submit_feedback(db: Session, token: str, data: FeedbackSubmit) -> Booking:
    booking = get_booking_by_token(db, token)

    if booking.feedback_submitted_at:
        raise HTTPException(status_code=400, detail="Feedback already submitted")
    if booking.status not in (BookingStatus.CLEANER_COMPLETED, BookingStatus.COMPLETED):
        raise HTTPException(status_code=400, detail="This job is not finished yet")

    booking.customer_rating = data.rating
    booking.customer_feedback = data.comment
    booking.feedback_submitted_at = utcnow()

    cleaner = booking.assigned_cleaner
    if cleaner:
        count = cleaner.rating_count or 0
        average = cleaner.average_rating or 0
        cleaner.average_rating = round((average * count + data.rating) / (count + 1), 2)
        cleaner.rating_count = count + 1

    db.commit()
    db.refresh(booking)
    logger.info(f"⭐ Feedback {data.rating}/5 received for {booking.booking_number}")
    return booking

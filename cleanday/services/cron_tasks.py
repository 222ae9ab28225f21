"""
Cron Tasks
Periodic jobs shared by the /api/cron endpoints and the arq worker.

Each job selects its work by query (expired grants, unstamped bookings) and
stamps what it handled, so running it twice in a row does nothing new.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..constants import BookingStatus, CreditStatus, CreditType, MessageType
from ..domain.scheduling.booking_service import BookingService
from ..domain.scheduling.time_utils import generate_recurring_dates
from ..models import Booking, Client, CreditTransaction
from .notification_service import send_booking_sms

logger = logging.getLogger(__name__)

REVIEW_WINDOW_START_HOURS = 72
REVIEW_WINDOW_END_HOURS = 48
MIN_REVIEW_RATING = 4
REMINDER_LOOKAHEAD_HOURS = 24
RECURRING_REFILL_DAYS = 30
RECURRING_HORIZON_WEEKS = 8


# ============================================================================
# CREDIT EXPIRY
# ============================================================================


def _expired_grants_query(db: Session, now: datetime):
    return db.query(CreditTransaction).filter(
        CreditTransaction.status == CreditStatus.ACTIVE,
        CreditTransaction.remaining > 0,
        CreditTransaction.expires_at.isnot(None),
        CreditTransaction.expires_at <= now,
    )


def preview_expired_credits(db: Session, now: datetime) -> dict:
    count, total = (
        _expired_grants_query(db, now)
        .with_entities(func.count(CreditTransaction.id), func.coalesce(func.sum(CreditTransaction.remaining), 0))
        .one()
    )
    return {"expired_count": count, "expired_amount": round(float(total), 2)}


def expire_credits(db: Session, now: datetime) -> dict:
    """Expire the unspent part of every grant past its expiry and debit the client's balance"""
    grants = _expired_grants_query(db, now).order_by(CreditTransaction.id).all()
    expired_amount = 0.0

    for grant in grants:
        unspent = grant.remaining
        client = db.query(Client).filter(Client.id == grant.client_id).first()
        new_balance = max(0.0, round((client.credit_balance or 0) - unspent, 2))
        debited = round((client.credit_balance or 0) - new_balance, 2)
        client.credit_balance = new_balance

        grant.status = CreditStatus.EXPIRED
        grant.remaining = 0
        db.add(
            CreditTransaction(
                client_id=client.id,
                type=CreditType.EXPIRED,
                amount=-unspent,
                balance=new_balance,
                description=f"Expired credit from {grant.created_at:%Y-%m-%d}" if grant.created_at else "Expired credit",
                status=CreditStatus.EXPIRED,
                reference_id=grant.id,
            )
        )
        expired_amount += unspent
        logger.info(f"⌛ Expired credit {grant.id} for client {client.id} (${unspent:.2f}, debited ${debited:.2f})")

    db.commit()
    result = {"expired_count": len(grants), "expired_amount": round(expired_amount, 2)}
    logger.info(f"✅ Credit expiry: {result['expired_count']} grant(s), ${result['expired_amount']:.2f}")
    return result


# ============================================================================
# REVIEW REQUESTS
# ============================================================================


async def send_review_requests(db: Session, now: datetime) -> dict:
    """
    Ask happy clients (rating 4+) for a public review 48 to 72 hours after
    they left feedback. Companies without a review link or with the option
    turned off are skipped.
    """
    window_from = now - timedelta(hours=REVIEW_WINDOW_START_HOURS)
    window_to = now - timedelta(hours=REVIEW_WINDOW_END_HOURS)

    bookings = (
        db.query(Booking)
        .options(joinedload(Booking.client), joinedload(Booking.company), joinedload(Booking.address))
        .filter(
            Booking.status.in_([BookingStatus.COMPLETED, BookingStatus.CLEANER_COMPLETED]),
            Booking.customer_rating >= MIN_REVIEW_RATING,
            Booking.feedback_submitted_at >= window_from,
            Booking.feedback_submitted_at <= window_to,
            Booking.review_request_sent_at.is_(None),
        )
        .order_by(Booking.id)
        .all()
    )
    bookings = [b for b in bookings if b.company.auto_send_review_request and b.company.google_review_url]

    successful = failed = 0
    for booking in bookings:
        ok, _error = await send_booking_sms(
            db, booking, MessageType.REVIEW_REQUEST, review_url=booking.company.google_review_url
        )
        if ok:
            booking.review_request_sent_at = now
            successful += 1
        else:
            failed += 1
    db.commit()

    logger.info(f"⭐ Review requests: {successful} sent, {failed} failed of {len(bookings)}")
    return {
        "total": len(bookings),
        "successful": successful,
        "failed": failed,
        "time_window": {"from": window_from.isoformat(), "to": window_to.isoformat()},
    }


# ============================================================================
# REMINDERS
# ============================================================================


async def send_reminders(db: Session, now: datetime) -> dict:
    until = now + timedelta(hours=REMINDER_LOOKAHEAD_HOURS)
    bookings = (
        db.query(Booking)
        .options(joinedload(Booking.client), joinedload(Booking.company), joinedload(Booking.address))
        .filter(
            Booking.status == BookingStatus.SCHEDULED,
            Booking.scheduled_date > now,
            Booking.scheduled_date <= until,
            Booking.reminder_sent_at.is_(None),
        )
        .order_by(Booking.scheduled_date)
        .all()
    )

    successful = failed = 0
    for booking in bookings:
        ok, _error = await send_booking_sms(db, booking, MessageType.REMINDER)
        if ok:
            booking.reminder_sent_at = now
            successful += 1
        else:
            failed += 1
    db.commit()

    logger.info(f"⏰ Reminders: {successful} sent, {failed} failed of {len(bookings)}")
    return {"total": len(bookings), "successful": successful, "failed": failed}


# ============================================================================
# RECURRING SERIES
# ============================================================================


def generate_recurring(db: Session, now: datetime) -> dict:
    """Top up recurring series whose last visit is less than 30 days out"""
    parents = (
        db.query(Booking)
        .filter(
            Booking.is_recurring.is_(True),
            Booking.recurrence_parent_id.is_(None),
            Booking.is_paused.is_(False),
            Booking.status != BookingStatus.CANCELLED,
            Booking.recurrence_frequency.isnot(None),
        )
        .order_by(Booking.id)
        .all()
    )

    service = BookingService(db)
    horizon = now + timedelta(weeks=RECURRING_HORIZON_WEEKS)
    extended = generated = 0

    for parent in parents:
        if parent.recurrence_end_date and parent.recurrence_end_date <= now:
            continue

        last_child = (
            db.query(func.max(Booking.scheduled_date)).filter(Booking.recurrence_parent_id == parent.id).scalar()
        )
        last = max(d for d in (parent.scheduled_date, last_child) if d is not None)
        if last > now + timedelta(days=RECURRING_REFILL_DAYS):
            continue

        end_date = min(horizon, parent.recurrence_end_date) if parent.recurrence_end_date else horizon
        dates = [d for d in generate_recurring_dates(last, parent.recurrence_frequency, end_date) if d > now]
        if not dates:
            continue

        service.create_occurrences(parent, dates, user_id=None)
        extended += 1
        generated += len(dates)
        logger.info(f"🔁 Extended series {parent.booking_number} by {len(dates)} visit(s)")

    db.commit()
    logger.info(f"✅ Recurring: {extended} series extended, {generated} booking(s) generated")
    return {"series_checked": len(parents), "series_extended": extended, "bookings_generated": generated}

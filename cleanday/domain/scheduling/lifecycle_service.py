"""
Booking lifecycle service

Cleaner milestones (on my way, clock in, clock out, complete) and the
admin actions that close a job (approve, no-show, assign).

Status workflow: SCHEDULED → CLEANER_COMPLETED → COMPLETED. A cleaner can
only take a job to CLEANER_COMPLETED; an admin approval moves it on.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...auth import get_team_member
from ...config import FRONTEND_URL
from ...constants import BookingStatus, MessageType
from ...models import Booking, Client, TeamMember, User
from ...security_utils import generate_feedback_token
from ...services.notification_service import notify_staff_booking_update, send_booking_sms
from ...shared.dates import utcnow
from .assignment import find_best_cleaner
from .booking_service import BookingService, append_history

logger = logging.getLogger(__name__)


def minutes_between(start: datetime, end: datetime) -> int:
    return max(0, round((end - start).total_seconds() / 60))


def ensure_feedback_token(booking: Booking) -> str:
    if not booking.feedback_token:
        booking.feedback_token = generate_feedback_token(booking.id)
    return booking.feedback_token


def feedback_url(booking: Booking) -> str:
    return f"{FRONTEND_URL}/feedback/{booking.feedback_token}"


class LifecycleService:
    """Service layer for booking state transitions"""

    def __init__(self, db: Session):
        self.db = db
        self.bookings = BookingService(db)

    # ------------------------------------------------------------------
    # Cleaner side
    # ------------------------------------------------------------------

    def get_cleaner_booking(self, booking_id: int, user: User) -> tuple[Booking, TeamMember]:
        """The booking must belong to the caller's company and be assigned to them"""
        member = get_team_member(self.db, user)
        booking = (
            self.db.query(Booking)
            .options(joinedload(Booking.client), joinedload(Booking.address))
            .filter(
                Booking.id == booking_id,
                Booking.company_id == user.company_id,
                Booking.assigned_cleaner_id == member.id,
            )
            .first()
        )
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking, member

    async def on_my_way(self, booking_id: int, user: User) -> dict:
        booking, member = self.get_cleaner_booking(booking_id, user)

        if booking.on_my_way_at:
            raise HTTPException(status_code=400, detail="On my way already sent")
        if booking.status != BookingStatus.SCHEDULED:
            raise HTTPException(status_code=400, detail="Booking is not scheduled")

        booking.on_my_way_at = utcnow()
        append_history(booking, booking.status, user.id, action="ON_MY_WAY")
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"🚗 Cleaner {member.id} on the way to {booking.booking_number}")

        # Best effort: the milestone stands even if the text fails
        sms_sent, sms_error = await send_booking_sms(
            self.db,
            booking,
            MessageType.ON_MY_WAY,
            user_id=user.id,
            cleaner_name=user.first_name or "Your cleaner",
        )
        return {"booking": booking, "sms_sent": sms_sent, "sms_error": sms_error}

    def clock_in(self, booking_id: int, user: User) -> Booking:
        booking, member = self.get_cleaner_booking(booking_id, user)

        if booking.clocked_in_at:
            raise HTTPException(status_code=400, detail="Already clocked in")
        if booking.status != BookingStatus.SCHEDULED:
            raise HTTPException(status_code=400, detail="Booking is not scheduled")

        booking.clocked_in_at = utcnow()
        append_history(booking, booking.status, user.id, action="CLOCKED_IN")
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"⏱️ Cleaner {member.id} clocked in on {booking.booking_number}")
        return booking

    async def clock_out(self, booking_id: int, user: User) -> dict:
        booking, member = self.get_cleaner_booking(booking_id, user)

        if not booking.clocked_in_at:
            raise HTTPException(status_code=400, detail="You must clock in before clocking out")
        if booking.clocked_out_at:
            raise HTTPException(status_code=400, detail="Already clocked out")
        if booking.status != BookingStatus.SCHEDULED:
            raise HTTPException(status_code=400, detail="Booking is not scheduled")

        now = utcnow()
        booking.clocked_out_at = now
        booking.completed_at = now
        booking.completed_by_id = user.id
        booking.status = BookingStatus.CLEANER_COMPLETED
        ensure_feedback_token(booking)
        duration = minutes_between(booking.clocked_in_at, now)
        append_history(
            booking,
            BookingStatus.CLEANER_COMPLETED,
            user.id,
            action="CLOCKED_OUT",
            notes=f"Worked {duration} min",
        )
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"✅ {booking.booking_number} awaiting approval ({duration} min worked)")

        await notify_staff_booking_update(self.db, booking, "Job finished, awaiting approval")
        return {"booking": booking, "duration": duration}

    async def complete(self, booking_id: int, user: User, cleaner_notes: Optional[str]) -> Booking:
        """Finish a job without clock data"""
        booking, _member = self.get_cleaner_booking(booking_id, user)

        if booking.status != BookingStatus.SCHEDULED:
            raise HTTPException(status_code=400, detail="Only scheduled bookings can be completed")

        booking.status = BookingStatus.CLEANER_COMPLETED
        booking.completed_at = utcnow()
        booking.completed_by_id = user.id
        if cleaner_notes:
            booking.cleaner_notes = cleaner_notes
        ensure_feedback_token(booking)
        append_history(booking, BookingStatus.CLEANER_COMPLETED, user.id, action="COMPLETED_BY_CLEANER")
        self.db.commit()
        self.db.refresh(booking)

        await notify_staff_booking_update(self.db, booking, "Job finished, awaiting approval")
        return booking

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    async def approve(self, booking_id: int, user: User, notes: Optional[str]) -> dict:
        booking = (
            self.db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.company_id == user.company_id,
                Booking.status == BookingStatus.CLEANER_COMPLETED,
            )
            .first()
        )
        if not booking:
            raise HTTPException(
                status_code=404,
                detail="Booking not found, not in your company, or not pending approval",
            )

        now = utcnow()
        booking.status = BookingStatus.COMPLETED
        booking.approved_at = now
        booking.approved_by_id = user.id
        if notes:
            booking.internal_notes = (
                f"{booking.internal_notes or ''}\n[{now.isoformat()}] Approval note: {notes}".strip()
            )
        append_history(booking, BookingStatus.COMPLETED, user.id, action="APPROVED", notes=notes)

        if booking.assigned_cleaner_id:
            cleaner = self.db.query(TeamMember).filter(TeamMember.id == booking.assigned_cleaner_id).first()
            if cleaner:
                cleaner.total_jobs_completed = (cleaner.total_jobs_completed or 0) + 1
                cleaner.total_earnings = round((cleaner.total_earnings or 0) + booking.final_price, 2)

        client = self.db.query(Client).filter(Client.id == booking.client_id).first()
        client.total_spent = round((client.total_spent or 0) + booking.final_price, 2)
        client.total_bookings = (client.total_bookings or 0) + 1
        client.last_booking_date = now

        if booking.company.feedback_enabled:
            ensure_feedback_token(booking)

        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"✅ Booking {booking.booking_number} approved by user {user.id}")

        sms_sent, sms_error = False, None
        if booking.feedback_token and booking.company.feedback_enabled:
            sms_sent, sms_error = await send_booking_sms(
                self.db,
                booking,
                MessageType.COMPLETION,
                user_id=user.id,
                feedback_url=feedback_url(booking),
            )
            if sms_sent:
                booking.feedback_sent_at = utcnow()
                self.db.commit()
                self.db.refresh(booking)

        return {"booking": booking, "sms_sent": sms_sent, "sms_error": sms_error}

    def mark_no_show(self, booking_id: int, user: User, notes: Optional[str]) -> Booking:
        booking = self.bookings.get_company_booking(booking_id, user.company_id)
        if booking.status != BookingStatus.SCHEDULED:
            raise HTTPException(status_code=400, detail="Only scheduled bookings can be marked as no-show")

        booking.status = BookingStatus.NO_SHOW
        append_history(booking, BookingStatus.NO_SHOW, user.id, action="NO_SHOW", notes=notes)
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"👻 Booking {booking.booking_number} marked as no-show")
        return booking

    def assign(self, booking_id: int, user: User, cleaner_id: Optional[int], auto_assign: bool) -> dict:
        booking = self.bookings.get_company_booking(booking_id, user.company_id)

        if booking.status in BookingStatus.CLOSED:
            raise HTTPException(
                status_code=400, detail=f"Cannot assign a cleaner to a {booking.status.lower()} booking"
            )

        if cleaner_id:
            cleaner = self.bookings._get_active_cleaner(user.company_id, cleaner_id)
            method = "MANUAL"
        else:
            cleaner = find_best_cleaner(
                self.db,
                company_id=user.company_id,
                start=booking.scheduled_date,
                duration=booking.duration,
                preferred_cleaner_id=booking.client.preferred_cleaner_id if booking.client else None,
                exclude_booking_id=booking.id,
            )
            if not cleaner:
                raise HTTPException(status_code=404, detail="No available cleaner for this time slot")
            method = "AUTO"

        booking.assigned_cleaner_id = cleaner.id
        booking.assignment_method = method
        booking.assigned_at = utcnow()
        append_history(
            booking, booking.status, user.id, action="ASSIGNED", notes=f"{method}: team member {cleaner.id}"
        )
        self.db.commit()
        self.db.refresh(booking)

        conflicts = [
            b.id
            for b in self.bookings.find_cleaner_conflicts(
                user.company_id, cleaner.id, booking.scheduled_date, booking.duration, [booking.id]
            )
        ]
        logger.info(f"👤 Booking {booking.booking_number} assigned to {cleaner.id} ({method})")
        return {"booking": booking, "method": method, "conflicts": conflicts}

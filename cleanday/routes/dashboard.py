"""Dashboard summary numbers"""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..constants import BookingStatus, PaymentStatus
from ..database import get_db
from ..domain.scheduling.time_utils import get_day_boundaries, get_week_boundaries
from ..models import Booking, Client, TeamMember, User
from ..models_invoice import Payment
from ..shared.dates import utcnow

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


def _count_bookings(db: Session, company_id: int, start: datetime, end: datetime) -> int:
    return (
        db.query(Booking)
        .filter(
            Booking.company_id == company_id,
            Booking.status != BookingStatus.CANCELLED,
            Booking.scheduled_date >= start,
            Booking.scheduled_date <= end,
        )
        .count()
    )


@router.get("/stats")
async def dashboard_stats(current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    now = utcnow()
    company_id = current_user.company_id
    month_start = get_day_boundaries(now.replace(day=1))[0]

    revenue = (
        db.query(func.coalesce(func.sum(Payment.amount), 0.0))
        .filter(
            Payment.company_id == company_id,
            Payment.status == PaymentStatus.PAID,
            Payment.captured_at >= month_start,
        )
        .scalar()
    )

    return {
        "success": True,
        "data": {
            "bookings_today": _count_bookings(db, company_id, *get_day_boundaries(now)),
            "bookings_this_week": _count_bookings(db, company_id, *get_week_boundaries(now)),
            "pending_approvals": db.query(Booking)
            .filter(Booking.company_id == company_id, Booking.status == BookingStatus.CLEANER_COMPLETED)
            .count(),
            "revenue_this_month": round(float(revenue or 0), 2),
            "active_clients": db.query(Client).filter(Client.company_id == company_id).count(),
            "active_cleaners": db.query(TeamMember)
            .filter(TeamMember.company_id == company_id, TeamMember.is_active.is_(True))
            .count(),
        },
    }

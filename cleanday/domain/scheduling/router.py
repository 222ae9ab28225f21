"""Scheduling router - calendar and booking endpoints for the dashboard"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from ...shared.dates import utcnow
from ...shared.validators import to_naive_utc
from .booking_service import BookingService
from .calendar_service import get_calendar
from .lifecycle_service import LifecycleService
from .schemas import (
    AssignRequest,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    CancelBookingRequest,
    NotesRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Scheduling"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def get_lifecycle_service(db: Session = Depends(get_db)) -> LifecycleService:
    return LifecycleService(db)


def parse_date_param(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    try:
        return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}") from e


def serialize(booking) -> BookingResponse:
    return BookingResponse.model_validate(booking)


# ============================================================================
# CALENDAR
# ============================================================================


@router.get("/calendar")
async def calendar_view(
    date: Optional[str] = Query(None),
    view: str = Query("day"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Bookings for a day or week plus the overlapping pairs among them"""
    result = get_calendar(db, current_user.company_id, parse_date_param(date), view)
    result["bookings"] = [serialize(b) for b in result["bookings"]]
    return {"success": True, "data": result}


# ============================================================================
# BOOKINGS
# ============================================================================


@router.get("/bookings")
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    statuses: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    client_id: Optional[int] = Query(None),
    cleaner_id: Optional[int] = Query(None),
    service_type: Optional[str] = Query(None),
    is_recurring: Optional[bool] = Query(None),
    is_paid: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("scheduled_date"),
    sort_order: str = Query("asc"),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    bookings, pagination = service.list_bookings(
        current_user,
        page=page,
        limit=limit,
        status=status,
        statuses=statuses,
        date_from=to_naive_utc(date_from),
        date_to=to_naive_utc(date_to),
        client_id=client_id,
        cleaner_id=cleaner_id,
        service_type=service_type,
        is_recurring=is_recurring,
        is_paid=is_paid,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"success": True, "data": [serialize(b) for b in bookings], "pagination": pagination}


@router.post("/bookings", status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.create_booking(data, current_user)
    return {
        "success": True,
        "data": serialize(result["booking"]),
        "generated_bookings": result["generated_bookings"],
        "conflicts": result["conflicts"],
        "assignment": result["assignment"],
        "sms_sent": result["sms_sent"],
        "message": result["message"],
    }


@router.get("/bookings/recurring")
async def list_recurring_bookings(
    current_user: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Recurring series parents with their size and next visit"""
    series = service.list_recurring(current_user)
    return {
        "success": True,
        "data": [
            {
                **serialize(s["booking"]).model_dump(),
                "child_count": s["child_count"],
                "next_occurrence": s["next_occurrence"],
            }
            for s in series
        ],
    }


@router.get("/bookings/{booking_id}")
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return {"success": True, "data": serialize(service.get_booking(booking_id, current_user))}


@router.put("/bookings/{booking_id}")
async def update_booking(
    booking_id: int,
    data: BookingUpdate,
    current_user: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.update_booking(booking_id, data, current_user)
    return {"success": True, "data": serialize(booking)}


@router.delete("/bookings/{booking_id}")
async def cancel_booking(
    booking_id: int,
    reason: Optional[str] = Query(None, max_length=1000),
    apply_cancellation_fee: bool = Query(False),
    hard_delete: bool = Query(False),
    current_user: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking, or delete it outright when it never started"""
    result = service.cancel_booking(
        booking_id,
        CancelBookingRequest(
            reason=reason, apply_cancellation_fee=apply_cancellation_fee, hard_delete=hard_delete
        ),
        current_user,
    )
    if result["deleted"]:
        return {"success": True, "data": None, "message": "Booking deleted"}
    return {
        "success": True,
        "data": serialize(result["booking"]),
        "cancellation_fee": result["cancellation_fee"],
        "message": "Booking cancelled",
    }


@router.post("/bookings/{booking_id}/assign")
async def assign_cleaner(
    booking_id: int,
    data: AssignRequest,
    current_user: User = Depends(require_admin),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    result = service.assign(booking_id, current_user, data.cleaner_id, data.auto_assign)
    return {
        "success": True,
        "data": serialize(result["booking"]),
        "method": result["method"],
        "conflicts": result["conflicts"],
    }


@router.post("/bookings/{booking_id}/no-show")
async def mark_no_show(
    booking_id: int,
    data: NotesRequest = NotesRequest(),
    current_user: User = Depends(require_admin),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    booking = service.mark_no_show(booking_id, current_user, data.notes)
    return {"success": True, "data": serialize(booking)}


@router.post("/bookings/{booking_id}/approve")
async def approve_booking(
    booking_id: int,
    data: NotesRequest = NotesRequest(),
    current_user: User = Depends(require_admin),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """Approve a job the cleaner has finished"""
    result = await service.approve(booking_id, current_user, data.notes)
    return {
        "success": True,
        "data": serialize(result["booking"]),
        "sms_sent": result["sms_sent"],
        "message": "Booking approved",
    }

"""Field app endpoints for the cleaner's own jobs"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from ...auth import get_team_member, require_cleaner
from ...constants import BookingStatus
from ...database import get_db
from ...models import Booking, User
from .lifecycle_service import LifecycleService, minutes_between
from .router import get_lifecycle_service, parse_date_param
from .schemas import CleanerJobResponse, CompleteJobRequest
from .time_utils import get_day_boundaries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cleaner", tags=["Cleaner"])


def serialize_job(booking) -> CleanerJobResponse:
    return CleanerJobResponse.model_validate(booking)


@router.get("/jobs")
async def list_jobs(
    date: Optional[str] = Query(None),
    current_user: User = Depends(require_cleaner),
    db: Session = Depends(get_db),
):
    """The cleaner's jobs for a day (today by default)"""
    member = get_team_member(db, current_user)
    start, end = get_day_boundaries(parse_date_param(date))
    jobs = (
        db.query(Booking)
        .options(joinedload(Booking.client), joinedload(Booking.address))
        .filter(
            Booking.company_id == current_user.company_id,
            Booking.assigned_cleaner_id == member.id,
            Booking.status != BookingStatus.CANCELLED,
            Booking.scheduled_date >= start,
            Booking.scheduled_date <= end,
        )
        .order_by(Booking.scheduled_date)
        .all()
    )
    return {"success": True, "data": [serialize_job(j) for j in jobs]}


@router.get("/jobs/{booking_id}")
async def get_job(
    booking_id: int,
    current_user: User = Depends(require_cleaner),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    booking, _ = service.get_cleaner_booking(booking_id, current_user)
    return {"success": True, "data": serialize_job(booking)}


@router.post("/jobs/{booking_id}/on-my-way")
async def on_my_way(
    booking_id: int,
    current_user: User = Depends(require_cleaner),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    result = await service.on_my_way(booking_id, current_user)
    return {
        "success": True,
        "data": serialize_job(result["booking"]),
        "sms_sent": result["sms_sent"],
        "sms_error": result["sms_error"],
    }


@router.post("/jobs/{booking_id}/clock-in")
async def clock_in(
    booking_id: int,
    current_user: User = Depends(require_cleaner),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    booking = service.clock_in(booking_id, current_user)
    return {"success": True, "data": serialize_job(booking)}


@router.post("/jobs/{booking_id}/clock-out")
async def clock_out(
    booking_id: int,
    current_user: User = Depends(require_cleaner),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    result = await service.clock_out(booking_id, current_user)
    return {
        "success": True,
        "data": serialize_job(result["booking"]),
        "duration": result["duration"],
        "message": "Clocked out. The job is waiting for approval.",
    }


@router.post("/jobs/{booking_id}/complete")
async def complete_job(
    booking_id: int,
    data: CompleteJobRequest = CompleteJobRequest(),
    current_user: User = Depends(require_cleaner),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    booking = await service.complete(booking_id, current_user, data.cleaner_notes)
    return {"success": True, "data": serialize_job(booking)}


@router.get("/earnings")
async def earnings(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    current_user: User = Depends(require_cleaner),
    db: Session = Depends(get_db),
):
    """Finished jobs and totals for a range (last 30 days by default)"""
    member = get_team_member(db, current_user)
    end = parse_date_param(date_to)
    start = parse_date_param(date_from) if date_from else end - timedelta(days=30)
    if start > end:
        raise HTTPException(status_code=400, detail="from must be before to")

    jobs = (
        db.query(Booking)
        .filter(
            Booking.company_id == current_user.company_id,
            Booking.assigned_cleaner_id == member.id,
            Booking.status.in_([BookingStatus.CLEANER_COMPLETED, BookingStatus.COMPLETED]),
            Booking.scheduled_date >= get_day_boundaries(start)[0],
            Booking.scheduled_date <= get_day_boundaries(end)[1],
        )
        .order_by(Booking.scheduled_date.desc())
        .all()
    )

    minutes_worked = 0
    rows = []
    for job in jobs:
        if job.clocked_in_at and job.clocked_out_at:
            worked = minutes_between(job.clocked_in_at, job.clocked_out_at)
        else:
            worked = job.duration
        minutes_worked += worked
        rows.append(
            {
                "id": job.id,
                "booking_number": job.booking_number,
                "scheduled_date": job.scheduled_date,
                "status": job.status,
                "minutes_worked": worked,
                "final_price": job.final_price,
                "tip_amount": job.tip_amount,
            }
        )

    hours = round(minutes_worked / 60, 2)
    approved = [j for j in jobs if j.status == BookingStatus.COMPLETED]
    return {
        "success": True,
        "data": {
            "jobs": rows,
            "summary": {
                "jobs_completed": len(approved),
                "jobs_pending_approval": len(jobs) - len(approved),
                "hours_worked": hours,
                "tips": round(sum(j.tip_amount or 0 for j in jobs), 2),
                "job_revenue": round(sum(j.final_price for j in approved), 2),
                "hourly_rate": member.hourly_rate,
                "estimated_pay": round(hours * member.hourly_rate, 2) if member.hourly_rate else None,
            },
            "range": {"start": start, "end": end},
        },
    }

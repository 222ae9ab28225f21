"""Team router - admin team management and cleaner time off"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin, require_cleaner
from ...database import get_db
from ...models import User
from ..scheduling.router import parse_date_param
from ..scheduling.schemas import BookingResponse
from .schemas import (
    ConflictCheckRequest,
    TeamMemberCreate,
    TeamMemberResponse,
    TeamMemberUpdate,
    TimeOffCreate,
    TimeOffResponse,
    TimeOffReview,
)
from .service import TeamService, member_to_dict, time_off_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/team", tags=["Team"])
cleaner_router = APIRouter(prefix="/api/cleaner/time-off", tags=["Cleaner"])


def get_team_service(db: Session = Depends(get_db)) -> TeamService:
    """Dependency injection for TeamService"""
    return TeamService(db)


def serialize_member(member) -> TeamMemberResponse:
    return TeamMemberResponse(**member_to_dict(member))


def serialize_time_off(request) -> TimeOffResponse:
    return TimeOffResponse(**time_off_to_dict(request))


# ============================================================================
# TIME OFF (ADMIN)
# ============================================================================


@router.get("/time-off")
async def list_time_off(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    requests = service.list_time_off(current_user, status)
    return {"success": True, "data": [serialize_time_off(r) for r in requests]}


@router.post("/time-off/check-conflicts")
async def check_time_off_conflicts(
    data: ConflictCheckRequest,
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    return {"success": True, "data": service.check_conflicts(data, current_user)}


@router.post("/time-off/{request_id}/approve")
async def approve_time_off(
    request_id: int,
    data: TimeOffReview = TimeOffReview(),
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    request = service.review_time_off(request_id, current_user, approve=True, note=data.note)
    return {"success": True, "data": serialize_time_off(request), "message": "Time off approved"}


@router.post("/time-off/{request_id}/deny")
async def deny_time_off(
    request_id: int,
    data: TimeOffReview = TimeOffReview(),
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    request = service.review_time_off(request_id, current_user, approve=False, note=data.note)
    return {"success": True, "data": serialize_time_off(request), "message": "Time off denied"}


# ============================================================================
# MEMBERS
# ============================================================================


@router.get("")
async def list_members(
    active_only: bool = Query(False),
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    members = service.list_members(current_user, active_only)
    return {"success": True, "data": [serialize_member(m) for m in members]}


@router.post("", status_code=201)
async def create_member(
    data: TeamMemberCreate,
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    member = service.create_member(data, current_user)
    return {"success": True, "data": serialize_member(member)}


@router.patch("/{member_id}")
async def update_member(
    member_id: int,
    data: TeamMemberUpdate,
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    member = service.update_member(member_id, data, current_user)
    return {"success": True, "data": serialize_member(member)}


@router.delete("/{member_id}")
async def deactivate_member(
    member_id: int,
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    member = service.deactivate_member(member_id, current_user)
    return {"success": True, "data": serialize_member(member), "message": "Team member deactivated"}


@router.get("/{member_id}/schedule")
async def member_schedule(
    member_id: int,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    current_user: User = Depends(require_admin),
    service: TeamService = Depends(get_team_service),
):
    bookings = service.get_schedule(
        member_id,
        current_user,
        parse_date_param(date_from),
        parse_date_param(date_to) if date_to else None,
    )
    return {"success": True, "data": [BookingResponse.model_validate(b) for b in bookings]}


# ============================================================================
# TIME OFF (CLEANER)
# ============================================================================


@cleaner_router.post("", status_code=201)
async def request_time_off(
    data: TimeOffCreate,
    current_user: User = Depends(require_cleaner),
    service: TeamService = Depends(get_team_service),
):
    request = service.request_time_off(data, current_user)
    return {"success": True, "data": serialize_time_off(request)}


@cleaner_router.get("")
async def my_time_off(
    current_user: User = Depends(require_cleaner),
    service: TeamService = Depends(get_team_service),
):
    return {"success": True, "data": [serialize_time_off(r) for r in service.list_own_time_off(current_user)]}


@cleaner_router.delete("/{request_id}")
async def cancel_time_off(
    request_id: int,
    current_user: User = Depends(require_cleaner),
    service: TeamService = Depends(get_team_service),
):
    service.cancel_own_time_off(request_id, current_user)
    return {"success": True, "data": None, "message": "Time off request cancelled"}

"""
Team service

Cleaner profiles (a CLEANER user plus its TeamMember row), per-member
schedules, and the time-off request/approval flow.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...auth import get_team_member
from ...constants import BookingStatus, TimeOffStatus, UserRole
from ...models import Booking, TeamMember, TimeOffRequest, User
from ...security_utils import hash_password
from ...shared.dates import utcnow
from ..scheduling.time_utils import get_day_boundaries
from .schemas import ConflictCheckRequest, TeamMemberCreate, TeamMemberUpdate, TimeOffCreate

logger = logging.getLogger(__name__)

USER_FIELDS = ("first_name", "last_name", "phone")


def member_to_dict(member: TeamMember) -> dict:
    user = member.user
    return {
        "id": member.id,
        "user_id": member.user_id,
        "name": member.name,
        "email": user.email if user else None,
        "phone": user.phone if user else None,
        "hourly_rate": member.hourly_rate,
        "specialties": member.specialties or [],
        "service_areas": member.service_areas or [],
        "availability": member.availability,
        "is_active": member.is_active,
        "total_jobs_completed": member.total_jobs_completed,
        "total_earnings": member.total_earnings,
        "average_rating": member.average_rating,
        "rating_count": member.rating_count,
        "created_at": member.created_at,
    }


def time_off_to_dict(request: TimeOffRequest) -> dict:
    return {
        "id": request.id,
        "team_member_id": request.team_member_id,
        "team_member_name": request.team_member.name if request.team_member else None,
        "type": request.type,
        "start_date": request.start_date,
        "end_date": request.end_date,
        "reason": request.reason,
        "status": request.status,
        "reviewed_by_id": request.reviewed_by_id,
        "reviewed_at": request.reviewed_at,
        "review_note": request.review_note,
        "created_at": request.created_at,
    }


class TeamService:
    """Service layer for team members and their time off"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def list_members(self, user: User, active_only: bool = False) -> list[TeamMember]:
        query = (
            self.db.query(TeamMember)
            .options(joinedload(TeamMember.user))
            .filter(TeamMember.company_id == user.company_id)
        )
        if active_only:
            query = query.filter(TeamMember.is_active.is_(True))
        return query.order_by(TeamMember.id).all()

    def get_member(self, member_id: int, user: User) -> TeamMember:
        member = (
            self.db.query(TeamMember)
            .options(joinedload(TeamMember.user))
            .filter(TeamMember.id == member_id, TeamMember.company_id == user.company_id)
            .first()
        )
        if not member:
            raise HTTPException(status_code=404, detail="Team member not found")
        return member

    def create_member(self, data: TeamMemberCreate, user: User) -> TeamMember:
        if self.db.query(User.id).filter(User.email == data.email).first():
            raise HTTPException(status_code=409, detail="Email already registered")

        cleaner_user = User(
            company_id=user.company_id,
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=UserRole.CLEANER,
        )
        self.db.add(cleaner_user)
        self.db.flush()

        member = TeamMember(
            company_id=user.company_id,
            user_id=cleaner_user.id,
            hourly_rate=data.hourly_rate,
            specialties=data.specialties,
            service_areas=data.service_areas,
            availability=data.availability,
        )
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"👤 Team member {member.id} created for company {user.company_id}")
        return member

    def update_member(self, member_id: int, data: TeamMemberUpdate, user: User) -> TeamMember:
        member = self.get_member(member_id, user)
        updates = data.model_dump(exclude_unset=True)

        for key in USER_FIELDS:
            if key in updates:
                setattr(member.user, key, updates.pop(key))

        if "is_active" in updates:
            is_active = bool(updates.pop("is_active"))
            member.is_active = is_active
            member.user.is_active = is_active

        for key, value in updates.items():
            setattr(member, key, value)

        self.db.commit()
        self.db.refresh(member)
        return member

    def deactivate_member(self, member_id: int, user: User) -> TeamMember:
        """Deactivation keeps history; the cleaner can no longer sign in or be assigned"""
        member = self.get_member(member_id, user)
        member.is_active = False
        member.user.is_active = False
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"🚫 Team member {member.id} deactivated by user {user.id}")
        return member

    def get_schedule(
        self, member_id: int, user: User, start: datetime, end: Optional[datetime] = None
    ) -> list[Booking]:
        member = self.get_member(member_id, user)
        range_start = get_day_boundaries(start)[0]
        range_end = get_day_boundaries(end or start + timedelta(days=7))[1]
        if range_end < range_start:
            raise HTTPException(status_code=400, detail="from must be before to")

        return (
            self.db.query(Booking)
            .options(joinedload(Booking.client), joinedload(Booking.address))
            .filter(
                Booking.company_id == user.company_id,
                Booking.assigned_cleaner_id == member.id,
                Booking.status != BookingStatus.CANCELLED,
                Booking.scheduled_date >= range_start,
                Booking.scheduled_date <= range_end,
            )
            .order_by(Booking.scheduled_date)
            .all()
        )

    # ------------------------------------------------------------------
    # Time off (cleaner side)
    # ------------------------------------------------------------------

    def request_time_off(self, data: TimeOffCreate, user: User) -> TimeOffRequest:
        member = get_team_member(self.db, user)
        start = get_day_boundaries(data.start_date)[0]
        end = get_day_boundaries(data.end_date)[1]
        if end < start:
            raise HTTPException(status_code=400, detail="End date must be on or after start date")

        request = TimeOffRequest(
            company_id=user.company_id,
            team_member_id=member.id,
            type=data.type,
            start_date=start,
            end_date=end,
            reason=data.reason,
            status=TimeOffStatus.PENDING,
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"🌴 Time off requested by team member {member.id}: {start.date()} → {end.date()}")
        return request

    def list_own_time_off(self, user: User) -> list[TimeOffRequest]:
        member = get_team_member(self.db, user)
        return (
            self.db.query(TimeOffRequest)
            .filter(TimeOffRequest.team_member_id == member.id)
            .order_by(TimeOffRequest.start_date.desc())
            .all()
        )

    def cancel_own_time_off(self, request_id: int, user: User) -> None:
        member = get_team_member(self.db, user)
        request = (
            self.db.query(TimeOffRequest)
            .filter(TimeOffRequest.id == request_id, TimeOffRequest.team_member_id == member.id)
            .first()
        )
        if not request:
            raise HTTPException(status_code=404, detail="Time off request not found")
        if request.status != TimeOffStatus.PENDING:
            raise HTTPException(status_code=400, detail="Only pending requests can be cancelled")

        self.db.delete(request)
        self.db.commit()

    # ------------------------------------------------------------------
    # Time off (admin side)
    # ------------------------------------------------------------------

    def list_time_off(self, user: User, status: Optional[str] = None) -> list[TimeOffRequest]:
        query = (
            self.db.query(TimeOffRequest)
            .options(joinedload(TimeOffRequest.team_member).joinedload(TeamMember.user))
            .filter(TimeOffRequest.company_id == user.company_id)
        )
        if status:
            query = query.filter(TimeOffRequest.status == status.upper())
        return query.order_by(TimeOffRequest.start_date).all()

    def review_time_off(self, request_id: int, user: User, approve: bool, note: Optional[str]) -> TimeOffRequest:
        request = (
            self.db.query(TimeOffRequest)
            .filter(TimeOffRequest.id == request_id, TimeOffRequest.company_id == user.company_id)
            .first()
        )
        if not request:
            raise HTTPException(status_code=404, detail="Time off request not found")
        if request.status != TimeOffStatus.PENDING:
            raise HTTPException(status_code=400, detail=f"Request is already {request.status.lower()}")

        request.status = TimeOffStatus.APPROVED if approve else TimeOffStatus.DENIED
        request.reviewed_by_id = user.id
        request.reviewed_at = utcnow()
        request.review_note = note
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"📋 Time off {request.id} {request.status.lower()} by user {user.id}")
        return request

    def check_conflicts(self, data: ConflictCheckRequest, user: User) -> dict:
        """Approved time off overlapping a day or a date range"""
        if data.date:
            range_start, range_end = get_day_boundaries(data.date)
        elif data.start_date and data.end_date:
            range_start = get_day_boundaries(data.start_date)[0]
            range_end = get_day_boundaries(data.end_date)[1]
        else:
            raise HTTPException(status_code=400, detail="Provide date or start_date and end_date")
        if range_end < range_start:
            raise HTTPException(status_code=400, detail="End date must be on or after start date")

        query = (
            self.db.query(TimeOffRequest)
            .options(joinedload(TimeOffRequest.team_member).joinedload(TeamMember.user))
            .filter(
                TimeOffRequest.company_id == user.company_id,
                TimeOffRequest.status == TimeOffStatus.APPROVED,
                TimeOffRequest.start_date <= range_end,
                TimeOffRequest.end_date >= range_start,
            )
        )
        if data.team_member_id:
            query = query.filter(TimeOffRequest.team_member_id == data.team_member_id)
        conflicts = query.order_by(TimeOffRequest.start_date).all()

        unavailable = sorted({c.team_member_id for c in conflicts})
        available = [m for m in self.list_members(user, active_only=True) if m.id not in unavailable]

        return {
            "has_conflicts": bool(conflicts),
            "conflicts": [time_off_to_dict(c) for c in conflicts],
            "unavailable_team_member_ids": unavailable,
            "available_team_members": [{"id": m.id, "name": m.name} for m in available],
            "range": {"start": range_start, "end": range_end},
        }

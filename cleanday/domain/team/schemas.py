"""Team domain schemas"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ...constants import TimeOffStatus, TimeOffType
from ...shared.validators import to_naive_utc, validate_email, validate_us_phone

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _check_availability(v):
    if v is None:
        return v
    unknown = set(v) - set(WEEKDAYS)
    if unknown:
        raise ValueError(f"Unknown weekday(s): {', '.join(sorted(unknown))}")
    return v


class TeamMemberCreate(BaseModel):
    """Creates the CLEANER login and its team profile together"""

    email: str
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    specialties: List[str] = []
    service_areas: List[str] = []
    availability: Optional[Dict[str, dict]] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_us_phone(v) if v else v

    @field_validator("availability")
    @classmethod
    def check_availability(cls, v):
        return _check_availability(v)


class TeamMemberUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = None
    phone: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    specialties: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None
    availability: Optional[Dict[str, dict]] = None
    is_active: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_us_phone(v) if v else v

    @field_validator("availability")
    @classmethod
    def check_availability(cls, v):
        return _check_availability(v)


class TeamMemberResponse(BaseModel):
    id: int
    user_id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    hourly_rate: Optional[float] = None
    specialties: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None
    availability: Optional[dict] = None
    is_active: bool
    total_jobs_completed: int
    total_earnings: float
    average_rating: Optional[float] = None
    rating_count: int
    created_at: Optional[datetime] = None


class TimeOffCreate(BaseModel):
    type: str = TimeOffType.VACATION
    start_date: datetime
    end_date: datetime
    reason: Optional[str] = Field(None, max_length=1000)

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        if v not in TimeOffType.ALL:
            raise ValueError(f"type must be one of {', '.join(TimeOffType.ALL)}")
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class TimeOffReview(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)


class ConflictCheckRequest(BaseModel):
    date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    team_member_id: Optional[int] = None

    @field_validator("date", "start_date", "end_date")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class TimeOffResponse(BaseModel):
    id: int
    team_member_id: int
    team_member_name: Optional[str] = None
    type: str
    start_date: datetime
    end_date: datetime
    reason: Optional[str] = None
    status: str = TimeOffStatus.PENDING
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_note: Optional[str] = None
    created_at: Optional[datetime] = None

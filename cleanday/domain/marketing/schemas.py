"""Marketing schemas - campaigns and prospects"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...constants import MessageChannel, ProspectStatus
from ...shared.validators import to_naive_utc, validate_email, validate_us_phone


class SegmentFilter(BaseModel):
    tags: List[str] = []
    no_booking_days: Optional[int] = Field(None, gt=0)


def _check_channel(v):
    if v is not None and v not in MessageChannel.CAMPAIGN:
        raise ValueError(f"channel must be one of {', '.join(MessageChannel.CAMPAIGN)}")
    return v


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    channel: str = MessageChannel.SMS
    subject: Optional[str] = Field(None, max_length=500)
    body: str = Field(..., min_length=1)
    segment_filter: Optional[SegmentFilter] = None
    scheduled_for: Optional[datetime] = None

    @field_validator("channel")
    @classmethod
    def check_channel(cls, v):
        return _check_channel(v)

    @field_validator("scheduled_for")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    channel: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=500)
    body: Optional[str] = Field(None, min_length=1)
    segment_filter: Optional[SegmentFilter] = None
    scheduled_for: Optional[datetime] = None

    @field_validator("channel")
    @classmethod
    def check_channel(cls, v):
        return _check_channel(v)

    @field_validator("scheduled_for")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class CampaignResponse(BaseModel):
    id: int
    name: str
    channel: str
    subject: Optional[str] = None
    body: str
    segment_filter: Optional[dict] = None
    status: str
    scheduled_for: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    recipient_count: int
    sent_count: int
    failed_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProspectCreate(BaseModel):
    """Public lead form. A name plus a way to reach them."""

    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = Field(None, max_length=255)
    source: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)
    company_slug: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_us_phone(v) if v else v

    @model_validator(mode="after")
    def check_contact(self):
        if not self.email and not self.phone:
            raise ValueError("Provide an email or a phone number")
        return self


class ProspectUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v is not None and v not in ProspectStatus.ALL:
            raise ValueError(f"status must be one of {', '.join(ProspectStatus.ALL)}")
        return v


class ProspectResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = None
    source: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

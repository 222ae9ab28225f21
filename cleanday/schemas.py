from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import MessageType
from .shared.validators import validate_email, validate_us_phone


class SignupRequest(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=255)
    email: str
    password: str = Field(..., min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_us_phone(v) if v else v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserResponse(BaseModel):
    id: int
    company_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationPreferencesUpdate(BaseModel):
    email_booking_updates: Optional[bool] = None
    sms_booking_updates: Optional[bool] = None
    email_invoices: Optional[bool] = None
    email_marketing: Optional[bool] = None
    sms_marketing: Optional[bool] = None
    daily_summary: Optional[bool] = None


class NotificationPreferencesResponse(BaseModel):
    email_booking_updates: bool
    sms_booking_updates: bool
    email_invoices: bool
    email_marketing: bool
    sms_marketing: bool
    daily_summary: bool

    class Config:
        from_attributes = True


class CompanySettingsUpdate(BaseModel):
    """Owner-editable company settings. Twilio auth token is write-only."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    timezone: Optional[str] = None
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    minimum_booking_price: Optional[float] = Field(None, ge=0)
    require_deposit: Optional[bool] = None
    deposit_percent: Optional[float] = Field(None, ge=0, le=100)
    cancellation_window_hours: Optional[int] = Field(None, ge=0)
    cancellation_fee_percent: Optional[float] = Field(None, ge=0, le=100)
    feedback_enabled: Optional[bool] = None
    auto_send_review_request: Optional[bool] = None
    review_request_delay_hours: Optional[int] = Field(None, ge=0)
    google_review_url: Optional[str] = Field(None, max_length=500)
    credit_expiry_days: Optional[int] = Field(None, ge=0)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone", "twilio_phone_number")
    @classmethod
    def check_phone(cls, v):
        return validate_us_phone(v) if v else v


class CompanySettingsResponse(BaseModel):
    id: int
    name: str
    slug: str
    email: Optional[str] = None
    phone: Optional[str] = None
    timezone: Optional[str] = None
    tax_rate: Optional[float] = None
    minimum_booking_price: Optional[float] = None
    require_deposit: Optional[bool] = None
    deposit_percent: Optional[float] = None
    cancellation_window_hours: Optional[int] = None
    cancellation_fee_percent: Optional[float] = None
    feedback_enabled: Optional[bool] = None
    auto_send_review_request: Optional[bool] = None
    review_request_delay_hours: Optional[int] = None
    google_review_url: Optional[str] = None
    credit_expiry_days: Optional[int] = None
    twilio_account_sid: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    sms_configured: bool = False

    class Config:
        from_attributes = True


class SendMessageRequest(BaseModel):
    """Text a client by id or an arbitrary number"""

    client_id: Optional[int] = None
    to: Optional[str] = None
    booking_id: Optional[int] = None
    body: Optional[str] = Field(None, max_length=1600)
    template: Optional[str] = None
    variables: dict = {}
    type: str = MessageType.CUSTOM

    @field_validator("to")
    @classmethod
    def check_phone(cls, v):
        return validate_us_phone(v) if v else v

    @model_validator(mode="after")
    def check_target(self):
        if not self.client_id and not self.to:
            raise ValueError("Provide client_id or to")
        if not self.body and not self.template:
            raise ValueError("Provide body or template")
        return self

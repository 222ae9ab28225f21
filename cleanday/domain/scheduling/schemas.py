"""Scheduling domain schemas - bookings, lifecycle actions and feedback"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...constants import BookingStatus, PaymentMethod, RecurrenceFrequency, ServiceType
from ...shared.validators import to_naive_utc


class BookingAddon(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class BookingCreate(BaseModel):
    """Schema for creating a booking"""

    client_id: int
    address_id: int
    service_type: str = ServiceType.STANDARD
    scheduled_date: datetime
    duration: int = Field(..., gt=0, le=24 * 60)  # Minutes
    base_price: float = Field(..., ge=0)
    addons: List[BookingAddon] = []
    discount_amount: float = Field(0, ge=0)
    credits_applied: float = Field(0, ge=0)
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    assigned_cleaner_id: Optional[int] = None
    auto_assign: bool = False
    is_recurring: bool = False
    recurrence_frequency: Optional[str] = None
    recurrence_end_date: Optional[datetime] = None
    payment_method: Optional[str] = None

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v):
        if v not in ServiceType.ALL:
            raise ValueError(f"service_type must be one of {', '.join(ServiceType.ALL)}")
        return v

    @field_validator("recurrence_frequency")
    @classmethod
    def validate_frequency(cls, v):
        if v and v not in RecurrenceFrequency.ALL:
            raise ValueError(f"recurrence_frequency must be one of {', '.join(RecurrenceFrequency.ALL)}")
        return v

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v):
        if v and v not in PaymentMethod.ALL:
            raise ValueError(f"payment_method must be one of {', '.join(PaymentMethod.ALL)}")
        return v

    @field_validator("scheduled_date", "recurrence_end_date")
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_recurrence(self):
        if self.is_recurring and not self.recurrence_frequency:
            raise ValueError("recurrence_frequency is required for recurring bookings")
        if self.assigned_cleaner_id and self.auto_assign:
            raise ValueError("Choose either assigned_cleaner_id or auto_assign, not both")
        return self


class BookingUpdate(BaseModel):
    """Partial update; only fields that are sent are applied"""

    address_id: Optional[int] = None
    service_type: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    duration: Optional[int] = Field(None, gt=0, le=24 * 60)
    status: Optional[str] = None
    status_notes: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    discount_amount: Optional[float] = Field(None, ge=0)
    tax_amount: Optional[float] = Field(None, ge=0)
    tip_amount: Optional[float] = Field(None, ge=0)
    credits_applied: Optional[float] = Field(None, ge=0)
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    assigned_cleaner_id: Optional[int] = None
    is_paid: Optional[bool] = None
    payment_method: Optional[str] = None
    is_paused: Optional[bool] = None

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v):
        if v is not None and v not in ServiceType.ALL:
            raise ValueError(f"service_type must be one of {', '.join(ServiceType.ALL)}")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in BookingStatus.ALL:
            raise ValueError(f"status must be one of {', '.join(BookingStatus.ALL)}")
        return v

    @field_validator("scheduled_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)
    apply_cancellation_fee: bool = False
    hard_delete: bool = False


class AssignRequest(BaseModel):
    cleaner_id: Optional[int] = None
    auto_assign: bool = False

    @model_validator(mode="after")
    def check_target(self):
        if not self.cleaner_id and not self.auto_assign:
            raise ValueError("Provide cleaner_id or set auto_assign")
        return self


class NotesRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class CompleteJobRequest(BaseModel):
    cleaner_notes: Optional[str] = Field(None, max_length=2000)


class FeedbackSubmit(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


# ----------------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------------


class ClientSummary(BaseModel):
    id: int
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class AddressSummary(BaseModel):
    id: int
    label: Optional[str] = None
    street: str
    unit: Optional[str] = None
    city: str
    state: str
    zip: str
    gate_code: Optional[str] = None
    entry_instructions: Optional[str] = None
    has_pets: Optional[bool] = None
    pet_details: Optional[str] = None
    parking_info: Optional[str] = None

    class Config:
        from_attributes = True


class CleanerSummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    client_id: int
    address_id: int
    assigned_cleaner_id: Optional[int] = None
    service_type: str
    scheduled_date: datetime
    scheduled_end_date: datetime
    duration: int
    status: str
    status_history: Optional[list] = None
    base_price: float
    addons: Optional[list] = None
    subtotal: float
    discount_amount: float
    tax_amount: float
    credits_applied: float
    tip_amount: float
    final_price: float
    deposit_amount: Optional[float] = None
    is_paid: bool
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    cleaner_notes: Optional[str] = None
    is_recurring: bool
    recurrence_frequency: Optional[str] = None
    recurrence_end_date: Optional[datetime] = None
    recurrence_parent_id: Optional[int] = None
    is_paused: bool
    assigned_at: Optional[datetime] = None
    assignment_method: Optional[str] = None
    on_my_way_at: Optional[datetime] = None
    clocked_in_at: Optional[datetime] = None
    clocked_out_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_fee: Optional[float] = None
    customer_rating: Optional[int] = None
    customer_feedback: Optional[str] = None
    feedback_submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    client: Optional[ClientSummary] = None
    address: Optional[AddressSummary] = None
    assigned_cleaner: Optional[CleanerSummary] = None

    class Config:
        from_attributes = True


class CleanerJobResponse(BaseModel):
    """What the field app sees: no internal notes, no pricing breakdown"""

    id: int
    booking_number: str
    service_type: str
    scheduled_date: datetime
    scheduled_end_date: datetime
    duration: int
    status: str
    customer_notes: Optional[str] = None
    cleaner_notes: Optional[str] = None
    on_my_way_at: Optional[datetime] = None
    clocked_in_at: Optional[datetime] = None
    clocked_out_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    final_price: float
    tip_amount: float
    client: Optional[ClientSummary] = None
    address: Optional[AddressSummary] = None

    class Config:
        from_attributes = True

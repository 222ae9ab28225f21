"""Invoice domain schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ...constants import InvoiceStatus, PaymentMethod
from ...shared.validators import to_naive_utc


class LineItem(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: float = Field(1, gt=0)
    unit_price: float = Field(..., ge=0)


class InvoiceCreate(BaseModel):
    client_id: int
    booking_id: Optional[int] = None
    line_items: List[LineItem] = Field(..., min_length=1)
    discount_amount: float = Field(0, ge=0)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("issue_date", "due_date")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class InvoiceUpdate(BaseModel):
    line_items: Optional[List[LineItem]] = Field(None, min_length=1)
    discount_amount: Optional[float] = Field(None, ge=0)
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class FromBookingRequest(BaseModel):
    booking_id: int
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class PaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    method: str = PaymentMethod.CARD
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    captured_at: Optional[datetime] = None

    @field_validator("method")
    @classmethod
    def check_method(cls, v):
        if v not in PaymentMethod.ALL:
            raise ValueError(f"method must be one of {', '.join(PaymentMethod.ALL)}")
        return v

    @field_validator("captured_at")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)


class PaymentResponse(BaseModel):
    id: int
    client_id: int
    invoice_id: Optional[int] = None
    booking_id: Optional[int] = None
    amount: float
    method: str
    status: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    captured_at: datetime

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    booking_id: Optional[int] = None
    line_items: List[dict] = []
    subtotal: float
    discount_amount: float
    tax_amount: float
    total: float
    amount_paid: float
    balance_due: float
    status: str = InvoiceStatus.DRAFT
    issue_date: datetime
    due_date: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

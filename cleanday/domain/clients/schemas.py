"""Client domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_us_phone


class AddressCreate(BaseModel):
    label: Optional[str] = Field(None, max_length=100)
    is_primary: bool = False
    street: str = Field(..., min_length=1, max_length=255)
    unit: Optional[str] = Field(None, max_length=50)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=50)
    zip: str = Field(..., min_length=1, max_length=20)
    property_type: Optional[str] = None
    square_footage: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    has_pets: bool = False
    pet_details: Optional[str] = None
    parking_info: Optional[str] = None
    gate_code: Optional[str] = None
    entry_instructions: Optional[str] = None


class AddressUpdate(BaseModel):
    label: Optional[str] = Field(None, max_length=100)
    is_primary: Optional[bool] = None
    street: Optional[str] = Field(None, min_length=1, max_length=255)
    unit: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=50)
    zip: Optional[str] = Field(None, min_length=1, max_length=20)
    property_type: Optional[str] = None
    square_footage: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    has_pets: Optional[bool] = None
    pet_details: Optional[str] = None
    parking_info: Optional[str] = None
    gate_code: Optional[str] = None
    entry_instructions: Optional[str] = None


class ClientCreate(BaseModel):
    """Schema for creating a new client"""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    tags: List[str] = []
    source: Optional[str] = None
    notes: Optional[str] = None
    marketing_opt_out: bool = False
    preferred_cleaner_id: Optional[int] = None
    address: Optional[AddressCreate] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class ClientUpdate(BaseModel):
    """Schema for updating an existing client"""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    tags: Optional[List[str]] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    marketing_opt_out: Optional[bool] = None
    preferred_cleaner_id: Optional[int] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class CreditCreate(BaseModel):
    amount: float = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    expires_in_days: Optional[int] = Field(None, gt=0)


class AddressResponse(AddressCreate):
    id: int
    client_id: int

    class Config:
        from_attributes = True


class ClientResponse(BaseModel):
    """Schema for client response"""

    id: int
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    tags: Optional[List[str]] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    marketing_opt_out: bool
    preferred_cleaner_id: Optional[int] = None
    credit_balance: float
    total_spent: float
    total_bookings: int
    last_booking_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreditTransactionResponse(BaseModel):
    id: int
    type: str
    amount: float
    balance: float
    remaining: float = 0
    description: Optional[str] = None
    status: str
    expires_at: Optional[datetime] = None
    reference_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

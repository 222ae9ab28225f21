from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .constants import BookingStatus, CreditStatus, TimeOffStatus, UserRole
from .database import Base


class Company(Base):
    """A cleaning business (tenant). Every other record hangs off a company."""

    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    timezone = Column(String(64), default="America/New_York")

    # Pricing
    tax_rate = Column(Float, default=0)  # Percent, e.g. 8.25
    minimum_booking_price = Column(Float, nullable=True)
    require_deposit = Column(Boolean, default=False)
    deposit_percent = Column(Float, default=25)

    # Cancellation policy
    cancellation_window_hours = Column(Integer, default=24)
    cancellation_fee_percent = Column(Float, nullable=True)

    # Twilio credentials (auth token encrypted with Fernet)
    twilio_account_sid = Column(String(255), nullable=True)
    twilio_auth_token = Column(Text, nullable=True)
    twilio_phone_number = Column(String(20), nullable=True)

    # Feedback and reviews
    feedback_enabled = Column(Boolean, default=True)
    auto_send_review_request = Column(Boolean, default=True)
    review_request_delay_hours = Column(Integer, default=2)
    google_review_url = Column(String(500), nullable=True)

    # Referral / manual credits expire after this many days
    credit_expiry_days = Column(Integer, default=180)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    users = relationship("User", back_populates="company")
    clients = relationship("Client", back_populates="company")
    team_members = relationship("TeamMember", back_populates="company")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default=UserRole.OWNER, nullable=False)  # OWNER, ADMIN, CLEANER, CLIENT
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="users")
    team_member = relationship("TeamMember", back_populates="user", uselist=False)
    notification_preference = relationship(
        "NotificationPreference", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.email


class NotificationPreference(Base):
    """Per-user opt-ins for staff notifications"""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    email_booking_updates = Column(Boolean, default=True, nullable=False)
    sms_booking_updates = Column(Boolean, default=False, nullable=False)
    email_invoices = Column(Boolean, default=True, nullable=False)
    email_marketing = Column(Boolean, default=False, nullable=False)
    sms_marketing = Column(Boolean, default=False, nullable=False)
    daily_summary = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="notification_preference")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True)  # Portal login
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)  # E.164
    tags = Column(JSON, default=list)
    source = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    marketing_opt_out = Column(Boolean, default=False, nullable=False)
    preferred_cleaner_id = Column(Integer, ForeignKey("team_members.id"), nullable=True)

    # Running totals, updated when bookings are approved
    credit_balance = Column(Float, default=0, nullable=False)
    total_spent = Column(Float, default=0, nullable=False)
    total_bookings = Column(Integer, default=0, nullable=False)
    last_booking_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="clients")
    addresses = relationship(
        "Address", back_populates="client", cascade="all, delete-orphan", order_by="Address.id"
    )
    bookings = relationship("Booking", back_populates="client")
    credit_transactions = relationship(
        "CreditTransaction", back_populates="client", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    label = Column(String(100), nullable=True)  # Home, Office, Rental...
    is_primary = Column(Boolean, default=False, nullable=False)
    street = Column(String(255), nullable=False)
    unit = Column(String(50), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip = Column(String(20), nullable=False)
    property_type = Column(String(50), nullable=True)
    square_footage = Column(Integer, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Float, nullable=True)
    has_pets = Column(Boolean, default=False)
    pet_details = Column(String(500), nullable=True)
    parking_info = Column(String(500), nullable=True)
    gate_code = Column(String(50), nullable=True)
    entry_instructions = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="addresses")


def _unspent_amount(context):
    # Grants start fully unspent; debit rows never carry a remainder
    return max(context.get_current_parameters()["amount"], 0)


class CreditTransaction(Base):
    """Ledger of client credits. Positive rows are grants, negative rows are debits."""

    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)  # REFERRAL_EARNED, MANUAL, REDEEMED, EXPIRED
    amount = Column(Float, nullable=False)
    balance = Column(Float, nullable=False)  # Client balance after this row
    remaining = Column(Float, default=_unspent_amount, nullable=False)  # Unspent part of a grant
    description = Column(String(500), nullable=True)
    status = Column(String(20), default=CreditStatus.ACTIVE, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    reference_id = Column(Integer, nullable=True)  # Booking id or expired grant id
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="credit_transactions")


class TeamMember(Base):
    """Field cleaner profile linked to a CLEANER user"""

    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    hourly_rate = Column(Float, nullable=True)
    specialties = Column(JSON, default=list)
    service_areas = Column(JSON, default=list)  # Zip codes or city names
    # {"monday": {"enabled": true, "start": "08:00", "end": "17:00"}, ...}
    availability = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    total_jobs_completed = Column(Integer, default=0, nullable=False)
    total_earnings = Column(Float, default=0, nullable=False)
    average_rating = Column(Float, nullable=True)
    rating_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="team_members")
    user = relationship("User", back_populates="team_member")
    time_off_requests = relationship("TimeOffRequest", back_populates="team_member")

    @property
    def name(self) -> str:
        return self.user.full_name if self.user else ""


class TimeOffRequest(Base):
    __tablename__ = "time_off_requests"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    team_member_id = Column(Integer, ForeignKey("team_members.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # VACATION, SICK, PERSONAL, OTHER
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    reason = Column(String(1000), nullable=True)
    status = Column(String(20), default=TimeOffStatus.PENDING, nullable=False, index=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_note = Column(String(1000), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    team_member = relationship("TeamMember", back_populates="time_off_requests")


class Booking(Base):
    """A scheduled cleaning job and its lifecycle milestones"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    booking_number = Column(String(50), unique=True, index=True, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    assigned_cleaner_id = Column(Integer, ForeignKey("team_members.id"), nullable=True, index=True)

    service_type = Column(String(30), nullable=False)
    scheduled_date = Column(DateTime, nullable=False, index=True)
    scheduled_end_date = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # Minutes

    # Status workflow: SCHEDULED → CLEANER_COMPLETED → COMPLETED
    # Side exits from SCHEDULED: CANCELLED, NO_SHOW
    status = Column(String(30), default=BookingStatus.SCHEDULED, nullable=False, index=True)
    status_history = Column(JSON, default=list)

    # Pricing
    base_price = Column(Float, nullable=False)
    addons = Column(JSON, default=list)  # [{"name": "Oven", "price": 25, "quantity": 1}]
    subtotal = Column(Float, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    credits_applied = Column(Float, default=0, nullable=False)
    tip_amount = Column(Float, default=0, nullable=False)
    final_price = Column(Float, nullable=False)
    deposit_amount = Column(Float, nullable=True)

    # Payment
    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    payment_method = Column(String(30), nullable=True)
    payment_status = Column(String(20), nullable=True)

    # Notes
    customer_notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    cleaner_notes = Column(Text, nullable=True)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_frequency = Column(String(20), nullable=True)  # WEEKLY, BIWEEKLY, MONTHLY
    recurrence_end_date = Column(DateTime, nullable=True)
    recurrence_parent_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)
    is_paused = Column(Boolean, default=False, nullable=False)

    # Lifecycle milestones
    assigned_at = Column(DateTime, nullable=True)
    assignment_method = Column(String(20), nullable=True)  # MANUAL, AUTO
    on_my_way_at = Column(DateTime, nullable=True)
    clocked_in_at = Column(DateTime, nullable=True)
    clocked_out_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(String(1000), nullable=True)
    cancellation_fee = Column(Float, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)

    # Customer feedback
    feedback_token = Column(String(255), unique=True, nullable=True, index=True)
    feedback_sent_at = Column(DateTime, nullable=True)
    customer_rating = Column(Integer, nullable=True)
    customer_feedback = Column(Text, nullable=True)
    feedback_submitted_at = Column(DateTime, nullable=True)
    review_request_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="bookings")
    address = relationship("Address")
    assigned_cleaner = relationship("TeamMember", foreign_keys=[assigned_cleaner_id])
    company = relationship("Company")
    recurrence_parent = relationship("Booking", remote_side=[id], backref="recurrence_children")

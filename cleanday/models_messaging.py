"""
Messaging, campaign and prospect models
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from .constants import CampaignStatus, MessageStatus, ProspectStatus
from .database import Base


class Message(Base):
    """Log of every outbound SMS / e-mail attempt"""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # Sender, if any
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True, index=True)

    channel = Column(String(10), nullable=False)  # SMS, EMAIL
    type = Column(String(30), nullable=False, index=True)  # ON_MY_WAY, REMINDER, ...
    to = Column(String(255), nullable=False)
    from_ = Column("from", String(255), nullable=True)
    subject = Column(String(500), nullable=True)
    body = Column(Text, nullable=False)

    status = Column(String(20), default=MessageStatus.PENDING, nullable=False)
    provider_sid = Column(String(255), nullable=True)  # Twilio SID / Resend id
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class Campaign(Base):
    """Marketing blast to a segment of clients"""

    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String(255), nullable=False)
    channel = Column(String(10), nullable=False)  # SMS, EMAIL, BOTH
    subject = Column(String(500), nullable=True)
    body = Column(Text, nullable=False)
    # {"tags": ["vip"], "no_booking_days": 60}
    segment_filter = Column(JSON, nullable=True)
    status = Column(String(20), default=CampaignStatus.DRAFT, nullable=False, index=True)
    scheduled_for = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    recipient_count = Column(Integer, default=0, nullable=False)
    sent_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Prospect(Base):
    """Inbound lead. company_id is empty for platform-level sign-up interest."""

    __tablename__ = "prospects"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    business_name = Column(String(255), nullable=True)
    source = Column(String(100), nullable=True)
    status = Column(String(20), default=ProspectStatus.NEW, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

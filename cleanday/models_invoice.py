"""
Invoice and Payment Models for Client Invoicing
"""

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .constants import InvoiceStatus, PaymentStatus
from .database import Base


class Invoice(Base):
    """Invoice model for client billing"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, unique=True)

    invoice_number = Column(String(50), unique=True, nullable=False, index=True)

    # [{"description": "Deep clean", "quantity": 1, "unit_price": 180.0, "amount": 180.0}]
    line_items = Column(JSON, default=list)

    # Pricing
    subtotal = Column(Float, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    total = Column(Float, nullable=False)
    amount_paid = Column(Float, default=0, nullable=False)

    # Status: DRAFT, SENT, PARTIALLY_PAID, PAID, OVERDUE, CANCELLED
    status = Column(String(30), default=InvoiceStatus.DRAFT, nullable=False, index=True)

    # Dates
    issue_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client")
    booking = relationship("Booking")
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.id")

    @property
    def balance_due(self) -> float:
        return round(max(0.0, (self.total or 0) - (self.amount_paid or 0)), 2)


class Payment(Base):
    """A payment recorded against an invoice and/or booking"""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    method = Column(String(30), nullable=False)  # CASH, CHECK, CARD, BANK_TRANSFER, OTHER
    status = Column(String(20), default=PaymentStatus.PAID, nullable=False)
    reference = Column(String(255), nullable=True)  # Check number, transaction id...
    notes = Column(String(1000), nullable=True)
    captured_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    invoice = relationship("Invoice", back_populates="payments")
    client = relationship("Client")

"""
Invoice service

Invoices are built from free line items or from a booking. Payments are
recorded (not charged) against an invoice; a fully paid invoice marks its
booking paid too.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...constants import InvoiceStatus, PaymentStatus
from ...email_service import send_invoice_email
from ...models import Booking, Client, Company, User
from ...models_invoice import Invoice, Payment
from ...shared.dates import base36, epoch_millis, utcnow
from ...shared.pagination import paginate
from .pdf_service import generate_invoice_pdf
from .schemas import FromBookingRequest, InvoiceCreate, InvoiceUpdate, LineItem, PaymentCreate

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS_DAYS = 15


def generate_invoice_number(db: Session, company: Company) -> str:
    """INV-<first 3 slug characters>-<base36 ms timestamp>"""
    prefix = "".join(ch for ch in company.slug if ch.isalnum())[:3].upper() or "INV"
    millis = epoch_millis(utcnow())
    while True:
        number = f"INV-{prefix}-{base36(millis).upper()}"
        if not db.query(Invoice.id).filter(Invoice.invoice_number == number).first():
            return number
        millis += 1


def build_line_items(items: list[LineItem]) -> list[dict]:
    return [
        {
            "description": item.description,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "amount": round(item.quantity * item.unit_price, 2),
        }
        for item in items
    ]


def compute_totals(line_items: list[dict], discount: float, tax_rate: Optional[float]) -> dict:
    subtotal = round(sum(item["amount"] for item in line_items), 2)
    after_discount = max(0.0, subtotal - (discount or 0))
    tax = round(after_discount * (tax_rate or 0) / 100, 2)
    return {
        "subtotal": subtotal,
        "discount_amount": round(discount or 0, 2),
        "tax_amount": tax,
        "total": round(after_discount + tax, 2),
    }


class InvoiceService:
    """Service layer for invoices and payments"""

    def __init__(self, db: Session):
        self.db = db

    def _company(self, user: User) -> Company:
        return self.db.query(Company).filter(Company.id == user.company_id).first()

    def list_invoices(
        self,
        user: User,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Invoice], dict]:
        query = self.db.query(Invoice).filter(Invoice.company_id == user.company_id)
        if status:
            query = query.filter(Invoice.status == status.upper())
        if client_id:
            query = query.filter(Invoice.client_id == client_id)
        return paginate(query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()), page, limit)

    def get_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = (
            self.db.query(Invoice)
            .options(joinedload(Invoice.client), joinedload(Invoice.payments))
            .filter(Invoice.id == invoice_id, Invoice.company_id == user.company_id)
            .first()
        )
        if not invoice:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice

    def _get_client(self, client_id: int, user: User) -> Client:
        client = (
            self.db.query(Client).filter(Client.id == client_id, Client.company_id == user.company_id).first()
        )
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def create_invoice(self, data: InvoiceCreate, user: User) -> Invoice:
        client = self._get_client(data.client_id, user)
        company = self._company(user)

        if data.booking_id:
            self._get_booking_for_invoice(data.booking_id, user)

        line_items = build_line_items(data.line_items)
        issue_date = data.issue_date or utcnow()
        invoice = Invoice(
            company_id=company.id,
            client_id=client.id,
            booking_id=data.booking_id,
            invoice_number=generate_invoice_number(self.db, company),
            line_items=line_items,
            status=InvoiceStatus.DRAFT,
            issue_date=issue_date,
            due_date=data.due_date or issue_date + timedelta(days=DEFAULT_PAYMENT_TERMS_DAYS),
            notes=data.notes,
            amount_paid=0,
            **compute_totals(line_items, data.discount_amount, company.tax_rate),
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"🧾 Invoice {invoice.invoice_number} created for client {client.id}")
        return invoice

    def _get_booking_for_invoice(self, booking_id: int, user: User) -> Booking:
        booking = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.company_id == user.company_id)
            .first()
        )
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if self.db.query(Invoice.id).filter(Invoice.booking_id == booking.id).first():
            raise HTTPException(status_code=409, detail="An invoice already exists for this booking")
        return booking

    def create_from_booking(self, data: FromBookingRequest, user: User) -> Invoice:
        """One invoice per booking, priced exactly as the booking was"""
        booking = self._get_booking_for_invoice(data.booking_id, user)
        company = self._company(user)

        label = booking.service_type.replace("_", " ").title()
        line_items = [
            {
                "description": f"{label} cleaning ({booking.booking_number})",
                "quantity": 1,
                "unit_price": booking.base_price,
                "amount": round(booking.base_price, 2),
            }
        ]
        for addon in booking.addons or []:
            quantity = addon.get("quantity", 1)
            line_items.append(
                {
                    "description": addon.get("name", "Add-on"),
                    "quantity": quantity,
                    "unit_price": addon.get("price", 0),
                    "amount": round(addon.get("price", 0) * quantity, 2),
                }
            )
        if booking.tip_amount:
            line_items.append(
                {"description": "Tip", "quantity": 1, "unit_price": booking.tip_amount, "amount": booking.tip_amount}
            )

        notes = data.notes
        if booking.credits_applied:
            credit_note = f"Includes ${booking.credits_applied:.2f} in account credits."
            notes = f"{notes}\n{credit_note}" if notes else credit_note

        issue_date = utcnow()
        invoice = Invoice(
            company_id=company.id,
            client_id=booking.client_id,
            booking_id=booking.id,
            invoice_number=generate_invoice_number(self.db, company),
            line_items=line_items,
            subtotal=round(sum(item["amount"] for item in line_items), 2),
            # Credits reduce the amount owed the same way a discount does
            discount_amount=round((booking.discount_amount or 0) + (booking.credits_applied or 0), 2),
            tax_amount=booking.tax_amount or 0,
            total=booking.final_price,
            amount_paid=0,
            status=InvoiceStatus.DRAFT,
            issue_date=issue_date,
            due_date=data.due_date or issue_date + timedelta(days=DEFAULT_PAYMENT_TERMS_DAYS),
            notes=notes,
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"🧾 Invoice {invoice.invoice_number} created from booking {booking.booking_number}")
        return invoice

    def update_invoice(self, invoice_id: int, data: InvoiceUpdate, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        if invoice.status != InvoiceStatus.DRAFT:
            raise HTTPException(status_code=400, detail="Only draft invoices can be edited")

        updates = data.model_dump(exclude_unset=True)
        if "due_date" in updates:
            invoice.due_date = data.due_date
        if "notes" in updates:
            invoice.notes = data.notes

        if data.line_items is not None or data.discount_amount is not None:
            line_items = build_line_items(data.line_items) if data.line_items is not None else invoice.line_items
            discount = data.discount_amount if data.discount_amount is not None else invoice.discount_amount
            invoice.line_items = line_items
            for key, value in compute_totals(line_items, discount, self._company(user).tax_rate).items():
                setattr(invoice, key, value)

        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def render_pdf(self, invoice_id: int, user: User) -> tuple[Invoice, bytes]:
        invoice = self.get_invoice(invoice_id, user)
        return invoice, generate_invoice_pdf(invoice, self._company(user))

    async def send_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        if invoice.status in (InvoiceStatus.CANCELLED, InvoiceStatus.PAID):
            raise HTTPException(status_code=400, detail=f"Cannot send a {invoice.status.lower()} invoice")
        if not invoice.client or not invoice.client.email:
            raise HTTPException(status_code=400, detail="Client has no email address")

        company = self._company(user)
        pdf_bytes = generate_invoice_pdf(invoice, company)
        ok, error = await send_invoice_email(
            db=self.db,
            company=company,
            to=invoice.client.email,
            client_id=invoice.client_id,
            client_name=invoice.client.first_name,
            invoice_number=invoice.invoice_number,
            amount=invoice.balance_due,
            due_date=invoice.due_date.strftime("%B %d, %Y") if invoice.due_date else "on receipt",
            pdf_bytes=pdf_bytes,
            user_id=user.id,
        )
        if not ok:
            logger.error(f"❌ Invoice {invoice.invoice_number} not sent: {error}")
            raise HTTPException(status_code=502, detail=f"Failed to send invoice: {error}")

        invoice.sent_at = utcnow()
        if invoice.status == InvoiceStatus.DRAFT:
            invoice.status = InvoiceStatus.SENT
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"📧 Invoice {invoice.invoice_number} sent to {invoice.client.email}")
        return invoice

    def record_payment(self, invoice_id: int, data: PaymentCreate, user: User) -> tuple[Invoice, Payment]:
        invoice = self.get_invoice(invoice_id, user)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise HTTPException(status_code=400, detail="Cannot record a payment on a cancelled invoice")

        outstanding = invoice.balance_due
        if data.amount > outstanding + 0.005:
            raise HTTPException(
                status_code=400,
                detail=f"Payment exceeds the outstanding balance of ${outstanding:.2f}",
            )

        now = utcnow()
        payment = Payment(
            company_id=invoice.company_id,
            client_id=invoice.client_id,
            invoice_id=invoice.id,
            booking_id=invoice.booking_id,
            amount=round(data.amount, 2),
            method=data.method,
            status=PaymentStatus.PAID,
            reference=data.reference,
            notes=data.notes,
            captured_at=data.captured_at or now,
        )
        self.db.add(payment)

        invoice.amount_paid = round((invoice.amount_paid or 0) + payment.amount, 2)
        if invoice.balance_due <= 0:
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = now
            if invoice.booking_id:
                booking = self.db.query(Booking).filter(Booking.id == invoice.booking_id).first()
                booking.is_paid = True
                booking.paid_at = now
                booking.payment_method = data.method
                booking.payment_status = PaymentStatus.PAID
        else:
            invoice.status = InvoiceStatus.PARTIALLY_PAID

        self.db.commit()
        self.db.refresh(invoice)
        self.db.refresh(payment)
        logger.info(f"💰 ${payment.amount:.2f} recorded on {invoice.invoice_number} ({invoice.status})")
        return invoice, payment

    def cancel_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise HTTPException(status_code=400, detail="Invoice is already cancelled")
        if invoice.amount_paid:
            raise HTTPException(status_code=400, detail="Cannot cancel an invoice with recorded payments")

        invoice.status = InvoiceStatus.CANCELLED
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"🚫 Invoice {invoice.invoice_number} cancelled")
        return invoice

    def refresh_overdue(self, user: User, now: Optional[datetime] = None) -> list[Invoice]:
        """Flip past-due open invoices to OVERDUE and return every overdue invoice"""
        now = now or utcnow()
        stale = (
            self.db.query(Invoice)
            .filter(
                Invoice.company_id == user.company_id,
                Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID]),
                Invoice.due_date.isnot(None),
                Invoice.due_date < now,
            )
            .all()
        )
        for invoice in stale:
            invoice.status = InvoiceStatus.OVERDUE
        if stale:
            self.db.commit()
            logger.info(f"⏰ {len(stale)} invoice(s) marked overdue for company {user.company_id}")

        return (
            self.db.query(Invoice)
            .filter(Invoice.company_id == user.company_id, Invoice.status == InvoiceStatus.OVERDUE)
            .order_by(Invoice.due_date)
            .all()
        )

    def list_payments(
        self, user: User, client_id: Optional[int] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Payment], dict]:
        query = self.db.query(Payment).filter(Payment.company_id == user.company_id)
        if client_id:
            query = query.filter(Payment.client_id == client_id)
        return paginate(query.order_by(Payment.captured_at.desc(), Payment.id.desc()), page, limit)

"""Invoice router - invoices, PDFs and recorded payments"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    FromBookingRequest,
    InvoiceCreate,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResponse,
)
from .service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])
payments_router = APIRouter(prefix="/api/payments", tags=["Invoices"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


def serialize(invoice) -> InvoiceResponse:
    return InvoiceResponse.model_validate(invoice)


@router.get("")
async def list_invoices(
    status: Optional[str] = Query(None),
    client_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoices, pagination = service.list_invoices(current_user, status, client_id, page, limit)
    return {"success": True, "data": [serialize(i) for i in invoices], "pagination": pagination}


@router.post("", status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    return {"success": True, "data": serialize(service.create_invoice(data, current_user))}


@router.post("/from-booking", status_code=201)
async def create_invoice_from_booking(
    data: FromBookingRequest,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    return {"success": True, "data": serialize(service.create_from_booking(data, current_user))}


@router.get("/overdue")
async def overdue_invoices(
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Past-due invoices; open ones past their due date are flipped to OVERDUE first"""
    invoices = service.refresh_overdue(current_user)
    return {
        "success": True,
        "data": [serialize(i) for i in invoices],
        "total_outstanding": round(sum(i.balance_due for i in invoices), 2),
    }


@router.get("/{invoice_id}")
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.get_invoice(invoice_id, current_user)
    return {
        "success": True,
        "data": {
            **serialize(invoice).model_dump(),
            "payments": [PaymentResponse.model_validate(p) for p in invoice.payments],
        },
    }


@router.patch("/{invoice_id}")
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    return {"success": True, "data": serialize(service.update_invoice(invoice_id, data, current_user))}


@router.post("/{invoice_id}/send")
async def send_invoice(
    invoice_id: int,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await service.send_invoice(invoice_id, current_user)
    return {"success": True, "data": serialize(invoice), "message": "Invoice sent"}


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, pdf_bytes = service.render_pdf(invoice_id, current_user)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'},
    )


@router.post("/{invoice_id}/payments", status_code=201)
async def record_payment(
    invoice_id: int,
    data: PaymentCreate,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, payment = service.record_payment(invoice_id, data, current_user)
    return {
        "success": True,
        "data": PaymentResponse.model_validate(payment),
        "invoice": serialize(invoice),
    }


@router.post("/{invoice_id}/cancel")
async def cancel_invoice(
    invoice_id: int,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.cancel_invoice(invoice_id, current_user)
    return {"success": True, "data": serialize(invoice), "message": "Invoice cancelled"}


@payments_router.get("")
async def list_payments(
    client_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    payments, pagination = service.list_payments(current_user, client_id, page, limit)
    return {
        "success": True,
        "data": [PaymentResponse.model_validate(p) for p in payments],
        "pagination": pagination,
    }

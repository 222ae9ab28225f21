"""
Messages API
Manual SMS to clients, the message log and the built-in templates
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from ..auth import require_admin
from ..database import get_db
from ..models import Booking, Client, Company, User
from ..models_messaging import Message
from ..schemas import SendMessageRequest
from ..services.notification_service import MESSAGE_TEMPLATES, booking_variables, fill_template
from ..services.twilio_service import is_sms_configured, send_sms
from ..shared.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["Messages"])


def message_to_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "channel": message.channel,
        "type": message.type,
        "to": message.to,
        "from": message.from_,
        "subject": message.subject,
        "body": message.body,
        "status": message.status,
        "provider_sid": message.provider_sid,
        "error_message": message.error_message,
        "client_id": message.client_id,
        "booking_id": message.booking_id,
        "campaign_id": message.campaign_id,
        "user_id": message.user_id,
        "created_at": message.created_at,
    }


@router.post("/send")
async def send_message(
    data: SendMessageRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Text a client (by id) or any E.164 number, from a template or free text"""
    company = db.query(Company).filter(Company.id == current_user.company_id).first()
    if not is_sms_configured(company):
        raise HTTPException(status_code=400, detail="SMS is not configured for this company")

    client = None
    if data.client_id:
        client = (
            db.query(Client)
            .filter(Client.id == data.client_id, Client.company_id == company.id)
            .first()
        )
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")

    booking = None
    if data.booking_id:
        booking = (
            db.query(Booking)
            .options(joinedload(Booking.client), joinedload(Booking.address))
            .filter(Booking.id == data.booking_id, Booking.company_id == company.id)
            .first()
        )
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        client = client or booking.client

    to_phone = data.to or (client.phone if client else None)
    if not to_phone:
        raise HTTPException(status_code=400, detail="Client has no phone number")

    message_type = data.type
    if data.template:
        template = MESSAGE_TEMPLATES.get(data.template.upper())
        if not template:
            raise HTTPException(status_code=400, detail=f"Unknown template: {data.template}")
        message_type = data.template.upper()
        if booking:
            variables = booking_variables(booking, **data.variables)
        else:
            first_name = client.first_name if client else "there"
            variables = {
                "client_name": first_name,
                "first_name": first_name,
                "business_name": company.name,
                "company_name": company.name,
                **data.variables,
            }
        body = fill_template(template["body"], variables)
    else:
        body = fill_template(data.body, data.variables) if data.variables else data.body

    ok, error = await send_sms(
        db,
        company,
        to_phone,
        body,
        message_type,
        client_id=client.id if client else None,
        booking_id=booking.id if booking else None,
        user_id=current_user.id,
    )
    if not ok:
        raise HTTPException(status_code=502, detail=f"Failed to send SMS: {error}")

    return {"success": True, "data": {"to": to_phone, "body": body, "type": message_type}, "message": "Message sent"}


@router.get("/history")
async def message_history(
    client_id: Optional[int] = Query(None),
    booking_id: Optional[int] = Query(None),
    type: Optional[str] = Query(None),
    channel: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Message).filter(Message.company_id == current_user.company_id)
    if client_id:
        query = query.filter(Message.client_id == client_id)
    if booking_id:
        query = query.filter(Message.booking_id == booking_id)
    if type:
        query = query.filter(Message.type == type.upper())
    if channel:
        query = query.filter(Message.channel == channel.upper())

    messages, pagination = paginate(query.order_by(Message.created_at.desc(), Message.id.desc()), page, limit)
    return {"success": True, "data": [message_to_dict(m) for m in messages], "pagination": pagination}


@router.get("/templates")
async def list_templates(current_user: User = Depends(require_admin)):
    return {
        "success": True,
        "data": [
            {"type": message_type, "name": template["name"], "body": template["body"]}
            for message_type, template in MESSAGE_TEMPLATES.items()
        ],
    }

"""
Email Service using Resend
Compiles MJML templates to HTML and logs client e-mails as Message rows
"""

import base64
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html
from sqlalchemy.orm import Session

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .constants import MessageChannel, MessageStatus, MessageType
from .email_templates import booking_update_template, campaign_template, invoice_template
from .models import Company, User
from .models_messaging import Message

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # mjml_to_html returns a mapping with 'html' and 'errors' keys
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    return str(result)


def _resend_send(email_data: dict) -> dict:
    return resend.Emails.send(email_data)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> tuple[bool, Optional[str], Optional[str]]:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address
        attachments: Optional list of {"filename", "content": bytes}

    Returns:
        Tuple of (success, error_message, provider_id)
    """
    if not RESEND_API_KEY:
        logger.warning("⚠️ RESEND_API_KEY missing, e-mail skipped")
        return False, "Email service not configured", None

    recipients = [to] if isinstance(to, str) else to
    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": compile_mjml_to_html(mjml_content),
    }

    if attachments:
        email_data["attachments"] = [
            {
                "filename": attachment["filename"],
                "content": base64.b64encode(attachment["content"]).decode(),
            }
            for attachment in attachments
        ]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = _resend_send(email_data)
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        return False, str(e), None

    provider_id = response.get("id") if isinstance(response, dict) else None
    logger.info(f"✅ Email sent successfully via Resend: {provider_id}")
    return True, None, provider_id


async def send_logged_email(
    db: Session,
    company: Company,
    to: str,
    subject: str,
    mjml_content: str,
    message_type: str,
    client_id: Optional[int] = None,
    booking_id: Optional[int] = None,
    campaign_id: Optional[int] = None,
    user_id: Optional[int] = None,
    attachments: Optional[list[dict]] = None,
    body_text: Optional[str] = None,
) -> tuple[bool, Optional[str]]:
    """Send a client e-mail and record it in the message log"""
    ok, error, provider_id = await send_email(
        to=to, subject=subject, mjml_content=mjml_content, attachments=attachments
    )
    db.add(
        Message(
            company_id=company.id,
            user_id=user_id,
            client_id=client_id,
            booking_id=booking_id,
            campaign_id=campaign_id,
            channel=MessageChannel.EMAIL,
            type=message_type,
            to=to,
            from_=EMAIL_FROM_ADDRESS,
            subject=subject,
            body=body_text or subject,
            status=MessageStatus.SENT if ok else MessageStatus.FAILED,
            provider_sid=provider_id,
            error_message=error,
        )
    )
    db.commit()
    return ok, error


# ============================================
# Pre-built e-mails
# ============================================


async def send_invoice_email(
    db: Session,
    company: Company,
    to: str,
    client_id: int,
    client_name: str,
    invoice_number: str,
    amount: float,
    due_date: str,
    pdf_bytes: bytes,
    user_id: Optional[int] = None,
) -> tuple[bool, Optional[str]]:
    mjml_content = invoice_template(
        client_name=client_name,
        company_name=company.name,
        invoice_number=invoice_number,
        amount=amount,
        due_date=due_date,
    )
    return await send_logged_email(
        db=db,
        company=company,
        to=to,
        subject=f"Invoice {invoice_number} from {company.name}",
        mjml_content=mjml_content,
        message_type=MessageType.INVOICE,
        client_id=client_id,
        user_id=user_id,
        attachments=[{"filename": f"{invoice_number}.pdf", "content": pdf_bytes}],
        body_text=f"Invoice {invoice_number} for ${amount:,.2f}",
    )


async def send_campaign_email(
    db: Session,
    company: Company,
    to: str,
    subject: str,
    body: str,
    client_id: int,
    campaign_id: int,
) -> tuple[bool, Optional[str]]:
    return await send_logged_email(
        db=db,
        company=company,
        to=to,
        subject=subject,
        mjml_content=campaign_template(subject, body, company.name),
        message_type=MessageType.CAMPAIGN,
        client_id=client_id,
        campaign_id=campaign_id,
        body_text=body,
    )


async def send_staff_booking_email(
    user: User, headline: str, booking_number: str, client_name: str, when: str
) -> tuple[bool, Optional[str]]:
    """Staff notifications are not written to the client message log"""
    ok, error, _ = await send_email(
        to=user.email,
        subject=f"{headline} ({booking_number})",
        mjml_content=booking_update_template(
            staff_name=user.first_name or user.email,
            headline=headline,
            booking_number=booking_number,
            client_name=client_name,
            when=when,
        ),
    )
    return ok, error

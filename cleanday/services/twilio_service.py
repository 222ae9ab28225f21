"""
Twilio SMS Service
Sends client text messages for booking events and logs every attempt
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
from ..constants import MessageChannel, MessageStatus
from ..models import Company
from ..models_messaging import Message
from ..security_utils import decrypt_credential, mask_sensitive_data

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def get_twilio_credentials(company: Company) -> Optional[tuple[str, str, str]]:
    """
    Resolve (account_sid, auth_token, from_number) for a company.

    The company's own account wins; the platform account is the fallback.
    """
    if company.twilio_account_sid and company.twilio_auth_token and company.twilio_phone_number:
        auth_token = decrypt_credential(company.twilio_auth_token)
        if auth_token:
            return company.twilio_account_sid, auth_token, company.twilio_phone_number

    if TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER:
        return TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER

    return None


def is_sms_configured(company: Company) -> bool:
    return get_twilio_credentials(company) is not None


async def _twilio_post(account_sid: str, auth_token: str, data: dict) -> tuple[int, dict]:
    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{TWILIO_API_BASE}/Accounts/{account_sid}/Messages.json",
            auth=(account_sid, auth_token),
            data=data,
            timeout=10.0,
        )
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    return response.status_code, payload


async def send_sms(
    db: Session,
    company: Company,
    to_phone: Optional[str],
    message_body: str,
    message_type: str,
    client_id: Optional[int] = None,
    booking_id: Optional[int] = None,
    campaign_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        db: Database session
        company: Sending company (its credentials, or the platform fallback)
        to_phone: Recipient phone number (must be in E.164 format)
        message_body: SMS message content
        message_type: ON_MY_WAY, REMINDER, CONFIRMATION, ...
        client_id / booking_id / campaign_id / user_id: Message log links

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        logger.debug(f"No phone number provided for company {company.id}")
        return False, "No phone number provided"

    # Ensure phone number is in E.164 format
    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {mask_sensitive_data(to_phone)}")
        return False, "Phone number must be in E.164 format (e.g., +1234567890)"

    credentials = get_twilio_credentials(company)
    if not credentials:
        logger.debug(f"No Twilio credentials for company {company.id}")
        return False, "SMS is not configured"

    account_sid, auth_token, from_number = credentials

    message = Message(
        company_id=company.id,
        user_id=user_id,
        client_id=client_id,
        booking_id=booking_id,
        campaign_id=campaign_id,
        channel=MessageChannel.SMS,
        type=message_type,
        to=to_phone,
        from_=from_number,
        body=message_body,
        status=MessageStatus.PENDING,
    )

    try:
        logger.info(f"📱 Sending SMS: type={message_type}, to={mask_sensitive_data(to_phone)}, company={company.id}")
        status_code, result = await _twilio_post(
            account_sid, auth_token, {"To": to_phone, "From": from_number, "Body": message_body}
        )
    except httpx.HTTPError as e:
        logger.error(f"❌ Twilio API error: {str(e)}")
        message.status = MessageStatus.FAILED
        message.error_message = str(e)
        db.add(message)
        db.commit()
        return False, str(e)

    if status_code in (200, 201):
        message.status = MessageStatus.SENT
        message.provider_sid = result.get("sid")
        db.add(message)
        db.commit()
        logger.info(f"✅ SMS sent: {message_type} to {mask_sensitive_data(to_phone)} (SID: {message.provider_sid})")
        return True, None

    error_message = result.get("message", f"Twilio returned HTTP {status_code}")
    error_code = result.get("code")
    message.status = MessageStatus.FAILED
    message.error_message = f"[{error_code}] {error_message}" if error_code else error_message
    db.add(message)
    db.commit()
    logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
    return False, error_message

"""
Notification Service
Client SMS for booking events and staff e-mails gated by notification preferences
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..constants import MessageType, UserRole
from ..domain.scheduling.time_utils import format_currency
from ..models import Booking, NotificationPreference, User
from .twilio_service import send_sms

logger = logging.getLogger(__name__)

# Built-in SMS templates. {{placeholders}} are filled by fill_template.
MESSAGE_TEMPLATES = {
    MessageType.REMINDER: {
        "name": "Appointment reminder",
        "body": (
            "Hi {{client_name}}! Reminder: your {{service}} cleaning with {{business_name}} "
            "is on {{date}} at {{time}} at {{address}}. Reply to this message with any questions."
        ),
    },
    MessageType.ON_MY_WAY: {
        "name": "Cleaner on the way",
        "body": (
            "Hi {{client_name}}! {{cleaner_name}} from {{business_name}} is on the way to "
            "{{address}}. We'll be there soon!"
        ),
    },
    MessageType.CONFIRMATION: {
        "name": "Booking confirmation",
        "body": (
            "Hi {{client_name}}! Your cleaning with {{business_name}} is confirmed for {{date}} "
            "at {{time}}. Total: {{price}}. See you then!"
        ),
    },
    MessageType.COMPLETION: {
        "name": "Job completed",
        "body": (
            "Hi {{client_name}}! Your cleaning is complete. Thank you for choosing "
            "{{business_name}}! Tell us how we did: {{feedback_url}}"
        ),
    },
    MessageType.REVIEW_REQUEST: {
        "name": "Review request",
        "body": (
            "Hi {{client_name}}! Thanks again for the great rating. Would you share it on "
            "Google? {{review_url}} - {{business_name}}"
        ),
    },
}


def fill_template(template: str, variables: dict) -> str:
    """Replace {{key}} placeholders with their values; unknown keys stay as-is"""
    result = template
    for key, value in variables.items():
        result = result.replace("{{" + key + "}}", "" if value is None else str(value))
    return result


def format_address(booking: Booking) -> str:
    address = booking.address
    if not address:
        return ""
    return f"{address.street}, {address.city}"


def booking_variables(booking: Booking, **extra) -> dict:
    """Template variables describing a booking"""
    client = booking.client
    variables = {
        "client_name": (client.first_name if client else None) or "there",
        "first_name": (client.first_name if client else None) or "there",
        "business_name": booking.company.name if booking.company else "CleanDay",
        "company_name": booking.company.name if booking.company else "CleanDay",
        "date": booking.scheduled_date.strftime("%A, %b %d"),
        "time": booking.scheduled_date.strftime("%I:%M %p").lstrip("0"),
        "price": format_currency(booking.final_price or 0),
        "address": format_address(booking),
        "service": booking.service_type.replace("_", " ").lower(),
        "booking_number": booking.booking_number,
    }
    variables.update(extra)
    return variables


async def send_booking_sms(
    db: Session,
    booking: Booking,
    message_type: str,
    user_id: Optional[int] = None,
    body: Optional[str] = None,
    **variables,
) -> tuple[bool, Optional[str]]:
    """
    Text the booking's client using a built-in template (or an explicit body).

    Never raises: failures come back as (False, error) and are logged.
    """
    client = booking.client
    if not client or not client.phone:
        logger.debug(f"⚠️ No phone number for booking {booking.booking_number}")
        return False, "Client has no phone number"

    if body is None:
        template = MESSAGE_TEMPLATES[message_type]["body"]
        body = fill_template(template, booking_variables(booking, **variables))

    ok, error = await send_sms(
        db=db,
        company=booking.company,
        to_phone=client.phone,
        message_body=body,
        message_type=message_type,
        client_id=client.id,
        booking_id=booking.id,
        user_id=user_id,
    )
    if not ok:
        logger.warning(f"⚠️ {message_type} SMS not sent for {booking.booking_number}: {error}")
    return ok, error


def get_or_create_preferences(db: Session, user: User) -> NotificationPreference:
    prefs = db.query(NotificationPreference).filter(NotificationPreference.user_id == user.id).first()
    if not prefs:
        prefs = NotificationPreference(user_id=user.id)
        db.add(prefs)
        db.commit()
        db.refresh(prefs)
    return prefs


async def notify_staff_booking_update(db: Session, booking: Booking, headline: str) -> int:
    """
    E-mail OWNER/ADMIN users who opted into booking updates.

    Returns:
        Number of e-mails sent
    """
    from ..email_service import send_staff_booking_email

    staff = (
        db.query(User)
        .filter(
            User.company_id == booking.company_id,
            User.role.in_(UserRole.STAFF),
            User.is_active.is_(True),
        )
        .all()
    )

    sent = 0
    for user in staff:
        prefs = user.notification_preference
        # No row yet means defaults, which include booking e-mails
        if prefs is not None and not prefs.email_booking_updates:
            continue
        ok, error = await send_staff_booking_email(
            user=user,
            headline=headline,
            booking_number=booking.booking_number,
            client_name=booking.client.full_name if booking.client else "",
            when=booking.scheduled_date.strftime("%a %b %d, %I:%M %p"),
        )
        if ok:
            sent += 1
        else:
            logger.debug(f"ℹ️ Staff e-mail to {user.email} skipped: {error}")
    return sent

"""Company settings for the signed-in user's business"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import require_admin, require_owner
from ..database import get_db
from ..models import Company, User
from ..schemas import CompanySettingsResponse, CompanySettingsUpdate
from ..security_utils import encrypt_credential
from ..services.twilio_service import is_sms_configured

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/company", tags=["Company"])

# Sending null or "" for these clears them
CLEARABLE = {
    "twilio_account_sid",
    "twilio_phone_number",
    "google_review_url",
    "minimum_booking_price",
    "cancellation_fee_percent",
}


def serialize_company(company: Company) -> CompanySettingsResponse:
    settings = CompanySettingsResponse.model_validate(company)
    settings.sms_configured = is_sms_configured(company)
    return settings


@router.get("/settings")
async def get_settings(current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    company = db.query(Company).filter(Company.id == current_user.company_id).first()
    return {"success": True, "data": serialize_company(company)}


@router.patch("/settings")
async def update_settings(
    data: CompanySettingsUpdate,
    current_user: User = Depends(require_owner),
    db: Session = Depends(get_db),
):
    """Owner-only. The Twilio auth token is stored encrypted and never echoed back."""
    company = db.query(Company).filter(Company.id == current_user.company_id).first()
    updates = data.model_dump(exclude_unset=True)

    if "twilio_auth_token" in updates:
        token = updates.pop("twilio_auth_token")
        company.twilio_auth_token = encrypt_credential(token) if token else None
        logger.info(f"🔐 Twilio credentials updated for company {company.id}")

    for key, value in updates.items():
        if value in (None, "") and key not in CLEARABLE:
            continue
        setattr(company, key, value if value != "" else None)

    db.commit()
    db.refresh(company)
    return {"success": True, "data": serialize_company(company), "message": "Settings updated"}

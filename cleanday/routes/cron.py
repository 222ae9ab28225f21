"""
Cron API
Endpoints an external scheduler hits. Protected by CRON_SECRET when it is set.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import verify_cron_secret
from ..database import get_db
from ..services import cron_tasks
from ..shared.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.get("/expire-credits")
async def preview_expire_credits(db: Session = Depends(get_db)):
    """How many grants the next run would expire"""
    return {"success": True, "data": cron_tasks.preview_expired_credits(db, utcnow())}


@router.post("/expire-credits")
async def run_expire_credits(db: Session = Depends(get_db)):
    logger.info("🕐 Cron: expire-credits")
    return {"success": True, "data": cron_tasks.expire_credits(db, utcnow())}


@router.get("/send-review-requests")
async def run_send_review_requests(db: Session = Depends(get_db)):
    logger.info("🕐 Cron: send-review-requests")
    return {"success": True, "data": await cron_tasks.send_review_requests(db, utcnow())}


@router.get("/send-reminders")
async def run_send_reminders(db: Session = Depends(get_db)):
    logger.info("🕐 Cron: send-reminders")
    return {"success": True, "data": await cron_tasks.send_reminders(db, utcnow())}


@router.get("/recurring")
async def run_generate_recurring(db: Session = Depends(get_db)):
    logger.info("🕐 Cron: recurring")
    return {"success": True, "data": cron_tasks.generate_recurring(db, utcnow())}

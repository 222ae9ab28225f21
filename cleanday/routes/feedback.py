"""Public feedback links sent to clients after a job is finished"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..domain.scheduling.feedback_service import feedback_summary, get_booking_by_token, submit_feedback
from ..domain.scheduling.schemas import FeedbackSubmit

router = APIRouter(prefix="/api/feedback", tags=["Feedback"])


@router.get("/{token}")
async def get_feedback_page(token: str, db: Session = Depends(get_db)):
    """No auth: the token is the credential"""
    booking = get_booking_by_token(db, token)
    return {"success": True, "data": feedback_summary(booking)}


@router.post("/{token}")
async def post_feedback(token: str, data: FeedbackSubmit, db: Session = Depends(get_db)):
    booking = submit_feedback(db, token, data)
    summary = feedback_summary(booking)
    # Only happy customers are pointed at the public review page
    if data.rating < 4:
        summary["google_review_url"] = None
    return {"success": True, "data": summary, "message": "Thank you for your feedback!"}

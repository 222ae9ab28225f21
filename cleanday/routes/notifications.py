from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import NotificationPreferencesResponse, NotificationPreferencesUpdate
from ..services.notification_service import get_or_create_preferences

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/preferences")
async def get_preferences(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user's notification settings, created with defaults on first read"""
    prefs = get_or_create_preferences(db, current_user)
    return {"success": True, "data": NotificationPreferencesResponse.model_validate(prefs)}


@router.put("/preferences")
async def update_preferences(
    data: NotificationPreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    prefs = get_or_create_preferences(db, current_user)
    for key, value in data.model_dump(exclude_none=True).items():
        setattr(prefs, key, value)
    db.commit()
    db.refresh(prefs)
    return {"success": True, "data": NotificationPreferencesResponse.model_validate(prefs)}

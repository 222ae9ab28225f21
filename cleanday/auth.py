import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import CRON_SECRET, SESSION_COOKIE_NAME
from .constants import UserRole
from .database import get_db
from .models import Client, TeamMember, User
from .security_utils import constant_time_compare, read_session_token, verify_jwt_token

logger = logging.getLogger(__name__)

# Bearer is optional: the web dashboard authenticates with the session cookie
security = HTTPBearer(auto_error=False)


def _user_id_from_request(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[int]:
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if cookie:
        uid = read_session_token(cookie)
        if uid is not None:
            return uid

    if credentials and credentials.scheme.lower() == "bearer":
        payload = verify_jwt_token(credentials.credentials)
        if payload and payload.get("sub"):
            try:
                return int(payload["sub"])
            except (TypeError, ValueError):
                logger.warning("⚠️ Bearer token carries a non-numeric subject")
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the signed-in user from the session cookie, falling back to a
    mobile bearer token. Unknown or deactivated users are rejected with 401.
    """
    user_id = _user_id_from_request(request, credentials)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        logger.warning(f"⚠️ Rejected session for missing or inactive user {user_id}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """OWNER or ADMIN only"""
    if user.role not in UserRole.STAFF:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_owner(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.OWNER:
        raise HTTPException(status_code=403, detail="Owner access required")
    return user


async def require_cleaner(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.CLEANER:
        raise HTTPException(status_code=403, detail="Cleaner access required")
    return user


def get_team_member(db: Session, user: User) -> TeamMember:
    """TeamMember row for a CLEANER user, 404 when the profile is missing"""
    member = (
        db.query(TeamMember)
        .filter(TeamMember.user_id == user.id, TeamMember.company_id == user.company_id)
        .first()
    )
    if not member:
        raise HTTPException(status_code=404, detail="Team member profile not found")
    return member


def get_client_profile(db: Session, user: User) -> Optional[Client]:
    """Client row linked to a CLIENT portal user, if any"""
    return (
        db.query(Client)
        .filter(Client.user_id == user.id, Client.company_id == user.company_id)
        .first()
    )


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Cron endpoints require `Authorization: Bearer <CRON_SECRET>` when the secret is set"""
    if not CRON_SECRET:
        return
    if (
        not credentials
        or credentials.scheme.lower() != "bearer"
        or not constant_time_compare(credentials.credentials, CRON_SECRET)
    ):
        logger.warning("⚠️ Cron call rejected: bad or missing secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

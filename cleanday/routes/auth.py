import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import MOBILE_TOKEN_EXPIRE_MINUTES, SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_MAX_AGE
from ..constants import UserRole
from ..database import get_db
from ..models import Company, User
from ..schemas import LoginRequest, SignupRequest, UserResponse
from ..security_utils import create_jwt_token, create_session_token, hash_password, verify_password
from ..shared.dates import utcnow
from ..shared.validators import slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def unique_company_slug(db: Session, name: str) -> str:
    """Slug from the company name, suffixed -2, -3... until unused"""
    base = slugify(name)
    slug = base
    suffix = 2
    while db.query(Company.id).filter(Company.slug == slug).first():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def set_session_cookie(response: Response, user: User) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_token(user.id),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"⚠️ Failed login attempt for {email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


@router.post("/signup", status_code=201)
async def signup(data: SignupRequest, response: Response, db: Session = Depends(get_db)):
    """Create a company and its owner account, then sign the owner in"""
    if db.query(User.id).filter(User.email == data.email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    company = Company(
        name=data.company_name,
        slug=unique_company_slug(db, data.company_name),
        email=data.email,
        phone=data.phone,
    )
    if data.timezone:
        company.timezone = data.timezone
    db.add(company)
    db.flush()

    user = User(
        company_id=company.id,
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=UserRole.OWNER,
        last_login_at=utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    db.refresh(company)

    set_session_cookie(response, user)
    logger.info(f"🎉 New company {company.slug} signed up (owner {user.id})")
    return {
        "success": True,
        "data": {
            "user": UserResponse.model_validate(user),
            "company": {"id": company.id, "name": company.name, "slug": company.slug},
        },
    }


@router.post("/login")
async def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = authenticate(db, data.email, data.password)
    set_session_cookie(response, user)
    logger.info(f"🔑 User {user.id} logged in")
    return {"success": True, "data": UserResponse.model_validate(user)}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"success": True, "data": None, "message": "Logged out"}


@router.post("/mobile-login")
async def mobile_login(data: LoginRequest, db: Session = Depends(get_db)):
    """Bearer token for the field app"""
    user = authenticate(db, data.email, data.password)
    token = create_jwt_token({"sub": str(user.id), "role": user.role, "company_id": user.company_id})
    logger.info(f"📱 User {user.id} logged in from the mobile app")
    return {
        "success": True,
        "data": {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": MOBILE_TOKEN_EXPIRE_MINUTES * 60,
            "user": UserResponse.model_validate(user),
        },
    }


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    company = current_user.company
    return {
        "success": True,
        "data": {
            **UserResponse.model_validate(current_user).model_dump(),
            "company": {"id": company.id, "name": company.name, "slug": company.slug},
        },
    }

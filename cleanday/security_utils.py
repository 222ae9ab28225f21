"""
Security Utilities
Password hashing, signed session/feedback tokens, mobile JWTs and
credential encryption using industry-standard libraries
"""

import base64
import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

# Token generation and validation
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

from .config import BCRYPT_ROUNDS, MOBILE_TOKEN_EXPIRE_MINUTES, SECRET_KEY, SESSION_MAX_AGE
from .shared.dates import utcnow

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_SALT = "cleanday-session"
FEEDBACK_SALT = "cleanday-feedback"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

# Fernet needs a 32-byte url-safe base64 key, derived from SECRET_KEY
cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# SESSION COOKIE
# ============================================================================


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY)


def create_session_token(user_id: int) -> str:
    """Signed session cookie value for the web dashboard"""
    return _serializer().dumps({"uid": user_id}, salt=SESSION_SALT)


def read_session_token(token: str) -> Optional[int]:
    """
    Verify and decode a session cookie

    Returns:
        The user id if valid, None if invalid or expired
    """
    try:
        data = _serializer().loads(token, salt=SESSION_SALT, max_age=SESSION_MAX_AGE)
    except SignatureExpired:
        logger.warning("Session expired")
        return None
    except BadSignature:
        logger.warning("Invalid session signature")
        return None
    uid = data.get("uid") if isinstance(data, dict) else None
    return uid if isinstance(uid, int) else None


def generate_feedback_token(booking_id: int) -> str:
    """Unguessable public token for the customer feedback link"""
    return _serializer().dumps({"b": booking_id, "n": secrets.token_hex(4)}, salt=FEEDBACK_SALT)


# ============================================================================
# MOBILE BEARER TOKENS
# ============================================================================


def create_jwt_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT token

    Args:
        data: Data to encode in the token
        expires_delta: Token expiration time (default MOBILE_TOKEN_EXPIRE_MINUTES)
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=MOBILE_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


# ============================================================================
# CREDENTIAL ENCRYPTION
# ============================================================================


def encrypt_credential(value: str) -> str:
    return cipher_suite.encrypt(value.encode()).decode()


def decrypt_credential(encrypted_credential: str) -> Optional[str]:
    """Decrypt a stored credential, None when it cannot be decrypted"""
    try:
        return cipher_suite.decrypt(encrypted_credential.encode()).decode()
    except InvalidToken:
        logger.error("❌ Failed to decrypt stored credential (SECRET_KEY changed?)")
        return None


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks"""
    return secrets.compare_digest(a.encode(), b.encode())


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """
    Mask sensitive data for logging/display

    Args:
        data: Sensitive data to mask
        visible_chars: Number of characters to show at the end

    Returns:
        Masked string
    """
    if len(data) <= visible_chars:
        return "*" * len(data)

    return "*" * (len(data) - visible_chars) + data[-visible_chars:]

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cleanday.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Session cookie (web dashboard) and bearer tokens (field app)
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "cleanday_session")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(14 * 24 * 3600)))
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "true").lower() == "true"
MOBILE_TOKEN_EXPIRE_MINUTES = int(os.getenv("MOBILE_TOKEN_EXPIRE_MINUTES", str(30 * 24 * 60)))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Shared secret for externally scheduled cron calls. Endpoints are open when unset.
CRON_SECRET = os.getenv("CRON_SECRET")

# Frontend base URL for links in messages
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "CleanDay <noreply@cleandaycrm.com>")

# Platform Twilio account, used when a company has not connected its own
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://cleandaycrm.com,https://www.cleandaycrm.com,http://localhost:3000",
).split(",")

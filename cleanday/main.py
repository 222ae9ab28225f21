import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_invoice,  # noqa: F401
    models_messaging,  # noqa: F401
)
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.clients.router import router as clients_router
from .domain.invoices.router import payments_router
from .domain.invoices.router import router as invoices_router
from .domain.marketing.router import prospects_router
from .domain.marketing.router import router as campaigns_router
from .domain.scheduling.cleaner_router import router as cleaner_jobs_router
from .domain.scheduling.router import router as scheduling_router
from .domain.team.router import cleaner_router as cleaner_time_off_router
from .domain.team.router import router as team_router
from .errors import register_exception_handlers
from .routes.auth import router as auth_router
from .routes.company import router as company_router
from .routes.cron import router as cron_router
from .routes.dashboard import router as dashboard_router
from .routes.feedback import router as feedback_router
from .routes.messages import router as messages_router
from .routes.notifications import router as notifications_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Another worker may have created the tables between check and create
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="CleanDay API", version="1.0.0", lifespan=lifespan)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,  # Session cookie
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(company_router)
app.include_router(dashboard_router)
app.include_router(notifications_router)
app.include_router(scheduling_router)
app.include_router(cleaner_time_off_router)
app.include_router(cleaner_jobs_router)
app.include_router(feedback_router)
app.include_router(clients_router)
app.include_router(team_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(messages_router)
app.include_router(campaigns_router)
app.include_router(prospects_router)
app.include_router(cron_router)


@app.get("/")
def root():
    return {"message": "CleanDay API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}

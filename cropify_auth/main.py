"""
Cropify Admin 2FA - Main FastAPI Application

Backend for the Cropify dashboard's administrator two-factor authentication:

- Google Authenticator compatible TOTP enrollment (secret, otpauth URI, QR code)
- Token and backup code verification
- Per-admin MFA records persisted in Firestore
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cropify_auth.config import get_settings
from cropify_auth.routers import health, mfa
from cropify_auth.services.firestore_client import close_firestore_client
from cropify_auth.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__, level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Application starting",
        app_name=settings.app_name,
        gcp_project=settings.gcp_project_id,
        in_memory_store=settings.use_in_memory_store,
        debug=settings.debug,
    )
    yield
    await close_firestore_client()
    logger.info("Application stopped")


app = FastAPI(
    title="Cropify Admin 2FA API",
    description="Two-factor authentication for Cropify dashboard administrators",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(mfa.router)

logger.info("All routers registered")

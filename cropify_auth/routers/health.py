"""Health Check Endpoints"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, status

from cropify_auth.config import get_settings
from cropify_auth.otp.crypto_provider import HashAlgorithm, get_crypto_provider

router = APIRouter()
settings = get_settings()


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Also confirms the HMAC-SHA1 primitive required by authenticator apps is
    available on this host.

    Returns:
        200 OK with basic status
    """
    crypto = get_crypto_provider()
    crypto.digest(HashAlgorithm.SHA1, b"health", b"check")

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
    }

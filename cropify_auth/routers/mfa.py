"""Admin Two-Factor Authentication Endpoints"""

from fastapi import APIRouter, Depends, HTTPException, status

from cropify_auth.exceptions import (
    MFASetupError,
    PersistenceError,
    VerificationLockedError,
)
from cropify_auth.models.mfa import (
    BackupCodeRequest,
    SetupRequest,
    StatusResponse,
    TokenRequest,
    VerificationResponse,
)
from cropify_auth.services import mfa_repository
from cropify_auth.services.document_store import DocumentStore, get_document_store
from cropify_auth.services.mfa_manager import MFAManager
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/admins/{admin_id}/2fa", tags=["two-factor"])


def _unavailable(e: PersistenceError) -> HTTPException:
    logger.error("2FA storage failure", error=str(e), operation=e.operation)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(e),
    )


def _locked(e: VerificationLockedError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=str(e),
        headers={"Retry-After": e.locked_until.strftime("%a, %d %b %Y %H:%M:%S GMT")},
    )


@router.post("/setup")
async def setup_2fa(
    admin_id: str,
    body: SetupRequest,
    store: DocumentStore = Depends(get_document_store),
):
    """Start 2FA enrollment.

    Generates the secret, QR code URL and backup codes and stores a pending
    record (setupCompleted=false). The admin must then call /complete with a
    token from the authenticator app.

    Returns:
        {
            "secret": "JBSWY3DPEHPK3PXP...",
            "qrCodeURL": "https://api.qrserver.com/v1/create-qr-code/?...",
            "totpURI": "otpauth://totp/Cropify%20Admin:alice%40example.com?...",
            "backupCodes": ["48213907", ...],
            "accountName": "alice@example.com",
            "serviceName": "Cropify Admin"
        }

    Error responses:
        409: 2FA already active
        500: Provisioning failed
        503: Storage unavailable
    """
    manager = MFAManager(store=store)

    try:
        if await manager.is_enabled(admin_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="2FA is already enabled for this admin",
            )

        setup_data = manager.initialize(body.account_name, body.service_name)
        await manager.enable(
            admin_id,
            setup_data.secret,
            setup_data.backup_codes,
            setup_data.account_name,
            setup_data.service_name,
        )
    except MFASetupError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
    except PersistenceError as e:
        raise _unavailable(e)

    logger.info("2FA enrollment started", admin_id=admin_id)
    return setup_data.to_response()


@router.post("/complete", response_model=VerificationResponse)
async def complete_2fa_setup(
    admin_id: str,
    body: TokenRequest,
    store: DocumentStore = Depends(get_document_store),
):
    """Verify the first token and activate 2FA."""
    try:
        valid = await MFAManager(store=store).complete_setup(admin_id, body.token)
    except VerificationLockedError as e:
        raise _locked(e)
    except PersistenceError as e:
        raise _unavailable(e)

    return VerificationResponse(valid=valid)


@router.post("/verify", response_model=VerificationResponse)
async def verify_2fa(
    admin_id: str,
    body: TokenRequest,
    store: DocumentStore = Depends(get_document_store),
):
    """Verify a login token. A wrong token is a 200 with valid=false."""
    try:
        valid = await MFAManager(store=store).verify(admin_id, body.token)
    except VerificationLockedError as e:
        raise _locked(e)
    except PersistenceError as e:
        raise _unavailable(e)

    return VerificationResponse(valid=valid)


@router.post("/backup-code", response_model=VerificationResponse)
async def redeem_backup_code(
    admin_id: str,
    body: BackupCodeRequest,
    store: DocumentStore = Depends(get_document_store),
):
    """Redeem a single-use backup code."""
    try:
        valid = await MFAManager(store=store).redeem_backup_code(admin_id, body.code)
    except VerificationLockedError as e:
        raise _locked(e)
    except PersistenceError as e:
        raise _unavailable(e)

    return VerificationResponse(valid=valid)


@router.get("/status", response_model=StatusResponse)
async def get_2fa_status(
    admin_id: str,
    store: DocumentStore = Depends(get_document_store),
):
    try:
        record = await mfa_repository.get_mfa_data(admin_id, store=store)
    except PersistenceError as e:
        raise _unavailable(e)

    return StatusResponse.from_record(admin_id, record)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def disable_2fa(
    admin_id: str,
    store: DocumentStore = Depends(get_document_store),
):
    """Delete the admin's MFA record."""
    try:
        await MFAManager(store=store).disable(admin_id)
    except PersistenceError as e:
        raise _unavailable(e)

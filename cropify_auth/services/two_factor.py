"""Two-Factor Authentication Service

Entry points used by the dashboard's auth layer:

Token utilities (pure, Google Authenticator profile):
- generate_secret / generate_totp_uri / generate_current_token
- verify_token / is_valid_token
- get_time_remaining / get_time_used
- generate_backup_codes

Admin lifecycle (Firestore-backed):
- setup_complete_2fa: provision and save a new enrollment
- complete_admin_2fa_setup: first verification, activates 2FA
- verify_admin_2fa / verify_admin_backup_code: login-time checks
- disable_admin_2fa / is_admin_2fa_enabled / get_mfa_data

Admin lifecycle functions report failures as False (or success=False) and
log them; a wrong token is never an error.
"""

from functools import lru_cache
from typing import Any, Dict, List, Optional

from cropify_auth.exceptions import TwoFactorError
from cropify_auth.models.mfa import MFARecord
from cropify_auth.otp.authenticator import Authenticator, normalize_token
from cropify_auth.services import backup_codes, mfa_repository
from cropify_auth.services.document_store import DocumentStore
from cropify_auth.services.mfa_manager import MFAManager
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)


@lru_cache()
def get_authenticator() -> Authenticator:
    """Get the Google Authenticator profile (SHA1, 6 digits, 30s, window 1)"""
    return Authenticator()


def generate_secret() -> str:
    """Generate a new Base32 secret.

    Raises:
        SecretGenerationError: If the CSPRNG fails
    """
    return get_authenticator().generate_secret()


def generate_totp_uri(account_name: str, service_name: str, secret: str) -> str:
    return get_authenticator().key_uri(account_name, service_name, secret)


def verify_token(token: str, secret: str) -> bool:
    """Verify a token against ``secret`` at the current time (±1 step).

    Spaces, dashes and other separators in ``token`` are ignored.
    """
    normalized = normalize_token(token)
    if normalized is None:
        return False
    return get_authenticator().verify(normalized, secret)


def generate_current_token(secret: str) -> str:
    return get_authenticator().generate(secret)


def get_time_remaining() -> int:
    """Seconds until the current token expires."""
    return get_authenticator().time_remaining()


def get_time_used() -> int:
    """Seconds elapsed in the current 30s step."""
    return get_authenticator().time_used()


def is_valid_token(token: str, secret: str) -> bool:
    """Format check (6 digits once separators are stripped) followed by verification."""
    if not token or not secret:
        return False
    if normalize_token(token) is None:
        return False
    return verify_token(token, secret)


def generate_backup_codes(count: int = backup_codes.DEFAULT_BACKUP_CODE_COUNT) -> List[str]:
    return backup_codes.generate_backup_codes(count)


async def setup_complete_2fa(
    identity: str,
    account_name: str,
    service_name: Optional[str] = None,
    store: Optional[DocumentStore] = None,
) -> Dict[str, Any]:
    """Provision 2FA for an admin and save the pending record.

    Returns:
        {"success": True, "secret", "qrCodeURL", "totpURI", "backupCodes",
        "accountName", "serviceName"} or {"success": False, "error": message}
    """
    manager = MFAManager(store=store)
    try:
        setup_data = manager.initialize(account_name, service_name)
        saved = await manager.enable(
            identity,
            setup_data.secret,
            setup_data.backup_codes,
            account_name,
            setup_data.service_name,
        )
    except TwoFactorError as e:
        logger.error("2FA setup failed", admin_id=identity, error=str(e))
        return {"success": False, "error": str(e)}

    if not saved:
        return {"success": False, "error": "Admin ID is required"}

    return {"success": True, **setup_data.to_response()}


async def verify_admin_2fa(
    identity: str, token: str, store: Optional[DocumentStore] = None
) -> bool:
    try:
        return await MFAManager(store=store).verify(identity, token)
    except TwoFactorError as e:
        logger.error("Admin 2FA verification failed", admin_id=identity, error=str(e))
        return False


async def verify_admin_backup_code(
    identity: str, code: str, store: Optional[DocumentStore] = None
) -> bool:
    try:
        return await MFAManager(store=store).redeem_backup_code(identity, code)
    except TwoFactorError as e:
        logger.error("Backup code redemption failed", admin_id=identity, error=str(e))
        return False


async def complete_admin_2fa_setup(
    identity: str, token: str, store: Optional[DocumentStore] = None
) -> bool:
    try:
        return await MFAManager(store=store).complete_setup(identity, token)
    except TwoFactorError as e:
        logger.error("Completing 2FA setup failed", admin_id=identity, error=str(e))
        return False


async def disable_admin_2fa(
    identity: str, store: Optional[DocumentStore] = None
) -> bool:
    try:
        return await MFAManager(store=store).disable(identity)
    except TwoFactorError as e:
        logger.error("Disabling 2FA failed", admin_id=identity, error=str(e))
        return False


async def is_admin_2fa_enabled(
    identity: str, store: Optional[DocumentStore] = None
) -> bool:
    try:
        return await mfa_repository.is_2fa_enabled(identity, store=store)
    except TwoFactorError as e:
        logger.error("Checking 2FA status failed", admin_id=identity, error=str(e))
        return False


async def get_mfa_data(
    identity: str, store: Optional[DocumentStore] = None
) -> Optional[MFARecord]:
    """Raw MFA record (secret still encrypted).

    Raises:
        PersistenceError: If the store fails
    """
    return await mfa_repository.get_mfa_data(identity, store=store)

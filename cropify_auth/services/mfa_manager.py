"""MFA Session Manager

Orchestrates the admin 2FA lifecycle:

    UNINITIALIZED -> PROVISIONING -> AWAITING_FIRST_VERIFICATION -> ACTIVE -> DISABLED

- initialize(): generate secret, otpauth URI, QR code URL and backup codes
  (in memory only)
- enable(): persist the MFA record (enabled, setup not completed)
- verify(): check a token against the stored secret, bump lastVerifiedAt
- complete_setup(): verify and mark setup completed
- disable(): delete the MFA record

The provisioning fields (secret, QR URL, backup codes) belong to one
manager instance, i.e. one admin mid-enrollment; create a manager per
setup flow rather than sharing one. enable/complete_setup/disable are
serialised per admin ID within the process.
"""

import asyncio
import weakref
from typing import Any, Dict, List, Optional

from cropify_auth.config import get_settings
from cropify_auth.exceptions import MFASetupError, TwoFactorError
from cropify_auth.models.mfa import MFASetupData, MFAState
from cropify_auth.otp.authenticator import Authenticator, normalize_token
from cropify_auth.services import mfa_repository
from cropify_auth.services.backup_codes import (
    generate_backup_codes,
    validate_backup_code_format,
)
from cropify_auth.services.document_store import DocumentStore, get_document_store
from cropify_auth.services.qr_code import (
    generate_qr_code_url,
    generate_styled_qr_code_url,
)
from cropify_auth.services.verification_limiter import (
    VerificationLimiter,
    get_verification_limiter,
)
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

# entries disappear once no coroutine holds or awaits the lock
_identity_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def get_identity_lock(identity: str) -> asyncio.Lock:
    """Lock serialising lifecycle writes for one admin."""
    lock = _identity_locks.get(identity)
    if lock is None:
        lock = asyncio.Lock()
        _identity_locks[identity] = lock
    return lock


SETUP_INSTRUCTIONS: Dict[str, Any] = {
    "title": "Setup Two-Factor Authentication",
    "steps": [
        {
            "step": 1,
            "title": "Download Google Authenticator",
            "description": "Download and install Google Authenticator on your mobile device from the App Store or Google Play Store.",
            "platforms": ["iOS", "Android"],
        },
        {
            "step": 2,
            "title": "Scan QR Code",
            "description": 'Open Google Authenticator and tap the "+" button to add a new account. Select "Scan a QR code" and scan the QR code displayed on your screen.',
            "action": "scan",
        },
        {
            "step": 3,
            "title": "Manual Setup (Alternative)",
            "description": "If you cannot scan the QR code, you can manually enter the setup key in Google Authenticator.",
            "action": "manual",
        },
        {
            "step": 4,
            "title": "Verify Setup",
            "description": "Enter the 6-digit code from Google Authenticator to verify that 2FA is working correctly.",
            "action": "verify",
        },
        {
            "step": 5,
            "title": "Save Backup Codes",
            "description": "Save your backup codes in a secure location. These codes can be used to access your account if you lose your device.",
            "action": "backup",
        },
    ],
}


class MFAManager:
    """Two-factor setup and verification for one admin session.

    Args:
        authenticator: TOTP profile (Google Authenticator defaults)
        store: Document store holding MFA records
        limiter: Failed-verification lockout policy
    """

    def __init__(
        self,
        authenticator: Optional[Authenticator] = None,
        store: Optional[DocumentStore] = None,
        limiter: Optional[VerificationLimiter] = None,
    ):
        self.settings = get_settings()
        self.authenticator = authenticator or Authenticator()
        self.store = store or get_document_store()
        self.limiter = limiter or get_verification_limiter()
        self.reset()

    def reset(self) -> None:
        """Drop provisioning state."""
        self.secret: Optional[str] = None
        self.qr_code_url: Optional[str] = None
        self.totp_uri: Optional[str] = None
        self.backup_codes: List[str] = []
        self.state = MFAState.UNINITIALIZED

    # ------------------------------------------------------------------
    # Provisioning (in memory)
    # ------------------------------------------------------------------

    def initialize(
        self, account_name: str, service_name: Optional[str] = None
    ) -> MFASetupData:
        """Generate secret, otpauth URI, QR code URL and backup codes.

        Raises:
            MFASetupError: If any provisioning step fails
        """
        service_name = service_name or self.settings.mfa_service_name

        try:
            secret = self.authenticator.generate_secret(self.settings.mfa_secret_bytes)
            totp_uri = self.authenticator.key_uri(account_name, service_name, secret)
            qr_code_url = generate_qr_code_url(
                totp_uri,
                size=self.settings.qr_code_size,
                service=self.settings.qr_code_service,
            )
            backup_codes = generate_backup_codes(
                self.settings.mfa_backup_code_count, crypto=self.authenticator.crypto
            )
        except (TwoFactorError, ValueError) as e:
            logger.error("2FA initialization failed", error=str(e))
            raise MFASetupError("Failed to initialize 2FA setup") from e

        self.secret = secret
        self.totp_uri = totp_uri
        self.qr_code_url = qr_code_url
        self.backup_codes = backup_codes
        self.state = MFAState.PROVISIONING

        logger.info("2FA provisioning data generated", service_name=service_name)

        return MFASetupData(
            secret=secret,
            qr_code_url=qr_code_url,
            totp_uri=totp_uri,
            backup_codes=list(backup_codes),
            account_name=account_name,
            service_name=service_name,
        )

    def verify_token(self, token: str, secret: Optional[str] = None) -> bool:
        """Verify ``token`` against ``secret`` or the provisioned secret."""
        secret_to_use = secret or self.secret
        if not secret_to_use:
            logger.warning("No secret available for verification")
            return False
        normalized = normalize_token(token, self.authenticator.config.digits)
        if normalized is None:
            return False
        return self.authenticator.verify(normalized, secret_to_use)

    def get_current_token(self, secret: Optional[str] = None) -> Optional[str]:
        secret_to_use = secret or self.secret
        if not secret_to_use:
            return None
        return self.authenticator.generate(secret_to_use)

    def get_time_remaining(self) -> int:
        return self.authenticator.time_remaining()

    def generate_styled_qr_code(self, totp_uri: Optional[str] = None, **options) -> str:
        return generate_styled_qr_code_url(totp_uri or self.totp_uri, **options)

    def validate_backup_code(self, code: str) -> bool:
        """Well-formed and one of the provisioned backup codes."""
        return validate_backup_code_format(code) and code in self.backup_codes

    def remove_backup_code(self, code: str) -> bool:
        try:
            self.backup_codes.remove(code)
        except ValueError:
            return False
        return True

    def get_setup_instructions(self) -> Dict[str, Any]:
        return SETUP_INSTRUCTIONS

    def get_setup_data(self) -> Dict[str, Any]:
        return {
            "secret": self.secret,
            "qrCodeURL": self.qr_code_url,
            "totpURI": self.totp_uri,
            "backupCodes": list(self.backup_codes),
            "timeRemaining": self.get_time_remaining(),
            "state": self.state.value,
        }

    # ------------------------------------------------------------------
    # Persisted lifecycle
    # ------------------------------------------------------------------

    async def enable(
        self,
        identity: str,
        secret: Optional[str] = None,
        backup_codes: Optional[List[str]] = None,
        account_name: str = "",
        service_name: Optional[str] = None,
    ) -> bool:
        """Persist the MFA record with setupCompleted=False.

        Missing arguments default to the provisioned values.
        """
        secret = secret or self.secret
        backup_codes = self.backup_codes if backup_codes is None else backup_codes
        service_name = service_name or self.settings.mfa_service_name

        async with get_identity_lock(identity):
            saved = await mfa_repository.enable_2fa(
                identity,
                secret,
                backup_codes,
                account_name,
                service_name,
                store=self.store,
            )

        if saved:
            self.state = MFAState.AWAITING_FIRST_VERIFICATION
        return saved

    async def _check_stored_token(self, identity: str, token: str) -> bool:
        self.limiter.check(identity)

        normalized = normalize_token(token, self.authenticator.config.digits)
        if normalized is None:
            remaining = self.limiter.record_failure(identity)
            logger.warning(
                "Malformed 2FA token rejected", admin_id=identity, remaining_attempts=remaining
            )
            return False

        secret = await mfa_repository.get_2fa_secret(identity, store=self.store)
        if not secret:
            logger.warning("No 2FA secret stored", admin_id=identity)
            return False

        if self.authenticator.verify(normalized, secret):
            self.limiter.record_success(identity)
            return True

        remaining = self.limiter.record_failure(identity)
        logger.warning(
            "2FA token rejected", admin_id=identity, remaining_attempts=remaining
        )
        return False

    async def verify(self, identity: str, token: str) -> bool:
        """Verify ``token`` for an admin and bump lastVerifiedAt on success.

        Does not complete setup.

        Raises:
            VerificationLockedError: If the admin is locked out
            PersistenceError: If the store fails
        """
        if not identity:
            return False

        if not await self._check_stored_token(identity, token):
            return False

        await mfa_repository.update_last_verified(identity, store=self.store)
        logger.info("2FA token verified", admin_id=identity)
        return True

    async def complete_setup(self, identity: str, token: str) -> bool:
        """Verify ``token`` and mark setup completed.

        Calling this on an already active record behaves as a re-verification.
        """
        if not identity:
            return False

        async with get_identity_lock(identity):
            if not await self._check_stored_token(identity, token):
                return False

            await mfa_repository.complete_2fa_setup(identity, store=self.store)

        self.state = MFAState.ACTIVE
        return True

    async def redeem_backup_code(self, identity: str, code: str) -> bool:
        """Accept a backup code instead of a token and remove it."""
        if not identity or not validate_backup_code_format(code):
            return False

        self.limiter.check(identity)

        async with get_identity_lock(identity):
            redeemed = await mfa_repository.verify_and_remove_backup_code(
                identity, code, store=self.store
            )

        if redeemed:
            self.limiter.record_success(identity)
            self.remove_backup_code(code)
        else:
            self.limiter.record_failure(identity)
        return redeemed

    async def disable(self, identity: str) -> bool:
        """Delete the MFA record. The admin must enroll again."""
        if not identity:
            return False

        async with get_identity_lock(identity):
            deleted = await mfa_repository.disable_2fa(identity, store=self.store)

        if deleted:
            self.reset()
            self.state = MFAState.DISABLED
            self.limiter.reset(identity)
        return deleted

    async def is_enabled(self, identity: str) -> bool:
        return await mfa_repository.is_2fa_enabled(identity, store=self.store)

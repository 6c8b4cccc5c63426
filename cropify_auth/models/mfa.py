"""MFA Models for Firestore-backed Admin 2FA

This module defines the per-admin MFA record stored in Firestore, the
provisioning data returned by setup, and the API request/response models.
Firestore field names keep the camelCase used by the dashboard frontend.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

from cropify_auth.services.backup_codes import parse_backup_codes


class MFAState(str, Enum):
    """Lifecycle of an admin's 2FA enrollment."""

    UNINITIALIZED = "uninitialized"  # no secret held
    PROVISIONING = "provisioning"  # secret, QR and backup codes generated
    AWAITING_FIRST_VERIFICATION = "awaiting_first_verification"  # record saved
    ACTIVE = "active"  # first token verified
    DISABLED = "disabled"  # record deleted


@dataclass
class MFARecord:
    """MFA record stored at admins/{adminId}/mfa/totp.

    Attributes:
        enabled: 2FA switched on for the admin
        secret: TOTP secret (encrypted at rest, see secret_encryption)
        backup_codes: Remaining single-use 8-digit codes
        account_name: Label shown in the authenticator app (email/username)
        service_name: Issuer shown in the authenticator app
        created_at: Enrollment start
        last_verified_at: Last successful verification
        setup_completed: First verification done
        last_updated: Last write to the record
    """

    enabled: bool = False
    secret: Optional[str] = None
    backup_codes: List[str] = field(default_factory=list)
    account_name: str = ""
    service_name: str = ""
    created_at: Optional[datetime] = None
    last_verified_at: Optional[datetime] = None
    setup_completed: bool = False
    last_updated: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Enabled and setup completed."""
        return self.enabled is True and self.setup_completed is True

    @property
    def state(self) -> MFAState:
        if self.is_active:
            return MFAState.ACTIVE
        return MFAState.AWAITING_FIRST_VERIFICATION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for Firestore storage."""
        return {
            "enabled": self.enabled,
            "secret": self.secret,
            "backupCodes": list(self.backup_codes),
            "accountName": self.account_name,
            "serviceName": self.service_name,
            "createdAt": self.created_at,
            "lastVerifiedAt": self.last_verified_at,
            "setupCompleted": self.setup_completed,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_firestore(cls, doc: Dict[str, Any]) -> "MFARecord":
        """Create MFARecord from a Firestore document.

        ``backupCodes`` may be an array or a delimited string.
        """
        return cls(
            enabled=doc.get("enabled", False),
            secret=doc.get("secret"),
            backup_codes=parse_backup_codes(doc.get("backupCodes")),
            account_name=doc.get("accountName", ""),
            service_name=doc.get("serviceName", ""),
            created_at=doc.get("createdAt"),
            last_verified_at=doc.get("lastVerifiedAt"),
            setup_completed=doc.get("setupCompleted", False),
            last_updated=doc.get("lastUpdated"),
        )


@dataclass
class MFASetupData:
    """Provisioning data produced when an admin starts 2FA setup."""

    secret: str
    qr_code_url: str
    totp_uri: str
    backup_codes: List[str]
    account_name: str
    service_name: str

    def to_response(self) -> Dict[str, Any]:
        """camelCase payload for the dashboard setup screen."""
        return {
            "secret": self.secret,
            "qrCodeURL": self.qr_code_url,
            "totpURI": self.totp_uri,
            "backupCodes": list(self.backup_codes),
            "accountName": self.account_name,
            "serviceName": self.service_name,
        }


class SetupRequest(BaseModel):
    """Body for POST /api/v1/admins/{admin_id}/2fa/setup."""

    account_name: str = Field(..., min_length=1, description="Admin email or username")
    service_name: Optional[str] = Field(None, description="Issuer label (default: Cropify Admin)")


class TokenRequest(BaseModel):
    """Body carrying a 6-digit authenticator token."""

    token: str = Field(..., description="Token from the authenticator app")


class BackupCodeRequest(BaseModel):
    """Body carrying an 8-digit backup code."""

    code: str = Field(..., description="Single-use backup code")


class VerificationResponse(BaseModel):
    valid: bool = Field(..., description="Whether the token or code was accepted")


class StatusResponse(BaseModel):
    """2FA status for an admin."""

    admin_id: str
    enabled: bool = Field(..., description="Record exists, enabled and setup completed")
    state: MFAState
    backup_codes_remaining: int = 0
    last_verified_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, admin_id: str, record: Optional[MFARecord]) -> "StatusResponse":
        if record is None:
            return cls(admin_id=admin_id, enabled=False, state=MFAState.UNINITIALIZED)
        return cls(
            admin_id=admin_id,
            enabled=record.is_active,
            state=record.state,
            backup_codes_remaining=len(record.backup_codes),
            last_verified_at=record.last_verified_at,
        )

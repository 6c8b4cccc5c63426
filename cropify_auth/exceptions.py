"""Exception hierarchy for the two-factor authentication service."""

from datetime import datetime
from typing import Optional


class TwoFactorError(Exception):
    """Base exception for 2FA errors."""
    pass


class CryptoUnavailableError(TwoFactorError):
    """Raised when a required HMAC algorithm or the CSPRNG is unavailable."""
    pass


class SecretGenerationError(TwoFactorError):
    """Raised when a new shared secret cannot be generated."""
    pass


class SecretEncryptionError(TwoFactorError):
    """Raised when a secret cannot be encrypted for storage."""
    pass


class SecretDecryptionError(TwoFactorError):
    """Raised when a stored secret cannot be decrypted."""
    pass


class MFASetupError(TwoFactorError):
    """Raised when 2FA provisioning data cannot be produced."""
    pass


class VerificationLockedError(TwoFactorError):
    """Raised when an admin has exceeded the allowed failed verifications."""

    def __init__(self, identity: str, locked_until: datetime):
        self.identity = identity
        self.locked_until = locked_until
        super().__init__(
            f"Too many failed verification attempts. Locked until {locked_until.isoformat()}"
        )


class PersistenceError(TwoFactorError):
    """Base class for document store failures.

    Attributes:
        operation: Store operation that failed ("get", "set", "update", "delete")
        path: Document path involved
        retryable: Whether the failure is transient
    """

    retryable = False
    default_message = "Database error"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        path: Optional[str] = None,
    ):
        self.operation = operation
        self.path = path
        super().__init__(message or self.default_message)


class PersistenceUnavailableError(PersistenceError):
    retryable = True
    default_message = "Database is temporarily unavailable. Please try again."


class PersistencePermissionDeniedError(PersistenceError):
    default_message = "Permission denied. Please check your authentication."


class PersistenceDeadlineExceededError(PersistenceError):
    retryable = True
    default_message = "Operation timed out. Please try again."


class PersistenceResourceExhaustedError(PersistenceError):
    default_message = "Database quota exceeded. Please contact support."


class PersistenceUnknownError(PersistenceError):
    pass

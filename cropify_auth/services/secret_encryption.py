"""Secret-at-Rest Obfuscation for 2FA Secrets

TOTP secrets are XOR-ed with a configured passphrase and Base64 framed
before being written to Firestore, so other admins browsing the collection
do not see usable secrets.

This is obfuscation, not encryption: anyone holding the passphrase (which
defaults to a value shipped with the code) can recover every secret. The
XOR key stream is the Base64 form of the passphrase, and characters are
treated as Latin-1 code units, so records written by the dashboard's
browser code decrypt identically here.
"""

import base64
import binascii
import re
from functools import lru_cache
from typing import Optional

from cropify_auth.config import get_settings
from cropify_auth.exceptions import SecretDecryptionError, SecretEncryptionError
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

_BASE64_PATTERN = re.compile(r"[A-Za-z0-9+/]*={0,2}")

# Plain Base32 secrets of 16 characters or fewer never cross this threshold
ENCRYPTED_MIN_LENGTH = 21


def xor_text(text: str, key: str) -> str:
    """XOR each character code of ``text`` with the repeating ``key``."""
    return "".join(
        chr(ord(char) ^ ord(key[i % len(key)])) for i, char in enumerate(text)
    )


def looks_encrypted(value: Optional[str]) -> bool:
    """Heuristic: Base64 alphabet and longer than 20 characters.

    Used instead of a schema version field to tell encrypted records from
    legacy plaintext ones.
    """
    if not value or not isinstance(value, str):
        return False
    return bool(_BASE64_PATTERN.fullmatch(value)) and len(value) >= ENCRYPTED_MIN_LENGTH


class SecretCipher:
    """Reversible XOR + Base64 transform for stored secrets.

    Args:
        passphrase: Deployment passphrase; the XOR key is its Base64 form
        legacy_fail_open: Return the input unchanged when it cannot be
            transformed (legacy plaintext records) instead of raising
    """

    def __init__(self, passphrase: str, legacy_fail_open: bool = False):
        if not passphrase:
            raise ValueError("passphrase must not be empty")
        self.key = base64.b64encode(passphrase.encode("utf-8")).decode("ascii")
        self.legacy_fail_open = legacy_fail_open

    def encrypt(self, secret: Optional[str]) -> Optional[str]:
        if not secret:
            return secret

        try:
            scrambled = xor_text(secret, self.key)
            return base64.b64encode(scrambled.encode("latin-1")).decode("ascii")
        except UnicodeEncodeError as e:
            if self.legacy_fail_open:
                logger.warning("Secret encryption failed, storing input unchanged", error=str(e))
                return secret
            raise SecretEncryptionError("Failed to encrypt secret") from e

    def decrypt(self, payload: Optional[str]) -> Optional[str]:
        if not payload:
            return payload

        try:
            decoded = base64.b64decode(payload, validate=True).decode("latin-1")
        except (binascii.Error, ValueError) as e:
            if self.legacy_fail_open:
                logger.warning("Secret decryption failed, using stored value unchanged", error=str(e))
                return payload
            raise SecretDecryptionError("Failed to decrypt secret") from e

        return xor_text(decoded, self.key)

    def reveal(self, stored: Optional[str]) -> Optional[str]:
        """Decrypt ``stored`` only if it looks encrypted."""
        if looks_encrypted(stored):
            return self.decrypt(stored)
        return stored


@lru_cache()
def get_secret_cipher() -> SecretCipher:
    """Get the cipher configured from settings"""
    settings = get_settings()
    return SecretCipher(
        settings.mfa_encryption_passphrase,
        legacy_fail_open=settings.mfa_legacy_secret_fail_open,
    )

"""Google Authenticator compatible TOTP profile.

SHA-1, 6 digits, 30 second step and a window of one step either side, so a
token is accepted during the previous, current and next 30 seconds.
"""

import re
from typing import Optional
from urllib.parse import quote, urlencode

from cropify_auth.exceptions import CryptoUnavailableError, SecretGenerationError
from cropify_auth.otp import base32
from cropify_auth.otp.crypto_provider import (
    CryptoProvider,
    HashAlgorithm,
    get_crypto_provider,
)
from cropify_auth.otp.engine import Clock, OTPConfig, TOTP
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

AUTHENTICATOR_CONFIG = OTPConfig(
    algorithm=HashAlgorithm.SHA1,
    digits=6,
    step=30,
    window=1,
)

DEFAULT_SECRET_BYTES = 20

# characters encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"

_NON_DIGITS = re.compile(r"[^0-9]")


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def normalize_token(token, digits: int = AUTHENTICATOR_CONFIG.digits) -> Optional[str]:
    """Strip separators from a user-entered token ("287 082", "287-082").

    Returns:
        The bare digit string, or None if it is not exactly ``digits`` long
    """
    if not isinstance(token, str):
        return None
    cleaned = _NON_DIGITS.sub("", token)
    if len(cleaned) != digits:
        return None
    return cleaned


class Authenticator:
    """TOTP wrapper with secret generation and otpauth:// provisioning."""

    def __init__(
        self,
        config: OTPConfig = AUTHENTICATOR_CONFIG,
        crypto: Optional[CryptoProvider] = None,
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self.crypto = crypto or get_crypto_provider()
        self.totp = TOTP(config, self.crypto, clock)

    def generate_secret(self, byte_length: int = DEFAULT_SECRET_BYTES) -> str:
        """Generate a random Base32 secret (160 bits by default).

        Raises:
            SecretGenerationError: If the CSPRNG fails
        """
        try:
            raw = self.crypto.random_bytes(byte_length)
        except (CryptoUnavailableError, ValueError, OSError) as e:
            logger.error("Secret generation failed", error=str(e))
            raise SecretGenerationError("Failed to generate secret") from e

        if len(raw) != byte_length:
            raise SecretGenerationError("Failed to generate secret")

        return base32.encode(raw)

    def key_uri(self, account_name: str, service_name: str, secret: str) -> str:
        """Build the otpauth:// URI encoded into the setup QR code.

        Format:
            otpauth://totp/{service}:{account}?secret=..&algorithm=SHA1&digits=6&period=30&issuer={service}
        """
        params = urlencode(
            {
                "secret": secret,
                "algorithm": self.config.algorithm.value.upper(),
                "digits": str(self.config.digits),
                "period": str(self.config.step),
                "issuer": service_name,
            }
        )
        label = f"{encode_uri_component(service_name)}:{encode_uri_component(account_name)}"
        return f"otpauth://totp/{label}?{params}"

    def generate(self, secret: str) -> str:
        """Token for the current time step."""
        return self.totp.generate(secret)

    def verify(self, token: str, secret: str) -> bool:
        """Verify ``token`` against now, within the profile window."""
        return self.totp.verify(token, secret)

    def time_remaining(self) -> int:
        return self.totp.time_remaining()

    def time_used(self) -> int:
        return self.totp.time_used()

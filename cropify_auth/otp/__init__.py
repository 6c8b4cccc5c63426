"""One-time password primitives: Base32, HOTP, TOTP and the Authenticator profile."""

from .authenticator import AUTHENTICATOR_CONFIG, Authenticator
from .crypto_provider import (
    CryptoProvider,
    HashAlgorithm,
    StdlibCryptoProvider,
    get_crypto_provider,
)
from .engine import HOTP, TOTP, OTPConfig

__all__ = [
    "AUTHENTICATOR_CONFIG",
    "Authenticator",
    "CryptoProvider",
    "HashAlgorithm",
    "StdlibCryptoProvider",
    "get_crypto_provider",
    "HOTP",
    "TOTP",
    "OTPConfig",
]

"""Cryptographic capability interface used by the OTP engine.

HMAC and random byte generation are always delegated to audited platform
primitives (``hmac``/``hashlib`` and the OS CSPRNG via ``secrets``). The
provider is chosen once, not feature-detected per call.
"""

import hashlib
import hmac
import secrets
from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache

from cropify_auth.exceptions import CryptoUnavailableError


class HashAlgorithm(str, Enum):
    """HMAC hash functions supported for OTP generation."""

    SHA1 = "SHA1"  # Google Authenticator default
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @classmethod
    def parse(cls, value) -> "HashAlgorithm":
        """Accept enum members or names in any case ("sha1", "SHA-256")."""
        if isinstance(value, cls):
            return value
        normalized = str(value).upper().replace("-", "")
        try:
            return cls(normalized)
        except ValueError:
            raise CryptoUnavailableError(f"Unsupported HMAC algorithm: {value}")

    @property
    def hashlib_name(self) -> str:
        return self.value.lower()


class CryptoProvider(ABC):
    """HMAC digest and secure randomness for the OTP engine."""

    @abstractmethod
    def digest(self, algorithm: HashAlgorithm, key: bytes, message: bytes) -> bytes:
        """Compute HMAC(algorithm, key, message)."""

    @abstractmethod
    def random_bytes(self, size: int) -> bytes:
        """Return ``size`` bytes from a cryptographically secure source."""

    def random_int_below(self, upper: int) -> int:
        """Uniform integer in ``[0, upper)`` from the CSPRNG."""
        if upper <= 0:
            raise ValueError("upper must be positive")
        # rejection sampling over the smallest covering byte width
        byte_count = max(1, (upper.bit_length() + 7) // 8)
        limit = (256 ** byte_count // upper) * upper
        while True:
            candidate = int.from_bytes(self.random_bytes(byte_count), "big")
            if candidate < limit:
                return candidate % upper


class StdlibCryptoProvider(CryptoProvider):
    """CryptoProvider backed by the Python standard library."""

    def digest(self, algorithm: HashAlgorithm, key: bytes, message: bytes) -> bytes:
        algorithm = HashAlgorithm.parse(algorithm)
        if algorithm.hashlib_name not in hashlib.algorithms_available:
            raise CryptoUnavailableError(
                f"HMAC-{algorithm.value} is not available on this host"
            )
        return hmac.new(bytes(key), bytes(message), algorithm.hashlib_name).digest()

    def random_bytes(self, size: int) -> bytes:
        if size < 0:
            raise ValueError("size must be non-negative")
        try:
            return secrets.token_bytes(size)
        except NotImplementedError as e:
            raise CryptoUnavailableError("No CSPRNG available on this host") from e


@lru_cache()
def get_crypto_provider() -> CryptoProvider:
    """Get the process crypto provider"""
    return StdlibCryptoProvider()

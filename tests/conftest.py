"""
Pytest configuration and shared fixtures for the Cropify 2FA test suite.
"""
import os
from typing import Callable, Dict, List

import pytest

os.environ.setdefault("USE_IN_MEMORY_STORE", "true")
os.environ.setdefault("OTEL_ENABLED", "false")

from cropify_auth.otp import base32
from cropify_auth.otp.authenticator import Authenticator
from cropify_auth.otp.crypto_provider import StdlibCryptoProvider
from cropify_auth.services import mfa_manager
from cropify_auth.services.document_store import InMemoryDocumentStore
from cropify_auth.services.verification_limiter import get_verification_limiter

# RFC 4226 Appendix D / RFC 6238 Appendix B shared secrets (ASCII)
RFC_SECRET_SHA1 = b"12345678901234567890"
RFC_SECRET_SHA256 = b"12345678901234567890123456789012"
RFC_SECRET_SHA512 = b"1234567890" * 6 + b"1234"

# Fixed wall clock used by deterministic tests (2023-11-14T22:13:20Z)
FIXED_NOW = 1_700_000_000.0


@pytest.fixture(autouse=True)
def reset_process_state():
    """Clear lockout counters and per-admin locks between tests."""
    get_verification_limiter().reset()
    mfa_manager._identity_locks.clear()
    yield
    get_verification_limiter().reset()
    mfa_manager._identity_locks.clear()


@pytest.fixture
def rfc_secret() -> str:
    """RFC 4226 test secret, Base32 encoded."""
    return base32.encode(RFC_SECRET_SHA1)


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def fixed_clock() -> Callable[[], float]:
    return lambda: FIXED_NOW


@pytest.fixture
def fixed_authenticator(fixed_clock) -> Authenticator:
    """Google Authenticator profile frozen at FIXED_NOW."""
    return Authenticator(clock=fixed_clock)


@pytest.fixture
def admin_id() -> str:
    return "admin-7f3a9c"


class SequenceCryptoProvider(StdlibCryptoProvider):
    """Real HMAC, scripted random bytes (cycled) for deterministic tests."""

    def __init__(self, chunks: List[bytes]):
        self.chunks = list(chunks)
        self.calls = 0

    def random_bytes(self, size: int) -> bytes:
        chunk = self.chunks[self.calls % len(self.chunks)]
        self.calls += 1
        return chunk[:size].rjust(size, b"\x00")


class FailingCryptoProvider(StdlibCryptoProvider):
    """CSPRNG that always fails."""

    def random_bytes(self, size: int) -> bytes:
        raise OSError("entropy source unavailable")


@pytest.fixture
def failing_crypto() -> FailingCryptoProvider:
    return FailingCryptoProvider()


@pytest.fixture
def make_sequence_crypto() -> Callable[[List[bytes]], SequenceCryptoProvider]:
    return SequenceCryptoProvider


@pytest.fixture
def rfc_secrets() -> Dict[str, str]:
    """RFC 6238 Appendix B secrets per algorithm, Base32 encoded."""
    return {
        "SHA1": base32.encode(RFC_SECRET_SHA1),
        "SHA256": base32.encode(RFC_SECRET_SHA256),
        "SHA512": base32.encode(RFC_SECRET_SHA512),
    }


@pytest.fixture
def fixed_now() -> float:
    return FIXED_NOW

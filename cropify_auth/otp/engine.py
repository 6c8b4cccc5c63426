"""HOTP (RFC 4226) and TOTP (RFC 6238) engines.

Both engines take an explicit ``OTPConfig``; there are no module-level
default instances. Secrets are Base32 strings and are decoded tolerantly, so
a malformed secret yields a short (possibly empty) HMAC key rather than an
error. Verification never raises for a wrong or malformed token.
"""

import hmac
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from cropify_auth.otp import base32
from cropify_auth.otp.crypto_provider import (
    CryptoProvider,
    HashAlgorithm,
    get_crypto_provider,
)

MAX_COUNTER = 2 ** 64 - 1

Clock = Callable[[], float]


@dataclass(frozen=True)
class OTPConfig:
    """OTP parameters.

    Attributes:
        algorithm: HMAC hash function
        digits: Token length (6-8)
        step: TOTP time step in seconds
        window: Steps accepted around the expected counter during verification
    """

    algorithm: HashAlgorithm = HashAlgorithm.SHA1
    digits: int = 6
    step: int = 30
    window: int = 0

    def __post_init__(self):
        object.__setattr__(self, "algorithm", HashAlgorithm.parse(self.algorithm))
        if not 6 <= self.digits <= 8:
            raise ValueError(f"digits must be between 6 and 8, got {self.digits}")
        if self.step <= 0:
            raise ValueError(f"step must be positive, got {self.step}")
        if self.window < 0:
            raise ValueError(f"window must be non-negative, got {self.window}")


def counter_to_bytes(counter: int) -> bytes:
    """8-byte big-endian counter message."""
    if counter < 0 or counter > MAX_COUNTER:
        raise ValueError(f"counter out of range: {counter}")
    return counter.to_bytes(8, "big")


def dynamic_truncate(digest: bytes) -> int:
    """RFC 4226 dynamic truncation to a 31-bit integer."""
    offset = digest[-1] & 0x0F
    return (
        ((digest[offset] & 0x7F) << 24)
        | ((digest[offset + 1] & 0xFF) << 16)
        | ((digest[offset + 2] & 0xFF) << 8)
        | (digest[offset + 3] & 0xFF)
    )


def tokens_match(token, expected: str) -> bool:
    """Exact, constant-time string comparison. Non-strings never match."""
    if not isinstance(token, str):
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


class HOTP:
    """Counter-based one-time passwords."""

    def __init__(self, config: OTPConfig = OTPConfig(), crypto: Optional[CryptoProvider] = None):
        self.config = config
        self.crypto = crypto or get_crypto_provider()

    def generate(self, secret: str, counter: int) -> str:
        """Generate the token for ``counter``.

        Args:
            secret: Base32 shared secret
            counter: Moving factor, 0 <= counter < 2**64

        Returns:
            Zero-padded decimal token of ``config.digits`` characters
        """
        key = base32.decode(secret)
        digest = self.crypto.digest(self.config.algorithm, key, counter_to_bytes(counter))
        code = dynamic_truncate(digest) % (10 ** self.config.digits)
        return str(code).zfill(self.config.digits)

    def verify(self, token: str, secret: str, counter: int) -> bool:
        """Check ``token`` against counters ``counter .. counter + window``.

        Only forward drift is tolerated; the first match wins.
        """
        for i in range(self.config.window + 1):
            candidate = counter + i
            if candidate > MAX_COUNTER:
                break
            if tokens_match(token, self.generate(secret, candidate)):
                return True
        return False


class TOTP:
    """Time-based one-time passwords on top of HOTP.

    Times are unix epoch milliseconds. ``clock`` returns unix seconds and is
    only consulted when a call omits its time argument.
    """

    def __init__(
        self,
        config: OTPConfig = OTPConfig(),
        crypto: Optional[CryptoProvider] = None,
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self.clock = clock or time.time
        self._hotp = HOTP(config, crypto)

    @property
    def step_ms(self) -> int:
        return self.config.step * 1000

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def counter_at(self, time_ms: float) -> int:
        return math.floor(time_ms / 1000 / self.config.step)

    def generate(self, secret: str, time_ms: Optional[float] = None) -> str:
        if time_ms is None:
            time_ms = self.now_ms()
        return self._hotp.generate(secret, self.counter_at(time_ms))

    def verify(self, token: str, secret: str, time_ms: Optional[float] = None) -> bool:
        """Accept tokens from ``window`` steps before or after ``time_ms``."""
        if time_ms is None:
            time_ms = self.now_ms()

        window = self.config.window
        for i in range(-window, window + 1):
            test_time = time_ms + i * self.step_ms
            if test_time < 0:
                continue
            if tokens_match(token, self.generate(secret, test_time)):
                return True
        return False

    def time_remaining(self, now_ms: Optional[int] = None) -> int:
        """Seconds until the current token rolls over (rounded up)."""
        if now_ms is None:
            now_ms = self.now_ms()
        remaining_ms = self.step_ms - (now_ms % self.step_ms)
        return math.ceil(remaining_ms / 1000)

    def time_used(self, now_ms: Optional[int] = None) -> int:
        """Seconds elapsed in the current step (rounded down)."""
        if now_ms is None:
            now_ms = self.now_ms()
        return (now_ms % self.step_ms) // 1000

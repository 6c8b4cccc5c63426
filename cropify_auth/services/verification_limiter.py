"""Per-Admin Verification Lockout

A 6-digit token has a 1e6 search space, so failed verifications are
counted per admin. After ``max_failed_attempts`` failures inside
``failure_window_seconds`` the admin is locked out for ``lockout_seconds``.

State is process-local: it throttles brute force against one instance but is
not shared between instances.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from cropify_auth.config import get_settings
from cropify_auth.exceptions import VerificationLockedError
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _AttemptState:
    failures: List[datetime] = field(default_factory=list)
    locked_until: Optional[datetime] = None


class VerificationLimiter:
    """Count failed verifications and lock out admins that exceed the limit."""

    def __init__(
        self,
        max_failed_attempts: int = 5,
        failure_window_seconds: int = 300,
        lockout_seconds: int = 900,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.max_failed_attempts = max_failed_attempts
        self.failure_window = timedelta(seconds=failure_window_seconds)
        self.lockout = timedelta(seconds=lockout_seconds)
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._states: Dict[str, _AttemptState] = {}
        self._lock = threading.Lock()

    def check(self, identity: str) -> None:
        """Raise VerificationLockedError if ``identity`` is locked out."""
        with self._lock:
            state = self._states.get(identity)
            if state is None or state.locked_until is None:
                return

            if self._now() >= state.locked_until:
                self._states.pop(identity, None)
                return

            locked_until = state.locked_until

        logger.warning("Verification attempted while locked out", admin_id=identity)
        raise VerificationLockedError(identity, locked_until)

    def record_failure(self, identity: str) -> int:
        """Record a failed attempt.

        Returns:
            Attempts remaining before lockout (0 once locked)
        """
        now = self._now()
        with self._lock:
            state = self._states.setdefault(identity, _AttemptState())
            state.failures = [t for t in state.failures if now - t < self.failure_window]
            state.failures.append(now)

            remaining = self.max_failed_attempts - len(state.failures)
            if remaining <= 0:
                state.locked_until = now + self.lockout
                state.failures = []
                remaining = 0

        if remaining == 0:
            logger.warning(
                "Admin locked out after repeated verification failures",
                admin_id=identity,
                lockout_seconds=int(self.lockout.total_seconds()),
            )

        return remaining

    def record_success(self, identity: str) -> None:
        with self._lock:
            self._states.pop(identity, None)

    def reset(self, identity: Optional[str] = None) -> None:
        with self._lock:
            if identity is None:
                self._states.clear()
            else:
                self._states.pop(identity, None)


@lru_cache()
def get_verification_limiter() -> VerificationLimiter:
    """Get the process verification limiter configured from settings"""
    settings = get_settings()
    return VerificationLimiter(
        max_failed_attempts=settings.mfa_max_failed_attempts,
        failure_window_seconds=settings.mfa_failure_window_seconds,
        lockout_seconds=settings.mfa_lockout_seconds,
    )

"""Backup Code Management

Backup codes are single-use 8-digit numeric fallbacks for when the admin's
authenticator device is unavailable. They are drawn from the CSPRNG, stored
with the MFA record, checked by exact string match and removed on use.
"""

import re
from typing import Iterable, List, Optional, Tuple, Union

from cropify_auth.otp.crypto_provider import CryptoProvider, get_crypto_provider
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

BACKUP_CODE_LENGTH = 8
BACKUP_CODE_MIN = 10_000_000
BACKUP_CODE_MAX = 99_999_999
DEFAULT_BACKUP_CODE_COUNT = 10

_BACKUP_CODE_PATTERN = re.compile(r"^[0-9]{8}$")
_DELIMITERS = re.compile(r"[\s,;]+")


def generate_backup_codes(
    count: int = DEFAULT_BACKUP_CODE_COUNT,
    crypto: Optional[CryptoProvider] = None,
) -> List[str]:
    """Generate ``count`` backup codes.

    Each code is drawn independently and uniformly from
    [10_000_000, 99_999_999].

    Returns:
        List of 8-digit strings, e.g. ["48213907", "10582266", ...]
    """
    if count < 0:
        raise ValueError("count must be non-negative")

    crypto = crypto or get_crypto_provider()
    span = BACKUP_CODE_MAX - BACKUP_CODE_MIN + 1
    codes = [str(BACKUP_CODE_MIN + crypto.random_int_below(span)) for _ in range(count)]

    logger.info("Generated backup codes", count=count)

    return codes


def validate_backup_code_format(code) -> bool:
    """Exactly 8 ASCII decimal digits."""
    return isinstance(code, str) and bool(_BACKUP_CODE_PATTERN.match(code))


def consume_backup_code(codes: Iterable[str], code: str) -> Tuple[bool, List[str]]:
    """Remove the first occurrence of ``code``.

    The input is not mutated.

    Returns:
        (found, updated_codes). ``updated_codes`` equals the input when the
        code was not found.
    """
    updated = list(codes)
    try:
        updated.remove(code)
    except ValueError:
        return False, updated

    logger.info("Backup code consumed", remaining_codes=len(updated))
    return True, updated


def parse_backup_codes(value: Union[None, str, Iterable[str]]) -> List[str]:
    """Normalise stored backup codes to a list.

    Records written by older dashboard builds keep the codes as one
    delimited string; newer ones store an array.
    """
    if not value:
        return []
    if isinstance(value, str):
        return [part for part in _DELIMITERS.split(value.strip()) if part]
    return [str(code) for code in value]

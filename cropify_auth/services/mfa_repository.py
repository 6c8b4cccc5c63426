"""MFA Repository - Firestore Operations for Admin 2FA Records

This service manages the MFA document of each admin, stored at
admins/{adminId}/mfa/totp:
- Record lookup and save (secret encrypted before every write)
- Enrollment start, setup completion and disable (full delete)
- Last-verified timestamp bumps
- Backup code listing, replacement and single-use redemption

Persistence failures are raised as PersistenceError subclasses; an empty
admin ID short-circuits to None/False without touching the store.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from cropify_auth.config import get_settings
from cropify_auth.models.mfa import MFARecord
from cropify_auth.services.backup_codes import consume_backup_code
from cropify_auth.services.document_store import DocumentStore, get_document_store
from cropify_auth.services.secret_encryption import get_secret_cipher
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SERVICE_NAME = "Cropify Admin"


def _location(admin_id: str):
    settings = get_settings()
    return settings.mfa_collection, f"{admin_id}/{settings.mfa_document_suffix}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_mfa_data(
    admin_id: str, store: Optional[DocumentStore] = None
) -> Optional[MFARecord]:
    """Get the MFA record for an admin.

    Args:
        admin_id: Admin ID

    Returns:
        MFARecord if found (secret still encrypted), None otherwise
    """
    if not admin_id:
        return None

    store = store or get_document_store()
    doc = await store.get(*_location(admin_id))
    if doc is None:
        logger.debug("MFA record not found", admin_id=admin_id)
        return None

    return MFARecord.from_firestore(doc)


async def save_mfa_data(
    admin_id: str, record: MFARecord, store: Optional[DocumentStore] = None
) -> bool:
    """Save (merge) an MFA record, encrypting its secret first.

    Args:
        admin_id: Admin ID
        record: Record with a plaintext secret

    Returns:
        True if saved
    """
    if not admin_id or record is None:
        return False

    store = store or get_document_store()
    now = _now()

    data = record.to_dict()
    data["secret"] = get_secret_cipher().encrypt(record.secret)
    data["createdAt"] = record.created_at or now
    data["lastUpdated"] = now

    await store.set(*_location(admin_id), data, merge=True)
    logger.info("MFA record saved", admin_id=admin_id)
    return True


async def enable_2fa(
    admin_id: str,
    secret: str,
    backup_codes: Sequence[str] = (),
    account_name: str = "",
    service_name: str = DEFAULT_SERVICE_NAME,
    store: Optional[DocumentStore] = None,
) -> bool:
    """Start 2FA for an admin: enabled, but setup not yet completed.

    Returns:
        True if the record was written, False for a missing admin ID or secret
    """
    if not admin_id or not secret:
        return False

    now = _now()
    record = MFARecord(
        enabled=True,
        secret=secret,
        backup_codes=list(backup_codes or []),
        account_name=account_name,
        service_name=service_name,
        created_at=now,
        last_verified_at=now,
        setup_completed=False,
    )

    saved = await save_mfa_data(admin_id, record, store=store)
    logger.info("2FA enabled, awaiting first verification", admin_id=admin_id)
    return saved


async def complete_2fa_setup(
    admin_id: str, store: Optional[DocumentStore] = None
) -> bool:
    """Mark setup as completed after the first successful verification."""
    if not admin_id:
        return False

    store = store or get_document_store()
    now = _now()
    await store.update(
        *_location(admin_id),
        {"setupCompleted": True, "lastVerifiedAt": now, "lastUpdated": now},
    )
    logger.info("2FA setup completed", admin_id=admin_id)
    return True


async def disable_2fa(admin_id: str, store: Optional[DocumentStore] = None) -> bool:
    """Delete the MFA record; the admin must enroll again from scratch."""
    if not admin_id:
        return False

    store = store or get_document_store()
    await store.delete(*_location(admin_id))
    logger.info("2FA disabled, MFA record deleted", admin_id=admin_id)
    return True


async def update_last_verified(
    admin_id: str, store: Optional[DocumentStore] = None
) -> bool:
    if not admin_id:
        return False

    store = store or get_document_store()
    now = _now()
    await store.update(
        *_location(admin_id), {"lastVerifiedAt": now, "lastUpdated": now}
    )
    return True


async def is_2fa_enabled(admin_id: str, store: Optional[DocumentStore] = None) -> bool:
    """True iff the record exists, is enabled and setup is completed."""
    record = await get_mfa_data(admin_id, store=store)
    return record is not None and record.is_active


async def get_2fa_secret(
    admin_id: str, store: Optional[DocumentStore] = None
) -> Optional[str]:
    """Get the decrypted TOTP secret of an enabled record.

    Legacy plaintext secrets (not matching the encrypted heuristic) are
    returned as stored.
    """
    record = await get_mfa_data(admin_id, store=store)
    if record is None or not record.enabled or not record.secret:
        return None

    return get_secret_cipher().reveal(record.secret)


async def get_backup_codes(
    admin_id: str, store: Optional[DocumentStore] = None
) -> Optional[List[str]]:
    """Remaining backup codes, or None if 2FA is not enabled."""
    record = await get_mfa_data(admin_id, store=store)
    if record is None or not record.enabled:
        return None
    return record.backup_codes


async def update_backup_codes(
    admin_id: str, backup_codes: List[str], store: Optional[DocumentStore] = None
) -> bool:
    """Replace the stored backup codes."""
    if not admin_id or not isinstance(backup_codes, list):
        return False

    store = store or get_document_store()
    await store.update(
        *_location(admin_id),
        {"backupCodes": list(backup_codes), "lastUpdated": _now()},
    )
    return True


async def verify_and_remove_backup_code(
    admin_id: str, backup_code: str, store: Optional[DocumentStore] = None
) -> bool:
    """Redeem a backup code: on exact match, remove it and persist the rest.

    Returns:
        True if the code was valid and has been removed
    """
    if not admin_id or not backup_code:
        return False

    store = store or get_document_store()
    record = await get_mfa_data(admin_id, store=store)
    if record is None or not record.backup_codes:
        return False

    found, remaining = consume_backup_code(record.backup_codes, backup_code)
    if not found:
        logger.warning("Backup code not recognised", admin_id=admin_id)
        return False

    await update_backup_codes(admin_id, remaining, store=store)
    logger.info(
        "Backup code redeemed", admin_id=admin_id, remaining_codes=len(remaining)
    )
    return True

"""
Tests for the MFA record and API models.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from cropify_auth.models.mfa import (
    MFARecord,
    MFASetupData,
    MFAState,
    SetupRequest,
    StatusResponse,
)


@pytest.fixture
def sample_document():
    return {
        "enabled": True,
        "secret": "ZW5jcnlwdGVkLXNlY3JldC12YWx1ZQ==",
        "backupCodes": ["11111111", "22222222"],
        "accountName": "alice@example.com",
        "serviceName": "Cropify Admin",
        "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "lastVerifiedAt": datetime(2024, 1, 2, tzinfo=timezone.utc),
        "setupCompleted": True,
        "lastUpdated": datetime(2024, 1, 2, tzinfo=timezone.utc),
    }


class TestMFARecord:
    """Tests for MFARecord."""

    def test_from_firestore(self, sample_document):
        record = MFARecord.from_firestore(sample_document)

        assert record.enabled is True
        assert record.secret == "ZW5jcnlwdGVkLXNlY3JldC12YWx1ZQ=="
        assert record.backup_codes == ["11111111", "22222222"]
        assert record.account_name == "alice@example.com"
        assert record.setup_completed is True
        assert record.last_verified_at == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_to_dict_uses_camel_case(self, sample_document):
        assert MFARecord.from_firestore(sample_document).to_dict() == sample_document

    def test_from_sparse_document(self):
        record = MFARecord.from_firestore({})

        assert record.enabled is False
        assert record.secret is None
        assert record.backup_codes == []
        assert record.setup_completed is False

    def test_string_backup_codes_are_split(self):
        record = MFARecord.from_firestore({"backupCodes": "11111111 22222222"})

        assert record.backup_codes == ["11111111", "22222222"]

    @pytest.mark.parametrize(
        "enabled,setup_completed,active",
        [(True, True, True), (True, False, False), (False, True, False), (False, False, False)],
    )
    def test_is_active_requires_both_flags(self, enabled, setup_completed, active):
        record = MFARecord(enabled=enabled, setup_completed=setup_completed)

        assert record.is_active is active

    def test_state(self):
        assert MFARecord(enabled=True, setup_completed=True).state == MFAState.ACTIVE
        assert MFARecord(enabled=True).state == MFAState.AWAITING_FIRST_VERIFICATION


class TestMFASetupData:
    def test_to_response(self):
        data = MFASetupData(
            secret="JBSWY3DPEHPK3PXP",
            qr_code_url="https://api.qrserver.com/v1/create-qr-code/?size=200x200&data=x",
            totp_uri="otpauth://totp/x",
            backup_codes=["11111111"],
            account_name="alice@example.com",
            service_name="Cropify Admin",
        )

        assert data.to_response() == {
            "secret": "JBSWY3DPEHPK3PXP",
            "qrCodeURL": "https://api.qrserver.com/v1/create-qr-code/?size=200x200&data=x",
            "totpURI": "otpauth://totp/x",
            "backupCodes": ["11111111"],
            "accountName": "alice@example.com",
            "serviceName": "Cropify Admin",
        }


class TestApiModels:
    def test_setup_request_requires_account_name(self):
        with pytest.raises(ValidationError):
            SetupRequest(account_name="")

    def test_setup_request_service_name_optional(self):
        assert SetupRequest(account_name="alice@example.com").service_name is None

    def test_status_without_record(self):
        status = StatusResponse.from_record("admin-1", None)

        assert status.enabled is False
        assert status.state == MFAState.UNINITIALIZED
        assert status.backup_codes_remaining == 0

    def test_status_from_record(self, sample_document):
        status = StatusResponse.from_record("admin-1", MFARecord.from_firestore(sample_document))

        assert status.enabled is True
        assert status.state == MFAState.ACTIVE
        assert status.backup_codes_remaining == 2
        assert status.last_verified_at == datetime(2024, 1, 2, tzinfo=timezone.utc)

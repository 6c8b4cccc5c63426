"""
Tests for the document store adapters.

Test Coverage:
- InMemoryDocumentStore get/set/merge/update/delete semantics
- Firestore error classification into PersistenceError subclasses
- Retry with backoff for transient errors only
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from cropify_auth.exceptions import (
    PersistenceDeadlineExceededError,
    PersistenceError,
    PersistencePermissionDeniedError,
    PersistenceResourceExhaustedError,
    PersistenceUnavailableError,
    PersistenceUnknownError,
)
from cropify_auth.services.document_store import (
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    classify_error,
    get_document_store,
)


class TestInMemoryDocumentStore:
    """Tests for InMemoryDocumentStore."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, memory_store):
        assert await memory_store.get("admins", "a1/mfa/totp") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, memory_store):
        await memory_store.set("admins", "a1/mfa/totp", {"enabled": True})

        assert await memory_store.get("admins", "a1/mfa/totp") == {"enabled": True}

    @pytest.mark.asyncio
    async def test_set_without_merge_overwrites(self, memory_store):
        await memory_store.set("admins", "a1", {"a": 1, "b": 2})
        await memory_store.set("admins", "a1", {"a": 3})

        assert await memory_store.get("admins", "a1") == {"a": 3}

    @pytest.mark.asyncio
    async def test_set_with_merge_keeps_other_fields(self, memory_store):
        await memory_store.set("admins", "a1", {"a": 1, "b": 2})
        await memory_store.set("admins", "a1", {"a": 3}, merge=True)

        assert await memory_store.get("admins", "a1") == {"a": 3, "b": 2}

    @pytest.mark.asyncio
    async def test_update_existing(self, memory_store):
        await memory_store.set("admins", "a1", {"a": 1})
        await memory_store.update("admins", "a1", {"b": 2})

        assert await memory_store.get("admins", "a1") == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, memory_store):
        with pytest.raises(PersistenceUnknownError):
            await memory_store.update("admins", "missing", {"b": 2})

    @pytest.mark.asyncio
    async def test_delete(self, memory_store):
        await memory_store.set("admins", "a1", {"a": 1})

        assert await memory_store.delete("admins", "a1") is True
        assert await memory_store.get("admins", "a1") is None

    @pytest.mark.asyncio
    async def test_delete_missing_succeeds(self, memory_store):
        assert await memory_store.delete("admins", "missing") is True

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, memory_store):
        record = {"backupCodes": ["11111111"]}
        await memory_store.set("admins", "a1", record)
        record["backupCodes"].append("22222222")

        doc = await memory_store.get("admins", "a1")
        doc["backupCodes"].clear()

        assert await memory_store.get("admins", "a1") == {"backupCodes": ["11111111"]}

    @pytest.mark.asyncio
    async def test_slashes_are_normalised(self, memory_store):
        await memory_store.set("/admins/", "/a1/mfa/totp", {"a": 1})

        assert await memory_store.get("admins", "a1/mfa/totp") == {"a": 1}

    def test_configured_store_is_shared_in_memory_instance(self):
        store = get_document_store()

        assert isinstance(store, InMemoryDocumentStore)
        assert get_document_store() is store


class TestClassifyError:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (google_exceptions.ServiceUnavailable("down"), PersistenceUnavailableError),
            (google_exceptions.PermissionDenied("nope"), PersistencePermissionDeniedError),
            (google_exceptions.DeadlineExceeded("slow"), PersistenceDeadlineExceededError),
            (asyncio.TimeoutError(), PersistenceDeadlineExceededError),
            (google_exceptions.ResourceExhausted("quota"), PersistenceResourceExhaustedError),
            (RuntimeError("boom"), PersistenceUnknownError),
        ],
    )
    def test_classification(self, error, expected):
        classified = classify_error(error, operation="get", path="admins/a1/mfa/totp")

        assert type(classified) is expected
        assert classified.operation == "get"
        assert classified.path == "admins/a1/mfa/totp"

    def test_messages(self):
        assert str(classify_error(google_exceptions.ServiceUnavailable("x"))) == (
            "Database is temporarily unavailable. Please try again."
        )
        assert str(classify_error(RuntimeError("boom"))) == "Database error: boom"

    def test_only_transient_errors_are_retryable(self):
        assert classify_error(google_exceptions.ServiceUnavailable("x")).retryable
        assert classify_error(google_exceptions.DeadlineExceeded("x")).retryable
        assert not classify_error(google_exceptions.PermissionDenied("x")).retryable
        assert not classify_error(google_exceptions.ResourceExhausted("x")).retryable
        assert not classify_error(RuntimeError("x")).retryable

    def test_persistence_errors_pass_through(self):
        error = PersistenceUnavailableError()

        assert classify_error(error) is error


@pytest.fixture
def doc_ref():
    ref = MagicMock()
    ref.path = "admins/a1/mfa/totp"
    ref.get = AsyncMock()
    ref.set = AsyncMock()
    ref.update = AsyncMock()
    ref.delete = AsyncMock()
    return ref


@pytest.fixture
def firestore_client(doc_ref):
    client = MagicMock()
    client.document.return_value = doc_ref
    return client


@pytest.fixture
def firestore_store(firestore_client):
    return FirestoreDocumentStore(client=firestore_client, max_retries=3, retry_base_delay=0)


class TestFirestoreDocumentStore:
    """Tests for FirestoreDocumentStore with a mocked AsyncClient."""

    @pytest.mark.asyncio
    async def test_document_path_segments(self, firestore_store, firestore_client, doc_ref):
        doc_ref.get.return_value = MagicMock(exists=False)

        await firestore_store.get("admins", "a1/mfa/totp")

        firestore_client.document.assert_called_once_with("admins", "a1", "mfa", "totp")

    @pytest.mark.asyncio
    async def test_get_existing(self, firestore_store, doc_ref):
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {"enabled": True}
        doc_ref.get.return_value = snapshot

        assert await firestore_store.get("admins", "a1/mfa/totp") == {"enabled": True}

    @pytest.mark.asyncio
    async def test_get_missing(self, firestore_store, doc_ref):
        doc_ref.get.return_value = MagicMock(exists=False)

        assert await firestore_store.get("admins", "a1/mfa/totp") is None

    @pytest.mark.asyncio
    async def test_set_passes_merge(self, firestore_store, doc_ref):
        await firestore_store.set("admins", "a1/mfa/totp", {"a": 1}, merge=True)

        doc_ref.set.assert_awaited_once_with({"a": 1}, merge=True)

    @pytest.mark.asyncio
    async def test_update_and_delete(self, firestore_store, doc_ref):
        assert await firestore_store.update("admins", "a1/mfa/totp", {"a": 2}) is True
        assert await firestore_store.delete("admins", "a1/mfa/totp") is True

        doc_ref.update.assert_awaited_once_with({"a": 2})
        doc_ref.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, firestore_store, doc_ref):
        doc_ref.set.side_effect = [google_exceptions.ServiceUnavailable("down"), None]

        assert await firestore_store.set("admins", "a1/mfa/totp", {"a": 1}) is True
        assert doc_ref.set.await_count == 2

    @pytest.mark.asyncio
    async def test_transient_error_gives_up_after_max_retries(self, firestore_store, doc_ref):
        doc_ref.update.side_effect = google_exceptions.DeadlineExceeded("slow")

        with pytest.raises(PersistenceDeadlineExceededError) as exc_info:
            await firestore_store.update("admins", "a1/mfa/totp", {"a": 1})

        assert doc_ref.update.await_count == 3
        assert exc_info.value.operation == "update"
        assert exc_info.value.path == "admins/a1/mfa/totp"

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self, firestore_store, doc_ref):
        doc_ref.get.side_effect = google_exceptions.PermissionDenied("nope")

        with pytest.raises(PersistencePermissionDeniedError):
            await firestore_store.get("admins", "a1/mfa/totp")

        assert doc_ref.get.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_error_wrapped(self, firestore_store, doc_ref):
        doc_ref.delete.side_effect = RuntimeError("boom")

        with pytest.raises(PersistenceError, match="Database error: boom"):
            await firestore_store.delete("admins", "a1/mfa/totp")

    @pytest.mark.asyncio
    async def test_backoff_doubles(self, firestore_client, doc_ref, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        doc_ref.get.side_effect = google_exceptions.ServiceUnavailable("down")
        store = FirestoreDocumentStore(client=firestore_client, max_retries=3, retry_base_delay=0.5)

        with pytest.raises(PersistenceUnavailableError):
            await store.get("admins", "a1/mfa/totp")

        assert delays == [0.5, 1.0]

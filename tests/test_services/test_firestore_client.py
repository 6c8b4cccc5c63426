"""
Tests for the shared Firestore client singleton.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cropify_auth.services import firestore_client


@pytest.fixture(autouse=True)
def reset_client(monkeypatch):
    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)
    firestore_client.reset_firestore_client()
    yield
    firestore_client.reset_firestore_client()


class TestFirestoreClient:
    def test_client_is_singleton(self):
        with patch.object(firestore_client, "AsyncClient") as mock_client_class:
            first = firestore_client.get_firestore_client()
            second = firestore_client.get_firestore_client()

        assert first is second
        mock_client_class.assert_called_once()

    def test_uses_configured_project_and_database(self):
        settings = firestore_client.get_settings()

        with patch.object(firestore_client, "AsyncClient") as mock_client_class:
            firestore_client.get_firestore_client()

        mock_client_class.assert_called_once_with(
            project=settings.gcp_project_id, database=settings.firestore_database
        )

    def test_service_account_credentials(self, tmp_path, monkeypatch):
        key_file = tmp_path / "sa.json"
        key_file.write_text("{}")
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(key_file))
        credentials = MagicMock()

        with patch.object(firestore_client, "AsyncClient") as mock_client_class, patch.object(
            firestore_client.service_account.Credentials,
            "from_service_account_file",
            return_value=credentials,
        ):
            firestore_client.get_firestore_client()

        assert mock_client_class.call_args.kwargs["credentials"] is credentials

    @pytest.mark.asyncio
    async def test_close_awaits_async_close(self):
        client = MagicMock()
        client.close = AsyncMock()

        with patch.object(firestore_client, "AsyncClient", return_value=client):
            firestore_client.get_firestore_client()

        await firestore_client.close_firestore_client()

        client.close.assert_awaited_once()
        assert firestore_client._firestore_client is None

    @pytest.mark.asyncio
    async def test_close_handles_sync_close(self):
        client = MagicMock()
        client.close = MagicMock(return_value=None)

        with patch.object(firestore_client, "AsyncClient", return_value=client):
            firestore_client.get_firestore_client()

        await firestore_client.close_firestore_client()

        client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_without_client(self):
        await firestore_client.close_firestore_client()

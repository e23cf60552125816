"""Unit tests for Gmail client."""

from unittest.mock import MagicMock

import pytest

from email_cache_agent.config import Settings
from email_cache_agent.exceptions import ConfigurationError, GmailAPIError, ServiceUnavailableError
from email_cache_agent.gmail.client import METADATA_HEADERS, GmailClient


@pytest.fixture
def service() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(mock_settings: Settings, service: MagicMock) -> GmailClient:
    return GmailClient(settings=mock_settings, service=service)


def _messages(service: MagicMock) -> MagicMock:
    return service.users.return_value.messages.return_value


class TestGmailClient:
    """Test suite for GmailClient class."""

    def test_gmail_client_initialization(self, mock_settings: Settings) -> None:
        """Test that Gmail client is properly initialized."""
        client = GmailClient(settings=mock_settings)

        assert client.settings is mock_settings
        assert client.is_available is False

    @pytest.mark.asyncio
    async def test_authenticate_missing_credentials_raises(self, tmp_path) -> None:
        """Test that authenticate fails fast when credentials.json is missing."""
        settings = Settings(gmail_credentials_path=tmp_path / "missing.json")
        client = GmailClient(settings=settings)

        with pytest.raises(ConfigurationError):
            await client.authenticate()

    @pytest.mark.asyncio
    async def test_calls_require_authentication(self, mock_settings: Settings) -> None:
        """Test that remote calls fail with ServiceUnavailableError before authenticate()."""
        client = GmailClient(settings=mock_settings)

        with pytest.raises(ServiceUnavailableError):
            await client.list_message_ids(10)
        with pytest.raises(ServiceUnavailableError):
            await client.get_message("msg123")
        with pytest.raises(ServiceUnavailableError):
            await client.trash_message("msg123")

    @pytest.mark.asyncio
    async def test_list_message_ids_returns_page(self, client: GmailClient, service: MagicMock) -> None:
        """Test listing one page of IDs and the continuation token."""
        _messages(service).list.return_value.execute.return_value = {
            "messages": [{"id": "a", "threadId": "t"}, {"id": "b", "threadId": "t"}],
            "nextPageToken": "next",
        }

        ids, token = await client.list_message_ids(2, page_token="prev")

        assert ids == ["a", "b"]
        assert token == "next"
        _messages(service).list.assert_called_once_with(userId="me", maxResults=2, pageToken="prev")

    @pytest.mark.asyncio
    async def test_list_message_ids_last_page(self, client: GmailClient, service: MagicMock) -> None:
        """Test that an exhausted listing returns no token."""
        _messages(service).list.return_value.execute.return_value = {}

        ids, token = await client.list_message_ids(50)

        assert ids == []
        assert token is None

    @pytest.mark.asyncio
    async def test_get_message_uses_metadata_headers(self, client: GmailClient, service: MagicMock) -> None:
        """Test that metadata fetches request the cached headers."""
        _messages(service).get.return_value.execute.return_value = {"id": "a"}

        assert await client.get_message("a") == {"id": "a"}
        _messages(service).get.assert_called_once_with(
            userId="me",
            id="a",
            format="metadata",
            metadataHeaders=METADATA_HEADERS,
        )

    @pytest.mark.asyncio
    async def test_api_errors_are_wrapped(self, client: GmailClient, service: MagicMock) -> None:
        """Test that API failures surface as GmailAPIError."""
        _messages(service).get.return_value.execute.side_effect = RuntimeError("quota")

        with pytest.raises(GmailAPIError):
            await client.get_message("a", format="full")

    @pytest.mark.asyncio
    async def test_mark_read_removes_unread_label(self, client: GmailClient, service: MagicMock) -> None:
        """Test that mark_read issues a single batchModify call."""
        await client.mark_read(["a", "b"])

        _messages(service).batchModify.assert_called_once_with(
            userId="me",
            body={"ids": ["a", "b"], "addLabelIds": [], "removeLabelIds": ["UNREAD"]},
        )

    @pytest.mark.asyncio
    async def test_mark_read_empty_is_noop(self, client: GmailClient, service: MagicMock) -> None:
        """Test that no request is made for an empty ID list."""
        await client.mark_read([])

        _messages(service).batchModify.assert_not_called()

    @pytest.mark.asyncio
    async def test_trash_message(self, client: GmailClient, service: MagicMock) -> None:
        """Test that trash_message moves the message to trash."""
        await client.trash_message("a")

        _messages(service).trash.assert_called_once_with(userId="me", id="a")

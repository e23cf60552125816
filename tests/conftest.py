"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
from typing import Any

import pytest

from email_cache_agent.cache import CacheStore
from email_cache_agent.exceptions import GmailAPIError, ServiceUnavailableError


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_gmail_message(
    message_id: str,
    *,
    subject: str = "",
    sender: str = "sender@example.com",
    to: str = "me@example.com",
    cc: str = "",
    snippet: str = "",
    internal_date: int = 1_700_000_000_000,
    labels: list[str] | None = None,
    plain: str | None = None,
    html: str | None = None,
) -> dict[str, Any]:
    """Build a Gmail API message dict (headers plus an optional MIME body)."""

    headers = [
        {"name": "From", "value": sender},
        {"name": "To", "value": to},
        {"name": "Subject", "value": subject},
    ]
    if cc:
        headers.append({"name": "Cc", "value": cc})

    parts = []
    if plain is not None:
        parts.append({"mimeType": "text/plain", "body": {"data": _b64(plain)}})
    if html is not None:
        parts.append({"mimeType": "text/html", "body": {"data": _b64(html)}})

    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "labelIds": ["INBOX", "UNREAD"] if labels is None else labels,
        "snippet": snippet,
        "internalDate": str(internal_date),
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": headers,
            "body": {},
            "parts": parts,
        },
    }


class FakeGmailClient:
    """In-memory stand-in for ``GmailClient`` with call counters."""

    def __init__(self, messages: list[dict[str, Any]] | None = None, *, available: bool = True) -> None:
        self.messages: dict[str, dict[str, Any]] = {}
        self.order: list[str] = []
        for m in messages or []:
            self.add(m)
        self.available = available
        self.fail_ids: set[str] = set()
        self.fail_trash = False
        self.fail_mark_read = False
        self.list_calls: list[tuple[int, str | None]] = []
        self.get_calls: list[tuple[str, str]] = []
        self.mark_read_calls: list[list[str]] = []
        self.trash_calls: list[str] = []

    def add(self, message: dict[str, Any]) -> None:
        if message["id"] not in self.messages:
            self.order.append(message["id"])
        self.messages[message["id"]] = message

    @property
    def is_available(self) -> bool:
        return self.available

    def full_fetches(self) -> int:
        return sum(1 for _, fmt in self.get_calls if fmt == "full")

    async def authenticate(self) -> None:
        return None

    async def list_message_ids(
        self,
        max_results: int,
        page_token: str | None = None,
    ) -> tuple[list[str], str | None]:
        self._check()
        self.list_calls.append((max_results, page_token))
        start = int(page_token) if page_token else 0
        ids = self.order[start : start + max_results]
        end = start + len(ids)
        return ids, (str(end) if end < len(self.order) else None)

    async def get_message(
        self,
        message_id: str,
        *,
        format: str = "metadata",
        metadata_headers: list[str] | None = None,
    ) -> dict[str, Any]:
        self._check()
        self.get_calls.append((message_id, format))
        if message_id in self.fail_ids or message_id not in self.messages:
            raise GmailAPIError(f"fetch failed for {message_id}")
        return self.messages[message_id]

    async def mark_read(self, message_ids: list[str]) -> None:
        self._check()
        if self.fail_mark_read:
            raise GmailAPIError("batchModify failed")
        self.mark_read_calls.append(list(message_ids))

    async def trash_message(self, message_id: str) -> None:
        self._check()
        if self.fail_trash:
            raise GmailAPIError("trash failed")
        self.trash_calls.append(message_id)

    def _check(self) -> None:
        if not self.available:
            raise ServiceUnavailableError("Gmail client is not authenticated.")


class FakeOllamaClient:
    """In-memory stand-in for ``OllamaClient``.

    ``vectors`` maps an exact text to its embedding; other texts get
    ``default_vector``. ``responses`` maps a model name to the text returned
    by ``generate``.
    """

    def __init__(
        self,
        *,
        vectors: dict[str, list[float]] | None = None,
        default_vector: list[float] | None = None,
        responses: dict[str, str] | None = None,
    ) -> None:
        self.vectors = vectors or {}
        self.default_vector = default_vector or [0.1, 0.2, 0.3]
        self.responses = responses or {}
        self.embed_calls: list[str] = []
        self.generate_calls: list[tuple[str, str | None, bool]] = []
        self.fail_embed = False

    @property
    def is_available(self) -> bool:
        return True

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        self.embed_calls.append(text)
        if self.fail_embed:
            raise RuntimeError("embedding backend down")
        return list(self.vectors.get(text, self.default_vector))

    async def generate(self, prompt: str, model: str | None = None, stream: bool = False) -> str:
        self.generate_calls.append((prompt, model, stream))
        return self.responses.get(model or "", "")


@pytest.fixture
def mock_settings(tmp_path):
    """Provide mock settings for testing."""
    from email_cache_agent.config import Settings

    return Settings(
        ollama_host="http://test:11434",
        embedding_model="test-embed",
        summary_model="test-summary",
        extraction_model="test-extract",
        cache_db_path=tmp_path / "cache.db",
        channels_path=tmp_path / "channels.json",
        enrichment_workers=2,
        enrichment_queue_size=16,
        retention_initial_delay_seconds=0,
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def store(tmp_path):
    """Provide an initialized cache store in a temporary directory."""
    s = CacheStore(tmp_path / "cache.db", busy_timeout_ms=100, retry_delay=0.0)
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def fake_gmail() -> FakeGmailClient:
    return FakeGmailClient()


@pytest.fixture
def fake_ollama() -> FakeOllamaClient:
    return FakeOllamaClient()


@pytest.fixture
def sample_email_data() -> dict:
    """Provide sample email data structure."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Weekly Newsletter - Python Tips",
        "internalDate": "1700000000000",
        "payload": {
            "headers": [
                {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                {"name": "From", "value": "Python <newsletter@python.org>"},
                {"name": "To", "value": "user@example.com"},
                {"name": "Cc", "value": "team@example.com"},
            ],
            "body": {"data": "encoded_body_data"},
        },
    }


@pytest.fixture
def gmail_message():
    """Factory for Gmail API message dicts."""
    return make_gmail_message


@pytest.fixture
def make_gmail():
    """Factory for fake Gmail clients preloaded with messages."""
    return FakeGmailClient


@pytest.fixture
def make_ollama():
    """Factory for fake Ollama clients."""
    return FakeOllamaClient

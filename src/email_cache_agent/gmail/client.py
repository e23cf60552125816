"""Gmail API client implementation.

This module provides a client for interacting with the Gmail API.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog

from email_cache_agent.config import Settings
from email_cache_agent.exceptions import (
    AuthenticationError,
    ConfigurationError,
    GmailAPIError,
    ServiceUnavailableError,
)

logger = structlog.get_logger()

METADATA_HEADERS: list[str] = ["From", "To", "Cc", "Subject", "Date"]


class GmailClient:
    """Gmail API client for mail cache operations.

    This client handles authentication, message listing and retrieval,
    label updates and moving messages to trash.
    """

    def __init__(self, settings: Settings | None = None, service: Any | None = None) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
            service: An already-built Gmail API service. When given, no OAuth
                flow runs.
        """
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = service
        logger.info("gmail_client_initialized", preauthenticated=service is not None)

    @property
    def is_available(self) -> bool:
        return self._service is not None

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If the credentials file is missing.
            AuthenticationError: If authentication fails.
        """

        if self._service is not None:
            return

        credentials_path = Path(self.settings.gmail_credentials_path)
        token_path = Path(self.settings.gmail_token_path)
        scope = self.settings.gmail_scope

        if not credentials_path.exists():
            raise ConfigurationError(
                f"Gmail credentials file not found: {credentials_path}. "
                "See README.md -> Gmail API Setup."
            )

        logger.info(
            "gmail_authentication_started",
            credentials_path=str(credentials_path),
            token_path=str(token_path),
            scope=scope,
        )

        try:
            self._service = await asyncio.to_thread(
                self._build_service,
                credentials_path,
                token_path,
                scope,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        logger.info("gmail_authentication_completed")

    async def list_message_ids(
        self,
        max_results: int,
        page_token: str | None = None,
    ) -> tuple[list[str], str | None]:
        """List one page of message IDs, newest first.

        Args:
            max_results: Page size.
            page_token: Continuation token from a previous page.

        Returns:
            The page's message IDs and the next page token (None when exhausted).

        Raises:
            ServiceUnavailableError: If the client was never authenticated.
            GmailAPIError: If the API request fails.
        """

        self._ensure_available()

        logger.info("listing_messages", max_results=max_results, page_token=page_token)

        try:
            response = await asyncio.to_thread(self._list_page_sync, max_results, page_token)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_list_messages_failed", error=str(exc))
            raise GmailAPIError(str(exc)) from exc

        ids = [
            m["id"]
            for m in response.get("messages", []) or []
            if isinstance(m, dict) and isinstance(m.get("id"), str) and m["id"]
        ]
        return ids, response.get("nextPageToken") or None

    async def get_message(
        self,
        message_id: str,
        *,
        format: str = "metadata",
        metadata_headers: list[str] | None = None,
    ) -> dict[str, Any]:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.
            format: ``metadata`` (headers, snippet, labels) or ``full`` (MIME tree).
            metadata_headers: Headers to include for ``metadata`` format.

        Returns:
            Message data dictionary.

        Raises:
            ServiceUnavailableError: If the client was never authenticated.
            GmailAPIError: If the API request fails.
        """

        self._ensure_available()

        if format == "metadata" and metadata_headers is None:
            metadata_headers = METADATA_HEADERS

        logger.debug("getting_message", message_id=message_id, format=format)

        try:
            return await asyncio.to_thread(
                self._get_message_sync,
                message_id,
                format,
                metadata_headers,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_get_message_failed", message_id=message_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def mark_read(self, message_ids: list[str]) -> None:
        """Remove the UNREAD label from messages in a single batch call."""

        self._ensure_available()
        if not message_ids:
            return

        try:
            await asyncio.to_thread(
                self._batch_modify_sync,
                message_ids,
                [],
                ["UNREAD"],
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_mark_read_failed", message_ids=message_ids, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

        logger.info("gmail_marked_read", count=len(message_ids))

    async def trash_message(self, message_id: str) -> None:
        """Move a message to the Gmail trash."""

        self._ensure_available()

        try:
            await asyncio.to_thread(self._trash_sync, message_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_trash_failed", message_id=message_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

        logger.info("gmail_message_trashed", message_id=message_id)

    def _ensure_available(self) -> None:
        if self._service is None:
            raise ServiceUnavailableError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    def _build_service(self, credentials_path: Path, token_path: Path, scope: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build

        creds: Credentials | None = None
        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), scopes=[scope])

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        if creds is None or not creds.valid:
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
            creds = flow.run_local_server(port=0)
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def _list_page_sync(self, max_results: int, page_token: str | None) -> dict[str, Any]:
        assert self._service is not None
        request = (
            self._service.users()
            .messages()
            .list(
                userId=self.settings.gmail_user_id,
                maxResults=max_results,
                pageToken=page_token,
            )
        )
        return request.execute()

    def _get_message_sync(
        self,
        message_id: str,
        format: str,
        metadata_headers: list[str] | None,
    ) -> dict[str, Any]:
        assert self._service is not None
        request = (
            self._service.users()
            .messages()
            .get(
                userId=self.settings.gmail_user_id,
                id=message_id,
                format=format,
                metadataHeaders=metadata_headers,
            )
        )
        return request.execute()

    def _batch_modify_sync(
        self,
        message_ids: list[str],
        add_label_ids: list[str],
        remove_label_ids: list[str],
    ) -> None:
        assert self._service is not None
        body = {
            "ids": list(message_ids),
            "addLabelIds": list(add_label_ids),
            "removeLabelIds": list(remove_label_ids),
        }
        self._service.users().messages().batchModify(
            userId=self.settings.gmail_user_id,
            body=body,
        ).execute()

    def _trash_sync(self, message_id: str) -> None:
        assert self._service is not None
        self._service.users().messages().trash(
            userId=self.settings.gmail_user_id,
            id=message_id,
        ).execute()

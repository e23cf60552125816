"""Remote-first trash.

Gmail is mutated before the cache: the local row is deleted only after the
remote trash call succeeds, so a failed trash never leaves a message that
still exists on the server missing from the cache.
"""

from __future__ import annotations

import asyncio
import sqlite3

import structlog

from email_cache_agent.cache import MessageRepository
from email_cache_agent.exceptions import EmailCacheError, LocalInconsistencyError
from email_cache_agent.gmail.client import GmailClient

logger = structlog.get_logger()


class TrashService:
    """Moves messages to the Gmail trash and drops them from the cache."""

    def __init__(self, *, gmail: GmailClient, messages: MessageRepository) -> None:
        self._gmail = gmail
        self._messages = messages

    async def trash(self, message_id: str) -> None:
        """Trash ``message_id`` remotely, then delete it locally.

        Raises:
            ServiceUnavailableError: If Gmail is not authenticated.
            GmailAPIError: If the remote trash fails; the cache is untouched.
            LocalInconsistencyError: If the remote trash succeeded but the local
                delete failed. A later sync reconciles the cache.
        """

        await self._gmail.trash_message(message_id)

        try:
            existed = await asyncio.to_thread(self._messages.delete, message_id)
        except (sqlite3.Error, EmailCacheError) as exc:
            logger.error("trash_local_delete_failed", message_id=message_id, error=str(exc))
            raise LocalInconsistencyError(
                f"Message {message_id} was trashed on Gmail but is still cached: {exc}"
            ) from exc

        logger.info("message_trashed", message_id=message_id, was_cached=existed)

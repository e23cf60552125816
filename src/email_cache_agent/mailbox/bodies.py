"""Cache-first message body access.

A body fetch serves a non-empty cached body without contacting Gmail. On a
miss it fetches the full message, stores the body, and only then queues the
follow-up work: marking the message read, re-embedding it from the full body,
and extracting importance/deadline. The caller gets the body back without
waiting for any of those.
"""

from __future__ import annotations

import asyncio
from functools import partial

import structlog

from email_cache_agent.cache import MessageRepository
from email_cache_agent.config import Settings
from email_cache_agent.enrichment import EnrichmentPipeline, EnrichmentWorkerPool
from email_cache_agent.enrichment.text import body_text
from email_cache_agent.gmail.client import GmailClient
from email_cache_agent.gmail.parsing import extract_body, message_to_record
from email_cache_agent.models import EnrichmentKind

logger = structlog.get_logger()


class BodyService:
    """Serves message bodies and read-state changes."""

    def __init__(
        self,
        *,
        gmail: GmailClient,
        messages: MessageRepository,
        pipeline: EnrichmentPipeline,
        pool: EnrichmentWorkerPool,
        settings: Settings | None = None,
    ) -> None:
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self._gmail = gmail
        self._messages = messages
        self._pipeline = pipeline
        self._pool = pool

    async def get_body(self, message_id: str) -> str:
        """Return the body for ``message_id``, fetching it from Gmail on a cache miss.

        Raises:
            ServiceUnavailableError: On a cache miss when Gmail is not authenticated.
            GmailAPIError: If the full fetch fails. Nothing is cached in that case.
        """

        cached = await asyncio.to_thread(self._messages.get_body, message_id)
        if cached:
            logger.info("body_cache_hit", message_id=message_id)
            return cached

        logger.info("body_cache_miss", message_id=message_id)
        raw = await self._gmail.get_message(message_id, format="full")

        record = message_to_record(raw)
        if record.id:
            await asyncio.to_thread(self._messages.insert_if_absent, record)

        body = extract_body(raw.get("payload"))
        await asyncio.to_thread(self._messages.set_body, message_id, body)

        await self._pool.submit(message_id, EnrichmentKind.MARK_READ, partial(self.mark_read, message_id))

        if body:
            cached_record = await asyncio.to_thread(self._messages.get, message_id)
            text = body_text(
                sender=cached_record.sender if cached_record else record.sender,
                subject=cached_record.subject if cached_record else record.subject,
                body=body,
                budget=self.settings.embed_char_budget,
            )
            await self._pool.submit(
                message_id,
                EnrichmentKind.VECTORIZE,
                partial(self._pipeline.vectorize, message_id, text),
            )
            await self._pool.submit(
                message_id,
                EnrichmentKind.EXTRACT,
                partial(self._pipeline.extract, message_id),
            )

        return body

    async def mark_read(self, message_id: str) -> None:
        """Clear UNREAD on Gmail, then set the local read flag."""

        await self._gmail.mark_read([message_id])
        await asyncio.to_thread(self._messages.mark_read, message_id)
        logger.info("message_marked_read", message_id=message_id)

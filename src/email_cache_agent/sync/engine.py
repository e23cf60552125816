"""Pull-based synchronization from Gmail into the local cache.

Incremental sync lists the most recent messages and inserts only rows that do
not exist yet, so locally mutated fields (read flag, body, summary) survive a
lightweight refresh. Rows that already existed are neither counted nor
re-embedded. Historical sync walks the whole mailbox page by page and
overwrites metadata and read state, which reconciles read-state drift.

A failure fetching one message is logged and skipped; the batch continues.
"""

from __future__ import annotations

import asyncio
from functools import partial

import structlog

from email_cache_agent.cache import MessageRepository
from email_cache_agent.config import Settings
from email_cache_agent.enrichment import EnrichmentPipeline, EnrichmentWorkerPool
from email_cache_agent.enrichment.text import metadata_text
from email_cache_agent.exceptions import GmailAPIError
from email_cache_agent.gmail.client import GmailClient
from email_cache_agent.gmail.parsing import message_to_record
from email_cache_agent.models import EnrichmentKind, Message, SyncMode, SyncReport

logger = structlog.get_logger()


class SyncEngine:
    """Synchronizes message metadata from Gmail into the cache."""

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

    async def sync_recent(self) -> SyncReport:
        """Insert the most recent messages that are not cached yet."""

        ids, _ = await self._gmail.list_message_ids(self.settings.sync_recent_size)
        report = SyncReport(mode=SyncMode.INCREMENTAL, listed=len(ids))
        await self._sync_ids(ids, report)
        return report

    async def sync_history(self, page_token: str | None = None) -> SyncReport:
        """Insert or overwrite one page of the full mailbox.

        Args:
            page_token: Token returned by the previous call, or None to start.

        Returns:
            The report; ``next_page_token`` is empty once the mailbox is exhausted.
        """

        ids, next_token = await self._gmail.list_message_ids(
            self.settings.sync_history_page_size,
            page_token=page_token or None,
        )
        report = SyncReport(
            mode=SyncMode.HISTORICAL,
            listed=len(ids),
            next_page_token=next_token or "",
        )
        await self._sync_ids(ids, report)
        return report

    async def _sync_ids(self, ids: list[str], report: SyncReport) -> None:
        logger.info("sync_started", mode=report.mode.value, listed=len(ids))

        for message_id in ids:
            try:
                raw = await self._gmail.get_message(message_id, format="metadata")
            except GmailAPIError as exc:
                report.failed += 1
                logger.warning("sync_message_fetch_failed", message_id=message_id, error=str(exc))
                continue

            record = message_to_record(raw)
            if not record.id:
                report.failed += 1
                logger.warning("sync_message_missing_id", message_id=message_id)
                continue

            if report.mode is SyncMode.INCREMENTAL:
                if not await asyncio.to_thread(self._messages.insert_if_absent, record):
                    continue
            else:
                await asyncio.to_thread(self._messages.upsert_metadata, record)
            report.upserted += 1

            await self._schedule_vectorize(record)

        logger.info(
            "sync_done",
            mode=report.mode.value,
            listed=report.listed,
            upserted=report.upserted,
            failed=report.failed,
            next_page_token=report.next_page_token or None,
        )

    async def _schedule_vectorize(self, record: Message) -> None:
        text = metadata_text(record, self.settings.embed_char_budget)
        if text is None:
            logger.debug("sync_vectorize_skipped_empty", message_id=record.id)
            return

        await self._pool.submit(
            record.id,
            EnrichmentKind.VECTORIZE,
            partial(self._pipeline.vectorize_metadata, record.id, text),
        )

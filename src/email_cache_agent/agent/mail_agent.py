"""Mail cache agent implementation.

This module provides the agent that wires the cache, Gmail, Ollama and the
background worker pool together and exposes the user-facing operations.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from email_cache_agent.cache import (
    CacheStore,
    ChannelRepository,
    MessageRepository,
    VectorRepository,
    compile_or_match_all,
)
from email_cache_agent.channels import load_channels
from email_cache_agent.config import Settings
from email_cache_agent.enrichment import EnrichmentPipeline, EnrichmentWorkerPool
from email_cache_agent.gmail.client import GmailClient
from email_cache_agent.mailbox import BodyService, TrashService
from email_cache_agent.models import MessageSummary, SearchResult, SweepReport, SyncReport
from email_cache_agent.ollama.client import OllamaClient
from email_cache_agent.retention import RetentionSweeper
from email_cache_agent.search import SemanticSearchEngine
from email_cache_agent.sync import SyncEngine

logger = structlog.get_logger()


class MailAgent:
    """Local mail replica with AI enrichment.

    Every component shares the one injected ``CacheStore``.

    Usage::

        async with MailAgent() as agent:
            await agent.sync_messages()
            rows = agent.get_messages_by_channel("Inbox")
    """

    def __init__(
        self,
        *,
        store: CacheStore | None = None,
        gmail_client: GmailClient | None = None,
        ollama_client: OllamaClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the agent.

        Args:
            store: Cache store. If None, one is created at ``settings.cache_db_path``.
            gmail_client: Gmail API client. If None, creates a new one.
            ollama_client: Ollama client. If None, creates a new one.
            settings: Application settings. If None, uses default settings.
        """
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self.store = store or CacheStore(
            self.settings.cache_db_path,
            busy_timeout_ms=self.settings.cache_busy_timeout_ms,
            max_retries=self.settings.max_retries,
        )
        self.gmail_client = gmail_client or GmailClient(self.settings)
        self.ollama_client = ollama_client or OllamaClient(self.settings)

        self.messages = MessageRepository(self.store)
        self.channels = ChannelRepository(self.store)
        self.vectors = VectorRepository(self.store)

        self.pool = EnrichmentWorkerPool(
            workers=self.settings.enrichment_workers,
            queue_size=self.settings.enrichment_queue_size,
        )
        self.pipeline = EnrichmentPipeline(
            messages=self.messages,
            vectors=self.vectors,
            ollama=self.ollama_client,
            settings=self.settings,
        )
        self.sync_engine = SyncEngine(
            gmail=self.gmail_client,
            messages=self.messages,
            pipeline=self.pipeline,
            pool=self.pool,
            settings=self.settings,
        )
        self.bodies = BodyService(
            gmail=self.gmail_client,
            messages=self.messages,
            pipeline=self.pipeline,
            pool=self.pool,
            settings=self.settings,
        )
        self.trash = TrashService(gmail=self.gmail_client, messages=self.messages)
        self.search_engine = SemanticSearchEngine(
            ollama=self.ollama_client,
            vectors=self.vectors,
            messages=self.messages,
            settings=self.settings,
        )
        self.sweeper = RetentionSweeper(
            channels=self.channels,
            messages=self.messages,
            settings=self.settings,
        )
        self._retention_task: asyncio.Task[None] | None = None
        logger.info("mail_agent_initialized")

    async def __aenter__(self) -> "MailAgent":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self, *, schedule_retention: bool = False) -> None:
        """Open the cache and start background workers.

        Args:
            schedule_retention: Also schedule the delayed retention sweep.
        """

        self.store.initialize()
        self.pool.start()
        if schedule_retention and self._retention_task is None:
            self._retention_task = asyncio.create_task(self.sweeper.run(), name="retention-sweeper")

    async def close(self, *, drain: bool = False) -> None:
        """Stop background work and close the cache.

        Args:
            drain: Wait for queued enrichment jobs before stopping.
        """

        if self._retention_task is not None:
            self._retention_task.cancel()
            await asyncio.gather(self._retention_task, return_exceptions=True)
            self._retention_task = None
        if drain:
            await self.pool.join()
        await self.pool.stop()
        self.store.close()

    # Sync

    async def sync_messages(self) -> SyncReport:
        return await self.sync_engine.sync_recent()

    async def sync_historical_messages(self, page_token: str | None = None) -> SyncReport:
        return await self.sync_engine.sync_history(page_token)

    # Channels

    def load_channels(self, path: Path | None = None) -> int:
        return load_channels(path or self.settings.channels_path, self.channels)

    def get_channels(self) -> list[str]:
        return [c.name for c in self.channels.list()]

    def get_messages_by_channel(self, channel_name: str) -> list[MessageSummary]:
        """List a channel's messages, newest first.

        An unknown channel or an invalid predicate matches every message.
        """

        channel = self.channels.get(channel_name)
        predicate = compile_or_match_all(channel.predicate if channel else None, channel=channel_name)
        return self.messages.list_matching(predicate)

    # Bodies and enrichment

    async def get_message_body(self, message_id: str) -> str:
        return await self.bodies.get_body(message_id)

    async def summarize_email(self, message_id: str) -> str:
        return await self.pipeline.summarize(message_id)

    # Search

    async def ai_search(self, query: str) -> list[SearchResult]:
        return await self.search_engine.search(query)

    async def get_ai_search_results(self, query: str) -> list[MessageSummary]:
        return await self.search_engine.search_messages(query)

    # Destructive operations

    async def trash_message(self, message_id: str) -> None:
        await self.trash.trash(message_id)

    def run_auto_cleanup(self) -> SweepReport:
        return self.sweeper.sweep_once()

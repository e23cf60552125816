"""Message enrichment steps.

Each step is idempotent and independent of the others: vectors are overwritten
in place, summaries are generated once and then served from the cache, and
importance/deadline extraction only writes the fields the model produced.
"""

from __future__ import annotations

import asyncio
from datetime import date

import structlog

from email_cache_agent.cache import MessageRepository, VectorRepository
from email_cache_agent.config import Settings
from email_cache_agent.enrichment.parser import clean_model_output, parse_extraction
from email_cache_agent.enrichment.prompts import build_extraction_prompt, build_summary_prompt
from email_cache_agent.enrichment.text import strip_markup, truncate
from email_cache_agent.models import EmailVector, ExtractionResult
from email_cache_agent.ollama.client import OllamaClient

logger = structlog.get_logger()

NO_BODY_PLACEHOLDER = "(no body cached yet)"


class EnrichmentPipeline:
    """Derives embeddings, summaries and importance/deadline for cached messages."""

    def __init__(
        self,
        *,
        messages: MessageRepository,
        vectors: VectorRepository,
        ollama: OllamaClient,
        settings: Settings | None = None,
    ) -> None:
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self._messages = messages
        self._vectors = vectors
        self._ollama = ollama

    async def vectorize(self, message_id: str, text: str) -> EmailVector | None:
        """Embed ``text`` and store it as the vector for ``message_id``.

        Returns:
            The stored vector, or None when the cleaned text is empty.
        """

        cleaned = truncate(strip_markup(text), self.settings.embed_char_budget)
        if not cleaned.strip():
            logger.debug("vectorize_skipped_empty", message_id=message_id)
            return None

        values = await self._ollama.embed(cleaned)
        vector = EmailVector(id=message_id, content=cleaned, vector=values)
        await asyncio.to_thread(self._vectors.save, vector)
        logger.info("message_vectorized", message_id=message_id, dimension=vector.dimension)
        return vector

    async def vectorize_metadata(self, message_id: str, text: str) -> EmailVector | None:
        """Embed lightweight metadata text unless a body is cached.

        The body check runs again after embedding, so a body vector written
        while this job was in flight is never replaced.
        """

        if await asyncio.to_thread(self._messages.get_body, message_id):
            return None

        cleaned = truncate(strip_markup(text), self.settings.embed_char_budget)
        if not cleaned.strip():
            return None

        values = await self._ollama.embed(cleaned)
        vector = EmailVector(id=message_id, content=cleaned, vector=values)
        saved = await asyncio.to_thread(self._vectors.save_unless_body_cached, vector)
        if not saved:
            logger.info("metadata_vector_superseded", message_id=message_id)
            return None
        logger.info("message_vectorized", message_id=message_id, dimension=vector.dimension, source="metadata")
        return vector

    async def summarize(self, message_id: str) -> str:
        """Return the cached summary, generating and caching it on first use."""

        cached = await asyncio.to_thread(self._messages.get_summary, message_id)
        if cached:
            return cached

        body = await asyncio.to_thread(self._messages.get_body, message_id)
        if not body:
            return NO_BODY_PLACEHOLDER

        prompt = build_summary_prompt(
            body=strip_markup(body),
            language=self.settings.summary_language,
        )
        raw = await self._ollama.generate(prompt, model=self.settings.summary_model, stream=False)
        summary = clean_model_output(raw)

        if summary:
            await asyncio.to_thread(self._messages.set_summary, message_id, summary)
            logger.info("message_summarized", message_id=message_id, length=len(summary))
        else:
            logger.warning("message_summary_empty", message_id=message_id)
        return summary

    async def extract(self, message_id: str, today: date | None = None) -> ExtractionResult:
        """Extract importance and deadline from the cached body.

        Args:
            message_id: Message to analyse.
            today: Anchor date for relative expressions. Defaults to today.

        Returns:
            The parsed result. Fields without a usable value are None and are
            not written to the cache.
        """

        body = await asyncio.to_thread(self._messages.get_body, message_id)
        if not body:
            return ExtractionResult()

        prompt = build_extraction_prompt(body=strip_markup(body), today=today or date.today())
        raw = await self._ollama.generate(prompt, model=self.settings.extraction_model, stream=False)
        result = parse_extraction(raw)

        if result.is_empty:
            logger.info("extraction_no_signal", message_id=message_id, response=raw[:200])
            return result

        await asyncio.to_thread(self._messages.apply_extraction, message_id, result)
        logger.info(
            "extraction_applied",
            message_id=message_id,
            importance=result.importance,
            deadline=result.deadline,
        )
        return result

"""Exhaustive semantic search over cached message vectors.

Scores are raw dot products: nothing is normalized, so stored and query
vectors must come from the same embedding model. A stored vector whose
dimension differs from the query is never scored.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence

import structlog

from email_cache_agent.cache import MessageRepository, VectorRepository
from email_cache_agent.config import Settings
from email_cache_agent.exceptions import VectorDimensionError
from email_cache_agent.models import MessageSummary, SearchResult
from email_cache_agent.ollama.client import OllamaClient

logger = structlog.get_logger()


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product of two vectors of equal dimension.

    Raises:
        VectorDimensionError: If the dimensions differ.
    """

    if len(a) != len(b):
        raise VectorDimensionError(f"Cannot compare vectors of dimension {len(a)} and {len(b)}")
    return sum(x * y for x, y in zip(a, b))


def rank(
    query: Sequence[float],
    stored: Iterable[tuple[str, Sequence[float]]],
    top_k: int,
) -> list[SearchResult]:
    """Score every stored vector against ``query`` and return the best ``top_k``.

    Results are ordered by score descending, ties broken by id.

    Raises:
        VectorDimensionError: If there were stored vectors but none had the
            query's dimension.
    """

    results: list[SearchResult] = []
    seen = 0
    rejected = 0
    for message_id, vector in stored:
        seen += 1
        try:
            score = dot_product(query, vector)
        except VectorDimensionError:
            rejected += 1
            continue
        results.append(SearchResult(id=message_id, score=score))

    if rejected:
        logger.warning(
            "search_vectors_dimension_mismatch",
            rejected=rejected,
            query_dimension=len(query),
        )
        if rejected == seen:
            raise VectorDimensionError(
                f"No stored vector has the query dimension {len(query)}; "
                "re-embed the cache with the current embedding model."
            )

    results.sort(key=lambda r: (-r.score, r.id))
    return results[:top_k]


class SemanticSearchEngine:
    """Embeds a query and ranks every cached vector against it."""

    def __init__(
        self,
        *,
        ollama: OllamaClient,
        vectors: VectorRepository,
        messages: MessageRepository,
        settings: Settings | None = None,
    ) -> None:
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self._ollama = ollama
        self._vectors = vectors
        self._messages = messages

    async def search(self, query: str) -> list[SearchResult]:
        """Return the top-K message ids for ``query`` with their scores."""

        query_vector = await self._ollama.embed(query)
        stored = await asyncio.to_thread(self._vectors.all_vectors)
        results = rank(query_vector, stored, self.settings.search_top_k)
        logger.info("semantic_search_done", candidates=len(stored), returned=len(results))
        return results

    async def search_messages(self, query: str) -> list[MessageSummary]:
        """Run ``search`` and resolve the hits to cached messages, in score order."""

        results = await self.search(query)
        return await asyncio.to_thread(self._messages.get_many, [r.id for r in results])

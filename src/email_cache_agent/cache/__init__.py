"""Local mail cache.

The cache is a single SQLite database holding message metadata and enrichment
results, channel definitions, and message embeddings.
"""

from .predicate import MATCH_ALL, CompiledPredicate, compile_or_match_all, compile_predicate
from .repository import ChannelRepository, MessageRepository, VectorRepository
from .store import CacheStore

__all__ = [
    "MATCH_ALL",
    "CacheStore",
    "ChannelRepository",
    "CompiledPredicate",
    "MessageRepository",
    "VectorRepository",
    "compile_or_match_all",
    "compile_predicate",
]

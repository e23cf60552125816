"""Semantic search over cached message embeddings."""

from .engine import SemanticSearchEngine, dot_product, rank

__all__ = ["SemanticSearchEngine", "dot_product", "rank"]

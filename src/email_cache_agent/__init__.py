"""Email Cache Agent - a local, AI-enriched replica of a Gmail mailbox.

This package keeps a queryable SQLite cache of Gmail messages, enriches it with
Ollama embeddings, summaries, importance scores and deadlines, and serves
semantic search and channel retention over the cache.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from email_cache_agent.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]

"""Asynchronous AI enrichment of cached messages."""

from .pipeline import NO_BODY_PLACEHOLDER, EnrichmentPipeline
from .worker import EnrichmentWorkerPool

__all__ = ["NO_BODY_PLACEHOLDER", "EnrichmentPipeline", "EnrichmentWorkerPool"]

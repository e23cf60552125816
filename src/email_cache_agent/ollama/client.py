"""Ollama client implementation.

This module provides a client for interacting with Ollama LLM. The HTTP calls
are blocking and run through `asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, Optional

import structlog

from email_cache_agent.config import Settings
from email_cache_agent.exceptions import (
    OllamaConnectionError,
    OllamaInferenceError,
    ServiceUnavailableError,
)

logger = structlog.get_logger()


class OllamaClient:
    """Ollama LLM client for embeddings and text generation."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize Ollama client.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self._host = (self.settings.ollama_host or "").rstrip("/")
        logger.info(
            "ollama_client_initialized",
            host=self._host,
            embedding_model=self.settings.embedding_model,
        )

    @property
    def is_available(self) -> bool:
        return bool(self._host)

    async def embed(self, text: str, model: Optional[str] = None) -> list[float]:
        """Embed text into a fixed-dimension vector.

        Args:
            text: Text to embed.
            model: Embedding model. If None, uses ``settings.embedding_model``.

        Returns:
            The embedding values.

        Raises:
            ServiceUnavailableError: If no Ollama host is configured.
            OllamaConnectionError: If unable to connect to Ollama.
            OllamaInferenceError: If the response carries no embedding.
        """
        self._ensure_available()
        model = model or self.settings.embedding_model
        logger.debug("embedding_text", model=model, text_length=len(text))
        return await asyncio.to_thread(self._embed_sync, model, text)

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        stream: bool = False,
    ) -> str:
        """Generate text using Ollama.

        Args:
            prompt: The prompt to send to the model.
            model: Model name to use. If None, uses ``settings.summary_model``.
            stream: Whether to request a streamed response. Streamed chunks are
                joined before returning.

        Returns:
            The complete generated text.

        Raises:
            ServiceUnavailableError: If no Ollama host is configured.
            OllamaConnectionError: If unable to connect to Ollama.
            OllamaInferenceError: If inference fails.
        """
        self._ensure_available()
        model = model or self.settings.summary_model
        logger.info("generating_text", model=model, prompt_length=len(prompt))
        return await asyncio.to_thread(self._generate_sync, model, prompt, stream)

    def _ensure_available(self) -> None:
        if not self.is_available:
            raise ServiceUnavailableError(
                "Ollama is not configured. Set EMAIL_CACHE_OLLAMA_HOST (e.g. http://localhost:11434)."
            )

    def _post(self, path: str, payload: dict[str, Any]) -> bytes:
        req = urllib.request.Request(
            url=f"{self._host}{path}",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.settings.ollama_timeout) as resp:  # noqa: S310
                return resp.read()
        except urllib.error.HTTPError:
            raise
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise OllamaConnectionError(f"Unable to reach Ollama at {self._host}: {exc}") from exc

    def _embed_sync(self, model: str, text: str) -> list[float]:
        # Older Ollama API: /api/embeddings with {model, prompt}
        try:
            data = _loads(self._post("/api/embeddings", {"model": model, "prompt": text}))
            emb = data.get("embedding")
            if isinstance(emb, list) and emb:
                return [float(x) for x in emb]
            raise OllamaInferenceError("Ollama embeddings response missing 'embedding'")
        except urllib.error.HTTPError as e:
            # Newer Ollama API may use /api/embed with {model, input}
            if e.code != 404:
                raise OllamaInferenceError(f"Ollama embeddings failed: HTTP {e.code}") from e

        try:
            data = _loads(self._post("/api/embed", {"model": model, "input": text}))
        except urllib.error.HTTPError as e:
            raise OllamaInferenceError(f"Ollama embed failed: HTTP {e.code}") from e

        # /api/embed may return {embeddings: [[...]]}
        embs = data.get("embeddings")
        if isinstance(embs, list) and embs and isinstance(embs[0], list) and embs[0]:
            return [float(x) for x in embs[0]]
        raise OllamaInferenceError("Ollama embed response missing 'embeddings'")

    def _generate_sync(self, model: str, prompt: str, stream: bool) -> str:
        try:
            raw = self._post(
                "/api/generate",
                {"model": model, "prompt": prompt, "stream": stream},
            )
        except urllib.error.HTTPError as e:
            raise OllamaInferenceError(f"Ollama generate failed: HTTP {e.code}") from e

        if not stream:
            data = _loads(raw)
            if "error" in data:
                raise OllamaInferenceError(str(data["error"]))
            return str(data.get("response") or "")

        # Streamed responses are newline-delimited JSON chunks.
        parts: list[str] = []
        for line in raw.decode("utf-8").splitlines():
            if not line.strip():
                continue
            chunk = _loads(line.encode("utf-8"))
            parts.append(str(chunk.get("response") or ""))
        return "".join(parts)


def _loads(raw: bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise OllamaInferenceError(f"Ollama returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise OllamaInferenceError("Ollama returned an unexpected payload")
    return data

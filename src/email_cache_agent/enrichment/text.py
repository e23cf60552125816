"""Text preparation for embeddings and prompts."""

from __future__ import annotations

import html
import re

from email_cache_agent.models import Message

_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.I | re.S)
_TAG_RE = re.compile(r"<[^>]*>")


def strip_markup(text: str) -> str:
    """Remove HTML tags (and script/style blocks) and unescape entities."""

    text = _BLOCK_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return html.unescape(text)


def truncate(text: str, budget: int) -> str:
    return text if len(text) <= budget else text[:budget]


def metadata_text(message: Message, budget: int) -> str | None:
    """Lightweight embedding text built from headers and snippet.

    Returns None when subject and snippet are both empty, since there is
    nothing useful to embed.
    """

    if not message.subject.strip() and not message.snippet.strip():
        return None
    return truncate(message.composite_text(), budget)


def body_text(*, sender: str, subject: str, body: str, budget: int) -> str:
    """Authoritative embedding text built from the full body."""

    return truncate(f"From: {sender}\nSubject: {subject}\nBody: {body}", budget)

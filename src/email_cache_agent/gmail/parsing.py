"""Helpers for parsing Gmail API messages into cache models."""

from __future__ import annotations

import base64
import binascii
import html
from typing import Any

from email_cache_agent.models import Message

PLAIN_TEXT_WRAPPER = "<pre style='white-space: pre-wrap; font-family: sans-serif;'>{}</pre>"


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first for now.
            result.setdefault(name.lower(), value)
    return result


def message_to_record(message: dict[str, Any]) -> Message:
    """Convert a Gmail API message (format=metadata) to a cache ``Message``.

    The recipient column is the raw To and Cc headers joined by a space, and
    the read flag follows the absence of the UNREAD label.

    Args:
        message: Gmail API message dict.

    Returns:
        Message: Metadata-only cache record.
    """

    hm = _header_map(message)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []

    internal_date_raw = message.get("internalDate")
    try:
        timestamp = int(internal_date_raw) if internal_date_raw is not None else 0
    except (TypeError, ValueError):
        timestamp = 0

    return Message(
        id=str(message.get("id") or ""),
        sender=hm.get("from") or "",
        recipient=f"{hm.get('to') or ''} {hm.get('cc') or ''}",
        subject=hm.get("subject") or "",
        snippet=str(message.get("snippet") or ""),
        timestamp=timestamp,
        is_read="UNREAD" not in label_ids,
    )


def decode_part_data(data: str) -> str | None:
    """Decode a Gmail base64url body. Returns None when the data is undecodable."""

    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError):
        return None
    return raw.decode("utf-8", errors="replace")


def _find_part_text(part: dict[str, Any], mime_type: str) -> str | None:
    mime = (part.get("mimeType") or "").lower()
    data = (part.get("body") or {}).get("data")
    if mime == mime_type and data:
        decoded = decode_part_data(data)
        if decoded:
            return decoded

    for sub in part.get("parts") or []:
        found = _find_part_text(sub, mime_type)
        if found:
            return found
    return None


def extract_body(payload: dict[str, Any] | None) -> str:
    """Pick a displayable body from a ``format=full`` payload.

    The whole part tree is searched for ``text/plain`` first, which is escaped
    and wrapped in a whitespace-preserving ``<pre>`` block. If there is none,
    the first ``text/html`` part is returned as is. Returns an empty string when
    neither exists or every candidate fails to decode.
    """

    if not payload:
        return ""

    plain = _find_part_text(payload, "text/plain")
    if plain:
        return PLAIN_TEXT_WRAPPER.format(html.escape(plain, quote=False))

    return _find_part_text(payload, "text/html") or ""

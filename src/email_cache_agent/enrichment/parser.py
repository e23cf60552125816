"""Parsing of free-text model output."""

from __future__ import annotations

import re
from datetime import date

from email_cache_agent.models import ExtractionResult

# Chat-template delimiters some local models leak into their responses.
_TURN_ARTIFACTS_RE = re.compile(r"</?(?:start|end)_of_turn>")
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_DIGIT_RE = re.compile(r"\d")


def clean_model_output(text: str) -> str:
    """Strip turn-delimiter artifacts and surrounding whitespace."""

    return _TURN_ARTIFACTS_RE.sub("", text).strip()


def parse_deadline(text: str) -> str | None:
    """Return the first ISO-shaped date that is a real calendar date."""

    for match in _DATE_RE.finditer(text):
        try:
            date.fromisoformat(match.group())
        except ValueError:
            continue
        return match.group()
    return None


def parse_importance(text: str) -> int | None:
    """Return the first digit outside any date, if it is a valid 1-5 score."""

    without_dates = _DATE_RE.sub(" ", text)
    match = _DIGIT_RE.search(without_dates)
    if match is None:
        return None
    value = int(match.group())
    return value if 1 <= value <= 5 else None


def parse_extraction(text: str) -> ExtractionResult:
    """Parse ``importance/deadline`` model output.

    Output without a usable value yields ``None`` for that field rather than an
    error, e.g. ``"重要度:5, 期限:2024-03-01"`` parses to ``(5, "2024-03-01")`` and
    ``"重要度:, 期限:なし"`` parses to ``(None, None)``.
    """

    cleaned = clean_model_output(text)
    return ExtractionResult(
        importance=parse_importance(cleaned),
        deadline=parse_deadline(cleaned),
    )

"""Channel configuration loading.

Channels are defined in a JSON array::

    [
      {"name": "Shopping", "query": "sender LIKE '%@shop.example%'", "ttl_days": "30"},
      {"name": "All", "query": "1=1"}
    ]

Loading fully replaces the stored channel definitions.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from email_cache_agent.cache import ChannelRepository
from email_cache_agent.exceptions import ValidationError
from email_cache_agent.models import Channel

logger = structlog.get_logger()


class ChannelConfig(BaseModel):
    """One entry of the channel configuration file."""

    name: str = Field(min_length=1)
    query: str = Field(default="1=1", description="Predicate over message columns")
    ttl_days: int | str | None = Field(default=0, description="Retention TTL in days")

    def to_channel(self) -> Channel:
        return Channel(name=self.name, predicate=self.query, ttl_days=self.ttl_days)


_CONFIG_LIST = TypeAdapter(list[ChannelConfig])


def read_channel_config(path: Path) -> list[Channel] | None:
    """Read channel definitions from ``path``.

    Returns:
        The channels, or None when the file does not exist.

    Raises:
        ValidationError: If the file is not a valid channel list.
    """

    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        entries = _CONFIG_LIST.validate_python(data)
        return [e.to_channel() for e in entries]
    except (ValueError, PydanticValidationError) as exc:
        raise ValidationError(f"Invalid channel configuration {path}: {exc}") from exc


def load_channels(path: Path, repository: ChannelRepository) -> int:
    """Replace stored channels with the contents of ``path``.

    A missing file leaves the stored channels untouched.

    Returns:
        Number of channels loaded.
    """

    channels = read_channel_config(path)
    if channels is None:
        logger.info("channel_config_missing", path=str(path))
        return 0
    return repository.replace_all(channels)

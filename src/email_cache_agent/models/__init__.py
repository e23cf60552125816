"""Data models for Email Cache Agent.

This module contains Pydantic models for data validation and serialization.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from email_cache_agent.models.message import Message, MessageSummary


class Channel(BaseModel):
    """A named saved view over cached messages."""

    name: str = Field(min_length=1, description="Unique channel name")
    predicate: str = Field(default="1=1", description="Filter expression over message columns")
    ttl_days: int = Field(default=0, ge=0, description="Retention TTL in days, 0 disables expiry")

    @field_validator("ttl_days", mode="before")
    @classmethod
    def _coerce_ttl(cls, v: object) -> object:
        # Channel files historically store the TTL as a string.
        if v is None or v == "":
            return 0
        return v


class EmailVector(BaseModel):
    """An embedding stored for a cached message."""

    id: str = Field(description="Message ID the vector belongs to")
    content: str = Field(default="", description="Cleaned text that was embedded")
    vector: list[float] = Field(default_factory=list, description="Embedding values")

    @property
    def dimension(self) -> int:
        return len(self.vector)


class SearchResult(BaseModel):
    """A scored semantic search hit. Never persisted."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Message ID")
    score: float = Field(description="Dot product of query and stored vector")


class ExtractionResult(BaseModel):
    """Importance/deadline signal parsed from model output.

    ``None`` means the model output carried no usable value for that field,
    which is distinct from an importance of zero.
    """

    model_config = ConfigDict(frozen=True)

    importance: Optional[int] = Field(default=None, ge=1, le=5)
    deadline: Optional[str] = Field(default=None, description="YYYY-MM-DD")

    @property
    def is_empty(self) -> bool:
        return self.importance is None and self.deadline is None


class SyncMode(str, Enum):
    """Sync mode enumeration."""

    INCREMENTAL = "incremental"
    HISTORICAL = "historical"


class SyncReport(BaseModel):
    """Outcome of a single sync call."""

    mode: SyncMode
    listed: int = 0
    upserted: int = Field(default=0, description="Rows written; incremental sync counts only new rows")
    failed: int = 0
    next_page_token: str = Field(
        default="",
        description="Continuation token for historical sync, empty when exhausted",
    )


class SweepReport(BaseModel):
    """Outcome of a retention sweep."""

    deleted: dict[str, int] = Field(default_factory=dict, description="Rows deleted per channel")
    failed: list[str] = Field(default_factory=list, description="Channels whose sweep failed")

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())


class EnrichmentKind(str, Enum):
    """Background job kind enumeration."""

    VECTORIZE = "vectorize"
    SUMMARIZE = "summarize"
    EXTRACT = "extract"
    MARK_READ = "mark_read"


class EnrichmentEvent(BaseModel):
    """Completion notice published by the enrichment worker pool."""

    message_id: str
    kind: EnrichmentKind
    ok: bool = True
    error: Optional[str] = None
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
    "Channel",
    "EmailVector",
    "EnrichmentEvent",
    "EnrichmentKind",
    "ExtractionResult",
    "Message",
    "MessageSummary",
    "SearchResult",
    "SweepReport",
    "SyncMode",
    "SyncReport",
]

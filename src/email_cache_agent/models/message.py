"""Cached message models.

A ``Message`` row exists as soon as its metadata is first synced. Body, summary,
importance and deadline are filled in later and independently by enrichment.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Message(BaseModel):
    """A message as stored in the local cache."""

    id: str = Field(description="Gmail message ID (immutable primary key)")
    sender: str = Field(default="", description="Raw From header")
    recipient: str = Field(default="", description="To and Cc headers joined by a space")
    subject: str = Field(default="", description="Subject header")
    snippet: str = Field(default="", description="Gmail snippet")
    timestamp: int = Field(default=0, description="Internal timestamp in milliseconds since epoch")

    body: str | None = Field(default=None, description="Full body, populated on first body fetch")
    summary: str | None = Field(default=None, description="AI summary, cached once non-empty")
    importance: int = Field(default=0, ge=0, le=5, description="AI importance score, 0 when unknown")
    deadline: str | None = Field(default=None, description="AI extracted deadline (YYYY-MM-DD)")
    is_read: bool = Field(default=False, description="Whether the message has been read")

    def composite_text(self) -> str:
        """Lightweight text used for the metadata-based embedding."""

        return (
            f"From: {self.sender}\nTo: {self.recipient}\n"
            f"Subject: {self.subject}\nSnippet: {self.snippet}"
        )


class MessageSummary(BaseModel):
    """The list-view projection of a cached message."""

    id: str
    sender: str = ""
    recipient: str = ""
    subject: str = ""
    snippet: str = ""
    importance: int = 0
    deadline: str | None = None
    timestamp: int = 0

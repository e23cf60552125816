"""Mailbox synchronization."""

from .engine import SyncEngine

__all__ = ["SyncEngine"]

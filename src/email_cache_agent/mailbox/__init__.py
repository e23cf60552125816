"""Per-message mailbox operations: body access, read state and trash."""

from .bodies import BodyService
from .trash import TrashService

__all__ = ["BodyService", "TrashService"]

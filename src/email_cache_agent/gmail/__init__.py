"""Gmail API access and message parsing."""

from .client import GmailClient
from .parsing import extract_body, message_to_record

__all__ = ["GmailClient", "extract_body", "message_to_record"]

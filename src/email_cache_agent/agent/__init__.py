"""Agent facade over the mail cache."""

from .mail_agent import MailAgent

__all__ = ["MailAgent"]

"""Retention of cached messages."""

from .sweeper import RetentionSweeper

__all__ = ["RetentionSweeper"]

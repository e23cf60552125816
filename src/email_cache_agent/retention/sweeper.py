"""TTL-based retention sweep.

For every channel with a positive TTL, cached messages that match the
channel's predicate and are older than the TTL are deleted locally. Channels
are swept independently: a channel whose predicate is rejected or whose delete
fails is reported and skipped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from email_cache_agent.cache import ChannelRepository, MessageRepository, compile_predicate
from email_cache_agent.config import Settings
from email_cache_agent.models import SweepReport

logger = structlog.get_logger()


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def cutoff_ms(now: datetime, ttl_days: int) -> int:
    """Millisecond epoch of ``now - ttl_days``."""

    return int((now - timedelta(days=ttl_days)).timestamp() * 1000)


class RetentionSweeper:
    """Deletes expired cached messages per channel TTL."""

    def __init__(
        self,
        *,
        channels: ChannelRepository,
        messages: MessageRepository,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _now_utc,
    ) -> None:
        from email_cache_agent.config import get_settings

        self.settings = settings or get_settings()
        self._channels = channels
        self._messages = messages
        self._clock = clock

    def sweep_once(self) -> SweepReport:
        """Run one sweep over every channel with a positive TTL."""

        now = self._clock()
        report = SweepReport()
        logger.info("retention_sweep_started")

        for channel in self._channels.with_ttl():
            try:
                predicate = compile_predicate(channel.predicate)
                deleted = self._messages.delete_matching_before(
                    predicate,
                    cutoff_ms(now, channel.ttl_days),
                )
            except Exception as exc:  # noqa: BLE001 - one channel must not stop the others
                report.failed.append(channel.name)
                logger.warning(
                    "retention_channel_failed",
                    channel=channel.name,
                    predicate=channel.predicate,
                    error=str(exc),
                )
                continue

            report.deleted[channel.name] = deleted
            if deleted:
                logger.info(
                    "retention_channel_swept",
                    channel=channel.name,
                    ttl_days=channel.ttl_days,
                    deleted=deleted,
                )

        logger.info(
            "retention_sweep_done",
            deleted=report.total_deleted,
            failed_channels=len(report.failed),
        )
        return report

    async def run(
        self,
        *,
        initial_delay: float | None = None,
        interval: float | None = None,
    ) -> None:
        """Sweep after ``initial_delay`` seconds, then every ``interval`` seconds.

        An interval of 0 (the default setting) sweeps only once.
        """

        delay = self.settings.retention_initial_delay_seconds if initial_delay is None else initial_delay
        every = self.settings.retention_interval_seconds if interval is None else interval

        await asyncio.sleep(max(0.0, delay))
        while True:
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception as exc:  # noqa: BLE001 - background task, logged only
                logger.exception("retention_sweep_failed", error=str(exc))
            if every <= 0:
                return
            await asyncio.sleep(every)

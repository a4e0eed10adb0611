"""
FeedSync Refresh Scheduler
==========================

Periodic sweep over stale feeds. Selects up to 500 auto-refreshed feeds whose
watermark is older than the staleness window and dispatches an update for each
through a bounded worker pool.

Designed to be called by cron, systemd timers or ``main.py refresh-outdated``.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from ..config.settings import FeedSyncSettings, get_settings
from ..database.models import utcnow
from ..processing.update_coordinator import UpdateCoordinator, UpdateOutcome
from ..storage.feed_repository import FeedRepository
from ..utils.exceptions import handle_exception
from ..utils.logging import get_logger_for_component


@dataclass
class RefreshReport:
    """Outcome counts of one sweep."""
    selected: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    failed_feed_ids: List[int] = field(default_factory=list)


class RefreshScheduler:
    """Selects stale feeds and refreshes them with bounded concurrency."""

    def __init__(
        self,
        coordinator: UpdateCoordinator,
        feed_repository: FeedRepository,
        settings: Optional[FeedSyncSettings] = None,
    ):
        self.coordinator = coordinator
        self.feed_repo = feed_repository
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("scheduler")

    def select_outdated(self, now: Optional[datetime] = None) -> List[int]:
        """Return ids of feeds due for refresh at ``now``."""
        now = now or utcnow()
        threshold = now - timedelta(minutes=self.settings.scheduler.stale_after_minutes)
        return self.feed_repo.outdated_feeds(
            threshold, limit=self.settings.scheduler.batch_limit
        )

    async def refresh_outdated(self, now: Optional[datetime] = None) -> RefreshReport:
        """Refresh every stale feed.

        A failing feed is logged and counted; it never aborts the sweep and is
        retried on a later sweep once its lock has expired.

        Args:
            now: Sweep time (defaults to current time)

        Returns:
            Counts of updated, skipped and failed feeds
        """
        feed_ids = self.select_outdated(now)
        report = RefreshReport(selected=len(feed_ids))
        if not feed_ids:
            self.logger.info("No outdated feeds")
            return report

        self.logger.info(
            f"Refreshing {len(feed_ids)} outdated feeds",
            extra={"max_workers": self.settings.scheduler.max_workers},
        )
        semaphore = asyncio.Semaphore(self.settings.scheduler.max_workers)

        async def update_with_semaphore(feed_id: int):
            async with semaphore:
                return await asyncio.to_thread(self.coordinator.update, feed_id)

        tasks = [update_with_semaphore(feed_id) for feed_id in feed_ids]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for feed_id, result in zip(feed_ids, results):
            if isinstance(result, Exception):
                handle_exception(
                    result, self.logger, "refresh feed", context={"feed_id": feed_id}
                )
                report.failed += 1
                report.failed_feed_ids.append(feed_id)
            elif isinstance(result, BaseException):
                raise result
            elif result.outcome == UpdateOutcome.LOCK_HELD:
                report.skipped += 1
            else:
                report.updated += 1

        self.logger.info(
            f"Refresh complete: {report.updated} updated, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

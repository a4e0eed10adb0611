"""
Unit Tests for the Refresh Scheduler
====================================
"""

import threading
import time
from datetime import datetime, timezone, timedelta

import pytest

from feedsync.config.settings import SchedulerSettings
from feedsync.processing.update_coordinator import UpdateOutcome, UpdateResult
from feedsync.scheduler.refresh_scheduler import RefreshScheduler
from feedsync.storage.feed_repository import FeedRepository
from feedsync.utils.exceptions import FetchError, ErrorCode

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class StubCoordinator:
    """Records update calls and replays scripted outcomes."""

    def __init__(self, outcomes=None, delay=0.0):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def update(self, feed_id):
        with self._lock:
            self.calls.append(feed_id)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            outcome = self.outcomes.get(feed_id, UpdateOutcome.UPDATED)
            if isinstance(outcome, Exception):
                raise outcome
            return UpdateResult(feed_id=feed_id, outcome=outcome)
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def feed_repo(db_connection):
    return FeedRepository(db_connection)


@pytest.fixture
def scheduler_settings(test_settings):
    return test_settings.model_copy(
        update={"scheduler": SchedulerSettings(stale_after_minutes=120, batch_limit=500, max_workers=2)}
    )


def add_feed(db, feed_repo, url, updated=None):
    with db.transaction() as conn:
        feed_id = feed_repo.find_or_create_feed(conn, url, url)
        if updated is not None:
            feed_repo.update_sync_state(conn, feed_id, url, "", updated)
    return feed_id


class TestRefreshScheduler:
    """Test suite for RefreshScheduler."""

    def test_select_outdated_uses_staleness_window(self, db_connection, feed_repo, scheduler_settings):
        stale = add_feed(db_connection, feed_repo, "https://a.example.com/", NOW - timedelta(minutes=121))
        add_feed(db_connection, feed_repo, "https://b.example.com/", NOW - timedelta(minutes=30))

        scheduler = RefreshScheduler(StubCoordinator(), feed_repo, scheduler_settings)

        assert scheduler.select_outdated(NOW) == [stale]

    @pytest.mark.asyncio
    async def test_refresh_counts_outcomes(self, db_connection, feed_repo, scheduler_settings):
        ok = add_feed(db_connection, feed_repo, "https://ok.example.com/")
        held = add_feed(db_connection, feed_repo, "https://held.example.com/")
        broken = add_feed(db_connection, feed_repo, "https://broken.example.com/")
        coordinator = StubCoordinator(
            {
                held: UpdateOutcome.LOCK_HELD,
                broken: FetchError(
                    "HTTP 404", feed_url="https://broken.example.com/",
                    error_code=ErrorCode.FEED_NOT_FOUND,
                ),
            }
        )

        report = await RefreshScheduler(coordinator, feed_repo, scheduler_settings).refresh_outdated(NOW)

        assert report.selected == 3
        assert report.updated == 1
        assert report.skipped == 1
        assert report.failed == 1
        assert report.failed_feed_ids == [broken]
        assert sorted(coordinator.calls) == sorted([ok, held, broken])

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_abort_sweep(self, db_connection, feed_repo, scheduler_settings):
        first = add_feed(db_connection, feed_repo, "https://one.example.com/")
        second = add_feed(db_connection, feed_repo, "https://two.example.com/")
        coordinator = StubCoordinator({first: RuntimeError("boom")})

        report = await RefreshScheduler(coordinator, feed_repo, scheduler_settings).refresh_outdated(NOW)

        assert report.failed_feed_ids == [first]
        assert report.updated == 1
        assert second in coordinator.calls

    @pytest.mark.asyncio
    async def test_worker_pool_is_bounded(self, db_connection, feed_repo, scheduler_settings):
        for n in range(6):
            add_feed(db_connection, feed_repo, f"https://f{n}.example.com/")
        coordinator = StubCoordinator(delay=0.05)

        report = await RefreshScheduler(coordinator, feed_repo, scheduler_settings).refresh_outdated(NOW)

        assert report.updated == 6
        assert coordinator.max_active <= 2

    @pytest.mark.asyncio
    async def test_nothing_to_refresh(self, db_connection, feed_repo, scheduler_settings):
        add_feed(db_connection, feed_repo, "https://fresh.example.com/", NOW)
        coordinator = StubCoordinator()

        report = await RefreshScheduler(coordinator, feed_repo, scheduler_settings).refresh_outdated(NOW)

        assert report.selected == 0
        assert coordinator.calls == []

"""
Update Coordinator
==================

Refreshes one feed: take the per-feed lock, fetch the document, merge feed
metadata, enrich new items with word counts and persist everything in a
single transaction.

Network work happens before the write transaction is opened so the SQLite
write lock is never held across a remote call. The write transaction either
commits the feed metadata together with every new entry, or nothing.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable

from ..config.settings import FeedSyncSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import Feed, utcnow
from ..ingestion.article_enricher import ArticleEnricher
from ..ingestion.favicon_resolver import FaviconResolver
from ..ingestion.feed_fetcher import FeedFetcher
from ..ingestion.feed_parser import FetchedFeed
from ..storage.entry_repository import EntryRepository
from ..storage.feed_repository import FeedRepository
from ..utils.distributed_lock import FeedUpdateLock
from ..utils.exceptions import (
    EnrichmentError,
    FaviconUnresolvable,
    PersistenceError,
    ErrorCode,
)
from ..utils.logging import get_logger_for_component, PerformanceLogger


class UpdateOutcome(str, Enum):
    """Result kind of an update pass."""
    UPDATED = "updated"
    LOCK_HELD = "lock_held"


@dataclass
class UpdateResult:
    """Summary of one update pass."""
    feed_id: int
    outcome: UpdateOutcome
    entries_seen: int = 0
    entries_inserted: int = 0

    @property
    def performed(self) -> bool:
        return self.outcome == UpdateOutcome.UPDATED


class UpdateCoordinator:
    """Orchestrates a single feed refresh."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        lock: FeedUpdateLock,
        fetcher: FeedFetcher,
        favicon_resolver: FaviconResolver,
        enricher: Optional[ArticleEnricher] = None,
        settings: Optional[FeedSyncSettings] = None,
        clock: Callable = utcnow,
    ):
        """Initialize the coordinator.

        Args:
            db_connection: Database connection manager
            lock: Distributed per-feed lock
            fetcher: Feed document fetcher
            favicon_resolver: Icon discovery for feeds without one
            enricher: Article metadata client, None to skip word counts
            settings: Application settings
            clock: Source of the current time
        """
        self.db = db_connection
        self.lock = lock
        self.fetcher = fetcher
        self.favicon_resolver = favicon_resolver
        self.enricher = enricher
        self.settings = settings or get_settings()
        self.clock = clock
        self.feed_repo = FeedRepository(db_connection)
        self.entry_repo = EntryRepository(db_connection)
        self.logger = get_logger_for_component("update_coordinator")

    @classmethod
    def from_settings(
        cls,
        db_connection: DatabaseConnection,
        settings: Optional[FeedSyncSettings] = None,
    ) -> "UpdateCoordinator":
        """Wire a coordinator with Redis lock and HTTP clients from settings."""
        settings = settings or get_settings()
        return cls(
            db_connection,
            lock=FeedUpdateLock.from_settings(settings),
            fetcher=FeedFetcher(settings),
            favicon_resolver=FaviconResolver(settings),
            enricher=ArticleEnricher.from_settings(settings),
            settings=settings,
        )

    def update(self, feed_id: int) -> UpdateResult:
        """Refresh a feed.

        Args:
            feed_id: Feed to refresh

        Returns:
            ``UPDATED`` with entry counts, or ``LOCK_HELD`` when another worker
            refreshed the feed within the lock TTL

        Raises:
            LockError: If the lock store is unreachable
            FetchError: If the feed document cannot be fetched or parsed
            PersistenceError: If the feed is missing or the write fails
        """
        if not self.lock.acquire(feed_id):
            self.logger.info(f"Feed {feed_id} update already in progress, skipping")
            return UpdateResult(feed_id=feed_id, outcome=UpdateOutcome.LOCK_HELD)

        logger = get_logger_for_component("update_coordinator", feed_id=feed_id)
        with PerformanceLogger(logger, "feed update", feed_id=feed_id):
            return self._update_locked(feed_id, logger)

    def _update_locked(self, feed_id: int, logger) -> UpdateResult:
        feed = self.feed_repo.get_feed(feed_id)
        if feed is None:
            raise PersistenceError(
                f"Feed {feed_id} not found",
                error_code=ErrorCode.RESOURCE_NOT_FOUND,
                user_message="Feed not found",
            )

        fetch_started = self.clock()
        fetched = self.fetcher.fetch(feed.url, now=fetch_started)

        title = fetched.title or feed.title
        favicon_url = feed.favicon_url or self._resolve_favicon(fetched, logger)

        # Items dated before the previous pass are skipped, even if never seen
        candidates = [item for item in fetched.items if item.published >= feed.updated]
        known = self.entry_repo.existing_urls(feed.id, [item.link for item in candidates])

        rows = []
        for item in candidates:
            word_count = 0
            if item.link not in known:
                word_count = self._word_count(item.link, logger)
            rows.append((item.title, item.link, item.published, word_count))

        with self.db.transaction() as conn:
            self.feed_repo.update_sync_state(
                conn, feed.id, title, favicon_url, fetch_started
            )
            inserted = self.entry_repo.insert_entries(conn, feed.id, rows, fetch_started)

        logger.info(
            f"Updated {self._describe(feed)}: {inserted} new of {len(fetched.items)} items"
        )
        return UpdateResult(
            feed_id=feed.id,
            outcome=UpdateOutcome.UPDATED,
            entries_seen=len(candidates),
            entries_inserted=inserted,
        )

    def _resolve_favicon(self, fetched: FetchedFeed, logger) -> str:
        try:
            return self.favicon_resolver.resolve(fetched)
        except FaviconUnresolvable as e:
            logger.warning(f"Cannot resolve favicon: {e}")
            return ""

    def _word_count(self, url: str, logger) -> int:
        if self.enricher is None:
            return 0
        try:
            return self.enricher.enrich(url)
        except EnrichmentError as e:
            logger.warning(f"Cannot fetch article {url!r}: {e}")
            return 0

    @staticmethod
    def _describe(feed: Feed) -> str:
        return f"feed {feed.id} ({feed.title or feed.url})"

"""
Subscription Manager
====================

Account-facing operations: subscribing to feeds, saving bookmarks,
unsubscribing, and the read queries that list an account's subscriptions and
entries.
"""

from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from ..config.settings import FeedSyncSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import Feed, Subscription, Entry, utcnow
from ..ingestion.feed_fetcher import FeedFetcher
from ..processing.update_coordinator import UpdateCoordinator
from ..storage.entry_repository import EntryRepository
from ..storage.feed_repository import FeedRepository
from ..storage.subscription_repository import SubscriptionRepository
from ..utils.exceptions import (
    FeedSyncError,
    FetchError,
    ValidationError,
    ErrorCode,
    handle_exception,
)
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator


class SubscriptionManager:
    """Service for subscriptions, bookmarks and account reads."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        fetcher: FeedFetcher,
        coordinator: Optional[UpdateCoordinator] = None,
        settings: Optional[FeedSyncSettings] = None,
    ):
        """Initialize the manager.

        Args:
            db_connection: Database connection manager
            fetcher: Fetcher used for the pre-flight check of new subscriptions
            coordinator: Update coordinator for immediate refreshes
            settings: Application settings
        """
        self.db = db_connection
        self.fetcher = fetcher
        self.coordinator = coordinator
        self.settings = settings or get_settings()
        self.feed_repo = FeedRepository(db_connection)
        self.entry_repo = EntryRepository(db_connection)
        self.subscription_repo = SubscriptionRepository(db_connection)
        self.logger = get_logger_for_component("subscription_manager")

    def subscribe(self, account_id: int, url: str, update_now: bool = False) -> int:
        """Subscribe an account to a feed URL.

        The URL must fetch and parse as a feed before anything is written.
        Subscribing to a known URL attaches to the existing feed row.

        Args:
            account_id: Subscribing account
            url: Feed URL
            update_now: Run one update pass right after subscribing

        Returns:
            Feed ID

        Raises:
            ValidationError: If the URL is malformed or does not serve a feed
            PersistenceError: If the subscription cannot be stored
        """
        feed_url = URLValidator.validate_feed_url(url)

        try:
            self.fetcher.fetch(feed_url)
        except FetchError as e:
            raise ValidationError(
                f"Invalid feed: {e}",
                field_name="url",
                error_code=ErrorCode.VALIDATION_FEED_UNREACHABLE,
                user_message="The URL does not point to a readable feed",
                context={"feed_url": feed_url},
            ) from e

        title = urlparse(feed_url).netloc or feed_url
        now = utcnow()
        with self.db.transaction() as conn:
            feed_id = self.feed_repo.find_or_create_feed(conn, feed_url, title)
            created = self.subscription_repo.subscribe(conn, account_id, feed_id, now)

        logger = get_logger_for_component(
            "subscription_manager", feed_id=feed_id, account_id=account_id
        )
        if created:
            logger.info(f"Account {account_id} subscribed to {feed_url}")
        else:
            logger.debug(f"Account {account_id} already subscribed to {feed_url}")

        if update_now and self.coordinator is not None:
            try:
                self.coordinator.update(feed_id)
            except FeedSyncError as e:
                handle_exception(e, logger, "initial feed update", {"feed_id": feed_id})

        return feed_id

    def bookmark(
        self, account_id: int, url: str, title: str = "", word_count: int = 0
    ) -> int:
        """Save a link into the account's private bookmark feed.

        Saving the same URL again refreshes its title and time in place.

        Returns:
            Bookmark feed ID
        """
        url = URLValidator.validate_bookmark_url(url)
        if word_count < 0:
            raise ValidationError("word_count cannot be negative", field_name="word_count")
        title = title.strip() or url
        now = utcnow()

        with self.db.transaction() as conn:
            feed_id = self.feed_repo.ensure_bookmark_feed(conn, account_id, now)
            self.subscription_repo.subscribe(conn, account_id, feed_id, now)
            self.entry_repo.upsert_bookmark(conn, feed_id, url, title, now, word_count)

        self.logger.info(f"Account {account_id} bookmarked {url}")
        return feed_id

    def unsubscribe(self, subscription_id: int, account_id: int) -> bool:
        """Remove an account's subscription; the feed itself is kept.

        Returns:
            True if the subscription existed and belonged to the account
        """
        return self.subscription_repo.unsubscribe(subscription_id, account_id)

    def feed(self, feed_id: int) -> Optional[Feed]:
        return self.feed_repo.get_feed(feed_id)

    def subscriptions(self, account_id: int) -> List[Subscription]:
        return self.subscription_repo.subscriptions_for_account(account_id)

    def entries(
        self, account_id: int, published_lte: Optional[datetime] = None
    ) -> List[Entry]:
        """Newest entries across the account's subscriptions."""
        return self.entry_repo.entries_for_account(account_id, published_lte or utcnow())

    def feed_entries(
        self, account_id: int, feed_id: int, published_lte: Optional[datetime] = None
    ) -> List[Entry]:
        """Newest entries of one subscribed feed."""
        return self.entry_repo.feed_entries(
            account_id, feed_id, published_lte or utcnow()
        )

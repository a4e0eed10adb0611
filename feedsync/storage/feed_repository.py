"""
Feed Repository
===============

Repository pattern implementation for the feeds table: lookup, atomic
find-or-create, sync state updates and the stale feed selection query.

Methods taking a ``conn`` argument run inside the caller's transaction.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import (
    Feed,
    EPOCH,
    SHARED_FEED_OWNER,
    BOOKMARK_FEED_TITLE,
    BOOKMARK_FAVICON_URL,
    bookmark_feed_url,
    to_db_timestamp,
)
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import PersistenceError, ErrorCode

OUTDATED_FEEDS_LIMIT = 500


class FeedRepository:
    """Repository for managing feed rows in the database."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    def get_feed(self, feed_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Feed]:
        """Get feed by ID.

        Args:
            feed_id: Feed ID
            conn: Connection of an open transaction, if any

        Returns:
            Feed object if found, None otherwise
        """
        query = "SELECT * FROM feeds WHERE feed_id = ?"
        try:
            if conn is not None:
                row = conn.execute(query, (feed_id,)).fetchone()
            else:
                row = self.db.execute_one(query, (feed_id,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get feed {feed_id}: {e}", query=query) from e

        return Feed.from_db_row(row) if row else None

    def find_or_create_feed(self, conn: sqlite3.Connection, url: str, title: str) -> int:
        """Return the id of the feed with this URL, creating it if absent.

        A new feed starts with the epoch watermark so that its first update
        accepts every item of the current document.

        Args:
            conn: Connection of an open transaction
            url: Feed URL
            title: Title for a newly created feed

        Returns:
            Feed ID
        """
        try:
            cursor = conn.execute(
                """
                INSERT INTO feeds (url, title, favicon_url, updated, owned_by, autorefresh)
                VALUES (?, ?, '', ?, ?, TRUE)
                ON CONFLICT (url) DO NOTHING
                """,
                (url, title, to_db_timestamp(EPOCH), SHARED_FEED_OWNER),
            )
            if cursor.rowcount:
                self.logger.info(f"Created feed {cursor.lastrowid}: {url}")

            row = conn.execute(
                "SELECT feed_id FROM feeds WHERE url = ?", (url,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to find or create feed {url}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        return row["feed_id"]

    def ensure_bookmark_feed(
        self, conn: sqlite3.Connection, account_id: int, now: datetime
    ) -> int:
        """Return the id of the account's bookmark feed, creating it if absent."""
        try:
            conn.execute(
                """
                INSERT INTO feeds (url, title, favicon_url, updated, owned_by, autorefresh)
                VALUES (?, ?, ?, ?, ?, FALSE)
                ON CONFLICT DO NOTHING
                """,
                (
                    bookmark_feed_url(account_id),
                    BOOKMARK_FEED_TITLE,
                    BOOKMARK_FAVICON_URL,
                    to_db_timestamp(now),
                    account_id,
                ),
            )
            row = conn.execute(
                "SELECT feed_id FROM feeds WHERE owned_by = ?", (account_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to ensure bookmark feed for account {account_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        if row is None:
            raise PersistenceError(
                f"Bookmark feed URL for account {account_id} is taken by another feed",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
            )
        return row["feed_id"]

    def update_sync_state(
        self,
        conn: sqlite3.Connection,
        feed_id: int,
        title: str,
        favicon_url: str,
        updated: datetime,
    ) -> None:
        """Persist the result of an update pass."""
        query = "UPDATE feeds SET title = ?, favicon_url = ?, updated = ? WHERE feed_id = ?"
        try:
            cursor = conn.execute(
                query, (title, favicon_url, to_db_timestamp(updated), feed_id)
            )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to update feed {feed_id}: {e}", query=query
            ) from e

        if cursor.rowcount == 0:
            raise PersistenceError(
                f"Feed {feed_id} disappeared during update",
                error_code=ErrorCode.RESOURCE_NOT_FOUND,
            )

    def outdated_feeds(
        self, updated_lte: datetime, limit: int = OUTDATED_FEEDS_LIMIT
    ) -> List[int]:
        """Select ids of auto-refreshed feeds not updated since ``updated_lte``.

        Args:
            updated_lte: Inclusive watermark threshold
            limit: Maximum number of ids, never more than 500

        Returns:
            Feed ids, least recently updated first
        """
        query = """
            SELECT feed_id FROM feeds
            WHERE updated <= ? AND autorefresh
            ORDER BY updated
            LIMIT ?
        """
        try:
            rows = self.db.execute_query(
                query,
                (to_db_timestamp(updated_lte), min(limit, OUTDATED_FEEDS_LIMIT)),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to select outdated feeds: {e}", query=query) from e

        return [row["feed_id"] for row in rows]

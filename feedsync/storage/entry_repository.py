"""
Entry Repository
================

Repository for the entries table. Ingestion inserts are conflict-ignoring on
``(feed_id, url)`` so replaying a document never duplicates rows; bookmark
writes update the existing row in place.
"""

import sqlite3
from datetime import datetime
from typing import List, Iterable, Set, Tuple

from ..database.connection import DatabaseConnection
from ..database.models import Entry, to_db_timestamp
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import PersistenceError, ErrorCode

ACCOUNT_ENTRIES_LIMIT = 100
FEED_ENTRIES_LIMIT = 200

_ENTRY_COLUMNS = """
    e.entry_id,
    e.feed_id,
    e.title,
    e.url,
    e.published,
    e.created,
    e.word_count,
    f.owned_by AS feed_owned_by,
    f.title AS feed_title,
    f.favicon_url AS feed_favicon_url
"""


class EntryRepository:
    """Repository for entry rows."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("entry_repository")

    def insert_entries(
        self,
        conn: sqlite3.Connection,
        feed_id: int,
        entries: Iterable[Tuple[str, str, datetime, int]],
        created: datetime,
    ) -> int:
        """Insert entries, ignoring those already stored for the feed.

        Args:
            conn: Connection of an open transaction
            feed_id: Owning feed
            entries: ``(title, url, published, word_count)`` tuples
            created: Ingestion timestamp shared by the batch

        Returns:
            Number of rows actually inserted
        """
        query = """
            INSERT INTO entries (feed_id, title, url, published, created, word_count)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (feed_id, url) DO NOTHING
        """
        created_ts = to_db_timestamp(created)
        inserted = 0
        try:
            for title, url, published, word_count in entries:
                cursor = conn.execute(
                    query,
                    (feed_id, title, url, to_db_timestamp(published), created_ts, word_count),
                )
                inserted += cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Cannot insert entries for feed {feed_id}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        return inserted

    def upsert_bookmark(
        self,
        conn: sqlite3.Connection,
        feed_id: int,
        url: str,
        title: str,
        saved_at: datetime,
        word_count: int = 0,
    ) -> None:
        """Save a bookmark entry, refreshing title, time and word count if present."""
        query = """
            INSERT INTO entries (feed_id, title, url, created, published, word_count)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (feed_id, url) DO UPDATE SET
                published = excluded.published,
                title = excluded.title,
                word_count = excluded.word_count
        """
        saved_ts = to_db_timestamp(saved_at)
        try:
            conn.execute(query, (feed_id, title, url, saved_ts, saved_ts, word_count))
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Cannot insert bookmark {url}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

    def entries_for_account(
        self, account_id: int, published_lte: datetime, limit: int = ACCOUNT_ENTRIES_LIMIT
    ) -> List[Entry]:
        """Newest entries of every feed the account is subscribed to."""
        query = f"""
            SELECT {_ENTRY_COLUMNS}
            FROM entries e
                INNER JOIN feeds f ON e.feed_id = f.feed_id
                INNER JOIN subscriptions s ON s.feed_id = f.feed_id
            WHERE s.account_id = ? AND e.published <= ?
            ORDER BY e.published DESC
            LIMIT ?
        """
        try:
            rows = self.db.execute_query(
                query, (account_id, to_db_timestamp(published_lte), limit)
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot list entries: {e}", query=query) from e

        return [Entry.from_db_row(row) for row in rows]

    def feed_entries(
        self,
        account_id: int,
        feed_id: int,
        published_lte: datetime,
        limit: int = FEED_ENTRIES_LIMIT,
    ) -> List[Entry]:
        """Newest entries of one feed, visible only through a subscription."""
        query = f"""
            SELECT {_ENTRY_COLUMNS}
            FROM entries e
                INNER JOIN feeds f ON e.feed_id = f.feed_id
                INNER JOIN subscriptions s ON s.feed_id = f.feed_id
            WHERE s.account_id = ? AND e.published <= ? AND e.feed_id = ?
            ORDER BY e.published DESC
            LIMIT ?
        """
        try:
            rows = self.db.execute_query(
                query, (account_id, to_db_timestamp(published_lte), feed_id, limit)
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot list feed entries: {e}", query=query) from e

        return [Entry.from_db_row(row) for row in rows]

    def existing_urls(self, feed_id: int, urls: List[str]) -> Set[str]:
        """Return the subset of ``urls`` already stored for the feed."""
        if not urls:
            return set()
        query = "SELECT url FROM entries WHERE feed_id = ? AND url = ?"
        found = set()
        try:
            with self.db.get_connection() as conn:
                for url in set(urls):
                    if conn.execute(query, (feed_id, url)).fetchone():
                        found.add(url)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot look up entries: {e}", query=query) from e

        return found

"""
FeedSync Database Schema
========================

SQLite schema for the synchronization engine:
- feeds: remote syndication sources and private bookmark feeds
- subscriptions: account membership in a feed's entry stream
- entries: ingested items, unique per (feed_id, url)
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"feeds", "subscriptions", "entries"}


class DatabaseSchema:
    """Database schema manager for the FeedSync SQLite database."""

    def __init__(self, db_path: str = "data/feedsync.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables with proper schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            # Create tables in dependency order
            self._create_feeds_table(conn)
            self._create_subscriptions_table(conn)
            self._create_entries_table(conn)

            self._run_migrations(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_feeds_table(self, conn: sqlite3.Connection) -> None:
        """Create feeds table; owned_by = 0 marks a shared feed."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds (
                feed_id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                favicon_url TEXT NOT NULL DEFAULT '',
                updated TEXT NOT NULL,
                owned_by INTEGER NOT NULL DEFAULT 0,
                autorefresh BOOLEAN NOT NULL DEFAULT TRUE
            )
        """
        )

    def _create_subscriptions_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS subscriptions (
                subscription_id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id INTEGER NOT NULL,
                feed_id INTEGER NOT NULL REFERENCES feeds(feed_id),
                created TEXT NOT NULL,
                UNIQUE (account_id, feed_id)
            )
        """
        )

    def _create_entries_table(self, conn: sqlite3.Connection) -> None:
        """Create entries table; published equals created for bookmarks."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS entries (
                entry_id INTEGER PRIMARY KEY AUTOINCREMENT,
                feed_id INTEGER NOT NULL REFERENCES feeds(feed_id),
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                created TEXT NOT NULL,
                published TEXT NOT NULL,
                word_count INTEGER NOT NULL DEFAULT 0,
                UNIQUE (feed_id, url)
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for optimal query performance."""
        indexes = [
            # One bookmark feed per account
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_feeds_owner ON feeds(owned_by) WHERE owned_by != 0",
            "CREATE INDEX IF NOT EXISTS idx_feeds_refresh ON feeds(autorefresh, updated)",
            "CREATE INDEX IF NOT EXISTS idx_subscriptions_account ON subscriptions(account_id)",
            "CREATE INDEX IF NOT EXISTS idx_entries_published ON entries(published)",
            "CREATE INDEX IF NOT EXISTS idx_entries_feed_published ON entries(feed_id, published)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def _run_migrations(self, conn: sqlite3.Connection) -> None:
        """Run database migrations for existing databases."""
        cursor = conn.execute("PRAGMA table_info(feeds)")
        feed_columns = [column[1] for column in cursor.fetchall()]

        if "autorefresh" not in feed_columns:
            logger.info("Adding autorefresh column to feeds table")
            conn.execute(
                "ALTER TABLE feeds ADD COLUMN autorefresh BOOLEAN NOT NULL DEFAULT TRUE"
            )

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in ["entries", "subscriptions", "feeds"]:
                conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.commit()
            logger.info("All database tables dropped")

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify database schema is correctly created."""
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                """
                SELECT name FROM sqlite_master
                WHERE type='table' AND name NOT LIKE 'sqlite_%'
                ORDER BY name
            """
            )

            tables = {row[0] for row in cursor.fetchall()}

            if not EXPECTED_TABLES.issubset(tables):
                logger.error(
                    f"Missing tables. Expected: {EXPECTED_TABLES}, Found: {tables}"
                )
                return False

            conn.execute("PRAGMA foreign_key_check")

            logger.info("Database schema verification passed")
            return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False
        finally:
            conn.close()


"""
FeedSync Database Connection Management
=======================================

Connection pool and transaction management for SQLite with proper error
handling and performance pragmas.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Any, List, Dict
from queue import Queue, Empty, Full

from ..utils.exceptions import PersistenceError, ErrorCode

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Thread-safe SQLite database connection manager with pooling."""

    def __init__(
        self,
        db_path: str = "data/feedsync.db",
        pool_size: int = 5,
        busy_timeout: float = 30.0,
    ):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of connections in pool
            busy_timeout: Seconds to wait for a locked database
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.busy_timeout = busy_timeout
        self.pool: Queue = Queue(maxsize=pool_size)
        self.lock = threading.Lock()
        self._total_connections = 0

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_pool()

    def _initialize_pool(self) -> None:
        for _ in range(self.pool_size):
            self.pool.put(self._create_connection())

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new optimized SQLite connection."""
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,  # Connections move between worker threads
            timeout=self.busy_timeout,
        )

        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA temp_store = MEMORY")

        conn.row_factory = sqlite3.Row

        with self.lock:
            self._total_connections += 1

        logger.debug(f"Created database connection #{self._total_connections}")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a connection from the pool with automatic return.

        Usage:
            with db_manager.get_connection() as conn:
                rows = conn.execute("SELECT * FROM feeds").fetchall()
        """
        start_time = time.time()
        conn = None

        try:
            try:
                conn = self.pool.get(timeout=10.0)
            except Empty:
                logger.warning("Connection pool exhausted, creating new connection")
                conn = self._create_connection()

            acquisition_time = time.time() - start_time
            if acquisition_time > 1.0:
                logger.warning(f"Database connection acquisition took {acquisition_time:.2f}s")

            yield conn

        except sqlite3.Error as e:
            logger.error(f"Database connection error: {e}")
            if conn is not None and conn.in_transaction:
                conn.rollback()
            raise
        finally:
            if conn is not None:
                self._release(conn)

    def _release(self, conn: sqlite3.Connection) -> None:
        try:
            self.pool.put_nowait(conn)
        except Full:
            conn.close()
            with self.lock:
                self._total_connections -= 1

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Execute operations within a database transaction.

        Usage:
            with db_manager.transaction() as conn:
                conn.execute("INSERT INTO feeds ...")
                conn.execute("INSERT INTO subscriptions ...")
                # Automatic commit on success, rollback on exception
        """
        with self.get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Cannot begin transaction: {e}",
                    error_code=ErrorCode.DATABASE_TRANSACTION,
                ) from e

            try:
                yield conn
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back due to error: {e}")
                raise

            try:
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceError(
                    f"Cannot commit transaction: {e}",
                    error_code=ErrorCode.DATABASE_TRANSACTION,
                ) from e

    def execute_query(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        """Execute a SELECT query and return results."""
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Execute a query and return single result."""
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Execute an INSERT/UPDATE/DELETE query.

        Returns:
            Number of affected rows
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount

    def get_database_info(self) -> Dict[str, Any]:
        """Get database information and statistics."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]

            table_counts = {}
            for table in ("feeds", "subscriptions", "entries"):
                try:
                    table_counts[table] = conn.execute(
                        f"SELECT COUNT(*) FROM {table}"
                    ).fetchone()[0]
                except sqlite3.Error:
                    table_counts[table] = 0

            return {
                'database_size_mb': page_count * page_size / (1024 * 1024),
                'table_counts': table_counts,
                'connection_pool_size': self.pool.qsize(),
                'total_connections': self._total_connections
            }

    def close_all_connections(self) -> None:
        """Close all connections in the pool."""
        logger.info("Closing all database connections")

        while not self.pool.empty():
            try:
                conn = self.pool.get_nowait()
                conn.close()
            except (Empty, sqlite3.Error):
                break

        with self.lock:
            self._total_connections = 0


# Global database manager instance
_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: str = "data/feedsync.db", pool_size: int = 5) -> DatabaseConnection:
    """Get global database manager instance (singleton pattern).

    Args:
        db_path: Path to database file
        pool_size: Connections kept in the pool

    Returns:
        Database connection manager instance
    """
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseConnection(db_path, pool_size)

    return _db_manager

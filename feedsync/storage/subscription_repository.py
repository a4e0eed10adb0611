"""
Subscription Repository
=======================

Repository for account subscriptions. Removing a subscription never touches
the feed: a shared feed may outlive all of its subscribers.
"""

import sqlite3
from datetime import datetime
from typing import List

from ..database.connection import DatabaseConnection
from ..database.models import Subscription, to_db_timestamp
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import PersistenceError, ErrorCode

SUBSCRIPTIONS_LIMIT = 1000


class SubscriptionRepository:
    """Repository for subscription rows."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("subscription_repository")

    def subscribe(
        self, conn: sqlite3.Connection, account_id: int, feed_id: int, created: datetime
    ) -> bool:
        """Attach an account to a feed inside the caller's transaction.

        Returns:
            True if a new subscription was created, False if it already existed
        """
        query = """
            INSERT INTO subscriptions (account_id, feed_id, created)
            VALUES (?, ?, ?)
            ON CONFLICT (account_id, feed_id) DO NOTHING
        """
        try:
            cursor = conn.execute(query, (account_id, feed_id, to_db_timestamp(created)))
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Cannot subscribe account {account_id} to feed {feed_id}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        return cursor.rowcount > 0

    def unsubscribe(self, subscription_id: int, account_id: int) -> bool:
        """Delete a subscription owned by the account.

        Returns:
            True if a row was deleted
        """
        query = "DELETE FROM subscriptions WHERE account_id = ? AND subscription_id = ?"
        try:
            deleted = self.db.execute_update(query, (account_id, subscription_id))
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Cannot delete subscription {subscription_id}: {e}", query=query
            ) from e

        if deleted:
            self.logger.info(f"Account {account_id} removed subscription {subscription_id}")
        return deleted > 0

    def subscriptions_for_account(
        self, account_id: int, limit: int = SUBSCRIPTIONS_LIMIT
    ) -> List[Subscription]:
        """Subscriptions of an account with their feed details, by feed title."""
        query = """
            SELECT
                s.subscription_id,
                s.feed_id,
                s.account_id,
                f.title,
                f.url,
                s.created,
                f.updated,
                f.owned_by AS feed_owned_by,
                f.favicon_url AS feed_favicon_url
            FROM subscriptions s
                INNER JOIN feeds f ON s.feed_id = f.feed_id
            WHERE s.account_id = ?
            ORDER BY f.title ASC
            LIMIT ?
        """
        try:
            rows = self.db.execute_query(query, (account_id, limit))
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot list subscriptions: {e}", query=query) from e

        return [Subscription.from_db_row(row) for row in rows]

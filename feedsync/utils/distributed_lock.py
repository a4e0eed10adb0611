"""
FeedSync Distributed Update Lock
================================

Per-feed mutual exclusion across processes, backed by a Redis
``SET key 1 NX EX ttl``. There is no release call: a lock always runs out its
TTL, which also limits refreshes of one feed to one per TTL window.
"""

from typing import Optional

import redis

from ..config.settings import FeedSyncSettings, get_settings
from .exceptions import LockError
from .logging import get_logger_for_component


class FeedUpdateLock:
    """Self-expiring set-if-absent lock keyed by feed id."""

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = 30,
        key_prefix: str = "feedsync:update",
    ):
        """Initialize the lock.

        Args:
            client: Redis client shared by every worker in the fleet
            ttl_seconds: Lock lifetime
            key_prefix: Namespace for lock keys
        """
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.logger = get_logger_for_component("distributed_lock")

    @classmethod
    def from_settings(cls, settings: Optional[FeedSyncSettings] = None) -> "FeedUpdateLock":
        settings = settings or get_settings()
        client = redis.Redis.from_url(settings.lock.redis_url)
        return cls(
            client,
            ttl_seconds=settings.lock.ttl_seconds,
            key_prefix=settings.lock.key_prefix,
        )

    def key_for(self, feed_id: int) -> str:
        return f"{self.key_prefix}:{feed_id}"

    def acquire(self, feed_id: int) -> bool:
        """Try to take the lock for a feed.

        Returns:
            True if this caller now holds the lock, False if it is already held

        Raises:
            LockError: If the lock store cannot be reached
        """
        key = self.key_for(feed_id)
        try:
            acquired = self.client.set(key, "1", nx=True, ex=self.ttl_seconds)
        except redis.RedisError as e:
            raise LockError(
                f"Lock store unavailable for feed {feed_id}: {e}",
                lock_key=key,
            ) from e

        if acquired:
            self.logger.debug(f"Acquired update lock {key} for {self.ttl_seconds}s")
            return True

        self.logger.debug(f"Update lock {key} already held")
        return False

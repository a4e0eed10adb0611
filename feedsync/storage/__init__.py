"""
FeedSync Storage Layer
======================

Repository pattern implementations for data access abstraction.

This module provides:
- Feed repository with find-or-create and stale feed selection
- Entry repository with idempotent inserts and bookmark upserts
- Subscription repository for account membership
"""

from .feed_repository import FeedRepository
from .entry_repository import EntryRepository
from .subscription_repository import SubscriptionRepository

__all__ = [
    "FeedRepository",
    "EntryRepository",
    "SubscriptionRepository",
]

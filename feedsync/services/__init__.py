"""
FeedSync Services
=================

Shared service layer used by the CLI and any other front end.
"""

from .subscription_manager import SubscriptionManager

__all__ = [
    'SubscriptionManager',
]

"""
FeedSync Processing Module
==========================

Per-feed update passes: lock, fetch, merge, enrich and persist.
"""

from .update_coordinator import UpdateCoordinator, UpdateOutcome, UpdateResult

__all__ = [
    'UpdateCoordinator',
    'UpdateOutcome',
    'UpdateResult',
]

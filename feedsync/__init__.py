"""
FeedSync - Feed Synchronization Engine
======================================

Keeps remote syndication feeds in sync with a relational store.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables and .env with Pydantic validation
- Ingestion: feed fetching and parsing, favicon discovery, article enrichment
- Processing: per-feed update passes guarded by a Redis lock
- Scheduler: bounded refresh sweeps over stale feeds
- Services: subscriptions, bookmarks and account reads
"""

__version__ = "1.0.0"
__author__ = "FeedSync Development Team"
__description__ = "Feed synchronization engine"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedSyncError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedSyncError",
]

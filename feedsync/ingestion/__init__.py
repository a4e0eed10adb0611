"""
FeedSync Ingestion Module
=========================

Remote reads made while refreshing a feed.

This module handles:
- Feed fetching and format-agnostic parsing (RSS, Atom, JSON Feed)
- Favicon discovery
- Article word counts from the metadata service
"""

from .feed_parser import FetchedFeed, FetchedItem, parse_feed
from .feed_fetcher import FeedFetcher
from .favicon_resolver import FaviconResolver
from .article_enricher import ArticleEnricher, ArticleMetadata

__all__ = [
    'FetchedFeed',
    'FetchedItem',
    'parse_feed',
    'FeedFetcher',
    'FaviconResolver',
    'ArticleEnricher',
    'ArticleMetadata',
]

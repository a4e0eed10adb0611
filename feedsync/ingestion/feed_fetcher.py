"""
Feed Fetcher
============

Retrieves a remote feed document over HTTP with a hard size ceiling and hands
it to the feed parser.
"""

import time
from datetime import datetime
from typing import Optional

import requests

from ..config.settings import FeedSyncSettings, get_settings
from ..database.models import utcnow
from ..utils.exceptions import FetchError, ErrorCode
from ..utils.http import build_session, read_limited
from ..utils.logging import get_logger_for_component
from .feed_parser import FetchedFeed, parse_feed, describe

FEED_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/feed+json, "
    "application/json, application/xml, text/xml;q=0.9, */*;q=0.8"
)


class FeedFetcher:
    """Fetch and parse remote feed documents."""

    def __init__(
        self,
        settings: Optional[FeedSyncSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings()
        self.session = session or build_session(self.settings, accept=FEED_ACCEPT)
        self.logger = get_logger_for_component("feed_fetcher")

    def fetch(self, url: str, now: Optional[datetime] = None) -> FetchedFeed:
        """Fetch and parse a feed.

        Non-2xx responses are still parsed; many servers return a usable feed
        with an odd status. The failure is reported only when the body does
        not parse.

        Args:
            url: Feed URL
            now: Timestamp given to undated items (defaults to current time)

        Returns:
            Parsed feed with items in document order

        Raises:
            FetchError: On transport failure or when the document is not a feed
        """
        self.logger.info(f"Fetching feed: {url}")
        start_time = time.time()

        try:
            response = self.session.get(
                url, timeout=self.settings.limits.request_timeout, stream=True
            )
            try:
                content = read_limited(response, self.settings.limits.max_feed_bytes)
            finally:
                response.close()
        except requests.Timeout as e:
            raise FetchError(
                f"Timed out fetching feed {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise FetchError(
                f"Failed to fetch feed {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        self.logger.debug(
            f"Feed fetched in {time.time() - start_time:.2f}s, "
            f"status {response.status_code}, size {len(content)} bytes"
        )

        try:
            feed = parse_feed(
                content,
                content_type=response.headers.get("Content-Type"),
                now=now or utcnow(),
                feed_url=url,
            )
        except FetchError as e:
            if 200 <= response.status_code < 300:
                raise
            raise FetchError(
                f"HTTP {response.status_code} from {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NOT_FOUND
                if response.status_code == 404
                else ErrorCode.FEED_NETWORK_ERROR,
                context={"status_code": response.status_code},
            ) from e

        self.logger.info(f"Parsed feed {url}", extra=describe(feed))
        return feed

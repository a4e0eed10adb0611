"""
Feed Document Parser
====================

Single parsing capability for syndication documents. RSS, RDF and Atom are
handled by feedparser; JSON Feed is decoded directly. Both variants produce the
same ``FetchedFeed`` with items in document order.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Any, Dict

import feedparser

from ..database.models import utcnow
from ..utils.exceptions import FetchError, ErrorCode
from ..utils.validators import URLValidator

JSON_FEED_VERSION_PREFIX = "https://jsonfeed.org/version/"


@dataclass
class FetchedItem:
    """One raw item of a feed document."""

    title: str
    link: str
    published: datetime


@dataclass
class FetchedFeed:
    """Parsed feed document."""

    title: str
    link: str
    items: List[FetchedItem] = field(default_factory=list)
    format: str = ""

    @property
    def first_item_link(self) -> str:
        return self.items[0].link if self.items else ""


def parse_feed(
    content: bytes,
    content_type: Optional[str] = None,
    now: Optional[datetime] = None,
    feed_url: Optional[str] = None,
) -> FetchedFeed:
    """Parse a feed document of any supported format.

    Args:
        content: Raw document body
        content_type: Content-Type header of the response, if known
        now: Timestamp given to items that carry no date
        feed_url: Source URL, used in error context only

    Returns:
        Parsed feed

    Raises:
        FetchError: If the document is not a recognizable feed
    """
    now = now or utcnow()

    if _looks_like_json(content, content_type):
        return _parse_json_feed(content, now, feed_url)
    return _parse_syndication(content, content_type, now, feed_url)


def _looks_like_json(content: bytes, content_type: Optional[str]) -> bool:
    if content_type and "json" in content_type.lower():
        return True
    return content.lstrip()[:1] == b"{"


def _parse_syndication(
    content: bytes,
    content_type: Optional[str],
    now: datetime,
    feed_url: Optional[str],
) -> FetchedFeed:
    headers = {"content-type": content_type} if content_type else {}
    parsed = feedparser.parse(content, response_headers=headers)

    if not parsed.get("version") and not parsed.entries:
        reason = parsed.get("bozo_exception") or "unrecognized document format"
        raise FetchError(
            f"Not a feed document: {reason}",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        )

    feed_data = parsed.feed
    items = []
    for entry in parsed.entries:
        link = URLValidator.normalize_link(entry.get("link", ""))
        if not link:
            continue
        items.append(
            FetchedItem(
                title=(entry.get("title") or "").strip(),
                link=link,
                published=_struct_to_datetime(
                    entry.get("published_parsed") or entry.get("updated_parsed")
                ) or now,
            )
        )

    return FetchedFeed(
        title=(feed_data.get("title") or "").strip(),
        link=URLValidator.normalize_link(feed_data.get("link", "")),
        items=items,
        format=parsed.get("version") or "unknown",
    )


def _struct_to_datetime(value: Any) -> Optional[datetime]:
    """feedparser normalizes dates to UTC ``time.struct_time``."""
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=timezone.utc)
    except (ValueError, TypeError):
        return None


def _parse_json_feed(content: bytes, now: datetime, feed_url: Optional[str]) -> FetchedFeed:
    try:
        document = json.loads(content)
    except (ValueError, UnicodeDecodeError) as e:
        raise FetchError(
            f"Malformed JSON feed: {e}",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        ) from e

    if not isinstance(document, dict) or not str(document.get("version", "")).startswith(
        JSON_FEED_VERSION_PREFIX
    ):
        raise FetchError(
            "JSON document is not a JSON Feed",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        )

    raw_items = document.get("items") or []
    if not isinstance(raw_items, list):
        raise FetchError(
            "JSON Feed items must be a list",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        )

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        link = URLValidator.normalize_link(raw.get("url") or raw.get("external_url") or "")
        if not link:
            continue
        published = _iso_to_datetime(raw.get("date_published")) or _iso_to_datetime(
            raw.get("date_modified")
        )
        items.append(
            FetchedItem(
                title=str(raw.get("title") or "").strip(),
                link=link,
                published=published or now,
            )
        )

    return FetchedFeed(
        title=str(document.get("title") or "").strip(),
        link=URLValidator.normalize_link(str(document.get("home_page_url") or "")),
        items=items,
        format="json" + document["version"][len(JSON_FEED_VERSION_PREFIX):],
    )


def _iso_to_datetime(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 date as used by JSON Feed."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def describe(feed: FetchedFeed) -> Dict[str, Any]:
    """Summary used in log records."""
    return {"feed_title": feed.title, "feed_format": feed.format, "item_count": len(feed.items)}

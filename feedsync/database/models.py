"""
FeedSync Data Models
====================

Pydantic data models for the feeds, subscriptions and entries tables, plus
the timestamp codec used to store datetimes in SQLite.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Fixed width so that lexical order in SQL equals chronological order
DB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

SHARED_FEED_OWNER = 0
BOOKMARK_FEED_TITLE = "Bookmarks"
BOOKMARK_FAVICON_URL = "/static/bookmark.png"
WORDS_PER_MINUTE = 200


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """Encode a datetime for storage; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DB_TIMESTAMP_FORMAT)


def from_db_timestamp(value: Any) -> Optional[datetime]:
    """Decode a stored timestamp back into an aware UTC datetime."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.strptime(value, DB_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def bookmark_feed_url(account_id: int) -> str:
    """Synthetic, account-unique URL of an account's bookmark feed."""
    return f"/?feed={account_id}"


def _host(url: str) -> str:
    try:
        return urlparse(url).netloc
    except ValueError:
        return ""


class Feed(BaseModel):
    """Syndication source tracked by URL."""
    id: int = Field(..., description="Database primary key")
    url: str = Field(..., min_length=1, description="Feed URL, globally unique")
    title: str = Field(default="", description="Feed title")
    favicon_url: str = Field(default="", description="Resolved icon URL, empty until resolved")
    updated: datetime = Field(default=EPOCH, description="Entry ingestion watermark")
    owned_by: int = Field(default=SHARED_FEED_OWNER, ge=0, description="Owning account, 0 when shared")
    autorefresh: bool = Field(default=True, description="Whether the feed is selected for refresh")

    @field_validator('updated', mode='before')
    @classmethod
    def parse_updated(cls, v):
        return from_db_timestamp(v)

    def is_bookmark_feed(self) -> bool:
        return self.owned_by != SHARED_FEED_OWNER

    @classmethod
    def from_db_row(cls, row) -> "Feed":
        data = dict(row)
        data["id"] = data.pop("feed_id")
        data["autorefresh"] = bool(data.get("autorefresh", True))
        return cls(**data)

    def __str__(self) -> str:
        return f"Feed({self.title or self.url})"


class Subscription(BaseModel):
    """An account's membership in a feed's entry stream."""
    id: int = Field(..., description="Database primary key")
    account_id: int = Field(..., description="Subscribed account")
    feed_id: int = Field(..., description="Subscribed feed")
    created: datetime = Field(..., description="Subscription time")
    title: str = Field(default="", description="Feed title")
    url: str = Field(default="", description="Feed URL")
    updated: Optional[datetime] = Field(default=None, description="Feed watermark")
    feed_owned_by: int = Field(default=SHARED_FEED_OWNER)
    feed_favicon_url: str = Field(default="")

    @field_validator('created', 'updated', mode='before')
    @classmethod
    def parse_timestamps(cls, v):
        return from_db_timestamp(v)

    @property
    def host(self) -> str:
        return _host(self.url)

    @classmethod
    def from_db_row(cls, row) -> "Subscription":
        data = dict(row)
        data["id"] = data.pop("subscription_id")
        return cls(**data)


class Entry(BaseModel):
    """One item ingested from a feed or saved as a bookmark."""
    id: int = Field(..., description="Database primary key")
    feed_id: int = Field(..., description="Owning feed")
    title: str = Field(default="", description="Entry title")
    url: str = Field(..., description="Entry URL, unique within the feed")
    published: datetime = Field(..., description="Publication time")
    created: datetime = Field(..., description="Ingestion time")
    word_count: int = Field(default=0, ge=0, description="Words in the article body")
    feed_title: str = Field(default="")
    feed_favicon_url: str = Field(default="")
    feed_owned_by: int = Field(default=SHARED_FEED_OWNER)

    @field_validator('published', 'created', mode='before')
    @classmethod
    def parse_timestamps(cls, v):
        return from_db_timestamp(v)

    @property
    def url_host(self) -> str:
        return _host(self.url)

    @property
    def reading_time(self) -> str:
        """Human readable reading time estimate."""
        if self.word_count == 0:
            return ""
        minutes = self.word_count // WORDS_PER_MINUTE
        if minutes == 0:
            return "less than 1 minute"
        if minutes > 20:
            return "more than 20 minutes"
        if minutes == 1:
            return "1 minute"
        return f"{minutes} minutes"

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "Entry":
        data = dict(row)
        data["id"] = data.pop("entry_id")
        return cls(**data)

    def __str__(self) -> str:
        return f"Entry({self.title[:50]})"

"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedSync tests.

- Temporary file databases with the full schema
- In-process stand-ins for the Redis client and the HTTP session
- Sample RSS, Atom and JSON Feed documents
"""

import pytest
import tempfile
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import requests
from requests.structures import CaseInsensitiveDict

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "feedsync_tests"
os.environ["FEEDSYNC_DATABASE__PATH"] = str(_TEST_DIR / "feedsync_test.db")
os.environ["FEEDSYNC_LOGGING__FILE_PATH"] = ""
os.environ["FEEDSYNC_DEBUG"] = "true"


# ============================================================================
# Settings and Database Fixtures
# ============================================================================


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a per-test database, enrichment disabled."""
    from feedsync.config.settings import FeedSyncSettings

    return FeedSyncSettings(
        database={"path": str(tmp_path / "feedsync.db"), "pool_size": 2},
        logging={"file_path": None, "console_logging": False},
        limits={"max_retries": 0, "request_timeout": 5},
    )


@pytest.fixture
def db_connection(test_settings):
    """Connection pool over a freshly created schema."""
    from feedsync.database.schema import DatabaseSchema
    from feedsync.database.connection import DatabaseConnection

    DatabaseSchema(test_settings.database.path).create_tables()
    db = DatabaseConnection(test_settings.database.path, pool_size=2)

    yield db

    db.close_all_connections()


# ============================================================================
# Redis and HTTP Stand-ins
# ============================================================================


class FakeRedis:
    """Minimal Redis client honouring ``SET key value NX EX ttl``."""

    def __init__(self):
        self.store = {}
        self.calls = []

    def set(self, key, value, ex=None, nx=False):
        self.calls.append((key, value, ex, nx))
        if nx and key in self.store:
            return None
        self.store[key] = (value, ex)
        return True

    def expire_all(self):
        """Simulate every lock reaching its TTL."""
        self.store.clear()


class FakeResponse:
    """Streamed HTTP response with a byte body."""

    def __init__(self, content=b"", status_code=200, headers=None):
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = content
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self.closed = False
        self.bytes_read = 0

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            chunk = self.content[start:start + chunk_size]
            self.bytes_read += len(chunk)
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    """HTTP session serving canned responses by URL.

    A route value may be a ``FakeResponse``, an exception instance to raise,
    or a callable ``(url, params, headers) -> FakeResponse``. Unknown URLs
    fail with a connection error.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None, stream=False, **kwargs):
        self.requests.append({"url": url, "params": params, "headers": headers})
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(url, params, headers)
        return route

    def requested_urls(self):
        return [request["url"] for request in self.requests]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_session():
    return FakeSession()


# ============================================================================
# Sample Feed Documents
# ============================================================================

FEED_URL = "https://blog.example.com/feed.xml"

T1 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)

SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://blog.example.com/</link>
    <description>Posts about examples</description>
    <item>
      <title>Second post</title>
      <link>https://blog.example.com/posts/2</link>
      <pubDate>Sat, 02 Mar 2024 09:00:00 GMT</pubDate>
    </item>
    <item>
      <title>First post</title>
      <link>//blog.example.com/posts/1</link>
      <pubDate>Fri, 01 Mar 2024 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <link href="https://atom.example.org/"/>
  <updated>2024-03-02T09:00:00Z</updated>
  <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
  <entry>
    <title>Updated only</title>
    <link href="https://atom.example.org/entries/1"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2024-03-02T09:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_JSON_FEED = """{
  "version": "https://jsonfeed.org/version/1.1",
  "title": "JSON Example",
  "home_page_url": "https://json.example.net/",
  "items": [
    {"id": "2", "url": "https://json.example.net/2", "title": "Two",
     "date_published": "2024-03-02T09:00:00Z"},
    {"id": "1", "url": "https://json.example.net/1", "title": "One",
     "date_published": "2024-03-01T10:00:00+01:00"}
  ]
}"""


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS


@pytest.fixture
def rss_session():
    """Session serving the sample RSS feed and nothing else."""
    return FakeSession({FEED_URL: FakeResponse(SAMPLE_RSS, headers={"Content-Type": "application/rss+xml"})})


@pytest.fixture
def sample_atom():
    return SAMPLE_ATOM


@pytest.fixture
def sample_json_feed():
    return SAMPLE_JSON_FEED


@pytest.fixture
def feed_url():
    return FEED_URL


@pytest.fixture
def publish_times():
    """Publish times of the two sample RSS items, oldest first."""
    return T1, T2


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def make_session():
    return FakeSession

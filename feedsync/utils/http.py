"""
HTTP Session Utilities
======================

Shared requests session configuration and size-bounded body reading for every
outbound call the engine makes (feeds, favicon lookups, article metadata).
"""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config.settings import FeedSyncSettings, get_settings

CHUNK_SIZE = 8192


def build_session(
    settings: Optional[FeedSyncSettings] = None,
    accept: str = "*/*",
) -> requests.Session:
    """Create a requests session with retry strategy and identifying headers.

    Args:
        settings: Application settings (global settings when omitted)
        accept: Value of the Accept header

    Returns:
        Configured session
    """
    settings = settings or get_settings()

    session = requests.Session()
    retry_strategy = Retry(
        total=settings.limits.max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update(
        {
            "User-Agent": settings.user_agent,
            "Accept": accept,
        }
    )
    return session


def read_limited(response: requests.Response, limit: int) -> bytes:
    """Read at most ``limit`` bytes of a streamed response body.

    The remainder of the body is never downloaded; the result is silently
    truncated the way a limited reader would be.
    """
    buffer = bytearray()
    for chunk in response.iter_content(chunk_size=min(CHUNK_SIZE, limit)):
        if not chunk:
            continue
        buffer.extend(chunk)
        if len(buffer) >= limit:
            break
    return bytes(buffer[:limit])

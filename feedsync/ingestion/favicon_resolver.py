"""
Favicon Resolver
================

Best-effort discovery of a feed's icon. Each stage runs only when the previous
one produced nothing:

1. ``<link rel="...icon...">`` in the HTML of the feed's site (or first item)
2. ``/favicon.ico`` at the site origin, accepted only if it sniffs as an image
3. a domain-to-favicon lookup URL, built without any request

Results are scheme-relative (``//host/path``).
"""

from typing import Optional, List
from urllib.parse import urljoin, urlparse, urlunparse

import requests
from bs4 import BeautifulSoup

from ..config.settings import FeedSyncSettings, get_settings
from ..utils.exceptions import FaviconUnresolvable
from ..utils.http import build_session, read_limited
from ..utils.logging import get_logger_for_component
from .feed_parser import FetchedFeed

FALLBACK_LOOKUP = "//www.google.com/s2/favicons?domain_url="

IMAGE_SIGNATURES = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
]


def sniff_image_type(data: bytes) -> Optional[str]:
    """Return the image content type recognized from leading bytes."""
    for signature, content_type in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return content_type
    return None


def favicon_from_html(html) -> str:
    """Return the href of the first ``<link>`` whose rel mentions "icon"."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all("link"):
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = [rel]
        if "icon" in " ".join(rel):
            return tag.get("href") or ""
    return ""


def _scheme_relative(url: str) -> str:
    parsed = urlparse(url)
    return urlunparse(parsed._replace(scheme=""))


def _with_default_scheme(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.scheme:
        if url.startswith("//"):
            return "http:" + url
        return "http://" + url
    return url


class FaviconResolver:
    """Heuristic favicon discovery for fetched feeds."""

    def __init__(
        self,
        settings: Optional[FeedSyncSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings()
        self.session = session or build_session(self.settings)
        self.logger = get_logger_for_component("favicon_resolver")

    def resolve(self, feed: FetchedFeed) -> str:
        """Resolve a favicon URL for a feed.

        Args:
            feed: Fetched feed; its site link and first item link are tried

        Returns:
            Scheme-relative favicon URL

        Raises:
            FaviconUnresolvable: If no candidate page has a usable host
        """
        candidates = self._candidate_pages(feed)
        if not candidates:
            raise FaviconUnresolvable(
                f"Feed {feed.title!r} has no link to derive an icon from"
            )

        page_url = candidates[0]
        html = None
        for candidate in candidates:
            html = self._fetch_page(candidate)
            if html is not None:
                page_url = candidate
                break

        if html:
            icon_url = self._declared_icon(page_url, favicon_from_html(html))
            if icon_url:
                self.logger.debug(f"Favicon declared by {page_url}: {icon_url}")
                return _scheme_relative(icon_url)

        origin = urlparse(page_url)
        guess = urlunparse((origin.scheme, origin.netloc, "/favicon.ico", "", "", ""))
        if self._image_exists(guess):
            return _scheme_relative(guess)

        self.logger.debug(f"Falling back to lookup service for {origin.netloc}")
        return FALLBACK_LOOKUP + f"{origin.scheme}://{origin.netloc}"

    def _declared_icon(self, page_url: str, href: str) -> str:
        """Resolve a declared icon href against its page, empty if unusable."""
        if not href:
            return ""
        try:
            icon_url = urljoin(page_url, href.strip())
            path = urlparse(icon_url).path
        except ValueError as e:
            self.logger.debug(f"Ignoring malformed icon href {href!r} on {page_url}: {e}")
            return ""
        if path in ("", "/"):
            return ""
        return icon_url

    def _candidate_pages(self, feed: FetchedFeed) -> List[str]:
        candidates = []
        for link in (feed.link, feed.first_item_link):
            if not link:
                continue
            try:
                url = _with_default_scheme(link)
                host = urlparse(url).netloc
            except ValueError as e:
                self.logger.debug(f"Skipping malformed link {link!r}: {e}")
                continue
            if host and url not in candidates:
                candidates.append(url)
        return candidates

    def _fetch_page(self, url: str) -> Optional[bytes]:
        try:
            response = self.session.get(
                url, timeout=self.settings.limits.request_timeout, stream=True
            )
            try:
                return read_limited(response, self.settings.limits.max_favicon_page_bytes)
            finally:
                response.close()
        except requests.RequestException as e:
            self.logger.debug(f"Cannot fetch {url} for favicon discovery: {e}")
            return None

    def _image_exists(self, url: str) -> bool:
        """Check that the URL serves something that starts like an image."""
        try:
            response = self.session.get(
                url, timeout=self.settings.limits.request_timeout, stream=True
            )
            try:
                if response.status_code != 200:
                    return False
                head = read_limited(response, self.settings.limits.favicon_sniff_bytes)
            finally:
                response.close()
        except requests.RequestException as e:
            self.logger.debug(f"Favicon guess {url} unreachable: {e}")
            return False

        content_type = sniff_image_type(head)
        if content_type is None:
            self.logger.info(f"Invalid favicon image at {url}")
            return False
        return True

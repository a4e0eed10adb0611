"""
FeedSync Input Validators
=========================

URL validation and normalization for subscriptions, bookmarks, and links
found inside feed documents.
"""

import ipaddress
from urllib.parse import urlparse, urlunparse

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and sanitization utilities."""

    ALLOWED_SCHEMES = {'http', 'https'}

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a URL an account wants to subscribe to.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        parsed = cls._parse_http_url(url)

        if cls._is_local_host(parsed.hostname):
            raise ValidationError(
                "URL points to a local or private network host",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or '/',
            fragment=''
        ))

    @classmethod
    def validate_bookmark_url(cls, url: str) -> str:
        """Validate a bookmarked page URL; it is stored exactly as given."""
        cls._parse_http_url(url)
        return url.strip()

    @classmethod
    def _parse_http_url(cls, url: str):
        if not url or not isinstance(url, str) or not url.strip():
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url"
            )

        try:
            parsed = urlparse(url.strip())
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {str(e)}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            ) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if not parsed.netloc or not parsed.hostname:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        return parsed

    @staticmethod
    def _is_local_host(hostname: str) -> bool:
        """Whether a hostname names this machine or a non-public address."""
        host = (hostname or "").lower().rstrip(".")
        if host == "localhost" or host.endswith(".localhost"):
            return True

        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return False

        return (
            address.is_private
            or address.is_loopback
            or address.is_link_local
            or address.is_reserved
            or address.is_unspecified
        )

    @staticmethod
    def normalize_link(link: str) -> str:
        """Make protocol-relative links (``//host/path``) explicit https."""
        link = (link or "").strip()
        if link.startswith("//"):
            return "https:" + link
        return link

"""
Article Enricher
================

Client for the external article metadata service. The service extracts the
plain-text body of an article; the engine only keeps its word count.
"""

import json
from datetime import datetime
from typing import List, Optional

import requests
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from ..config.settings import FeedSyncSettings, get_settings
from ..utils.exceptions import EnrichmentError, ErrorCode
from ..utils.http import build_session, read_limited
from ..utils.logging import get_logger_for_component

SECRET_HEADER = "Api-Secret"
MAX_ERROR_BODY_BYTES = 10_000


class ArticleMetadata(BaseModel):
    """Metadata document returned by the service."""
    canonical: str = ""
    image: str = Field(default="", alias="img")
    title: str = ""
    authors: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    text: str = ""
    published: Optional[datetime] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator('canonical', 'image', 'title', 'summary', 'text', mode='before')
    @classmethod
    def null_to_empty(cls, v):
        return "" if v is None else v

    @field_validator('authors', 'keywords', 'tags', mode='before')
    @classmethod
    def null_to_list(cls, v):
        return [] if v is None else v

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class ArticleEnricher:
    """Authenticated client of the article metadata service."""

    def __init__(
        self,
        api_url: str,
        api_secret: str,
        settings: Optional[FeedSyncSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            api_url: Service base URL
            api_secret: Shared secret sent with every request
            settings: Application settings
            session: HTTP session to use
        """
        self.api_url = api_url.rstrip("/") + "/"
        self.api_secret = api_secret
        self.settings = settings or get_settings()
        self.session = session or build_session(self.settings, accept="application/json")
        self.logger = get_logger_for_component("article_enricher")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[FeedSyncSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> Optional["ArticleEnricher"]:
        """Build the client, or return None when no service is configured."""
        settings = settings or get_settings()
        if not settings.enrichment.is_enabled():
            return None
        return cls(
            str(settings.enrichment.api_url),
            settings.enrichment.api_secret,
            settings=settings,
            session=session,
        )

    def article(self, article_url: str) -> ArticleMetadata:
        """Fetch metadata for an article.

        Raises:
            EnrichmentError: On transport failure, non-200 status or a body
                that does not decode
        """
        try:
            response = self.session.get(
                self.api_url,
                params={"url": article_url},
                headers={SECRET_HEADER: self.api_secret},
                timeout=self.settings.limits.request_timeout,
                stream=True,
            )
        except requests.Timeout as e:
            raise EnrichmentError(
                f"Metadata request timed out: {e}",
                article_url=article_url,
                error_code=ErrorCode.EXTERNAL_SERVICE_TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise EnrichmentError(
                f"Metadata request failed: {e}",
                article_url=article_url,
                error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            ) from e

        try:
            if response.status_code != 200:
                body = read_limited(response, MAX_ERROR_BODY_BYTES).decode("utf-8", "replace")
                raise EnrichmentError(
                    f"Invalid response: {response.status_code} {body}",
                    article_url=article_url,
                    status_code=response.status_code,
                    response_body=body,
                    error_code=ErrorCode.EXTERNAL_SERVICE_BAD_RESPONSE,
                )
            raw = read_limited(response, self.settings.limits.max_article_bytes)
        except requests.RequestException as e:
            raise EnrichmentError(
                f"Metadata response interrupted: {e}",
                article_url=article_url,
                error_code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            ) from e
        finally:
            response.close()

        try:
            return ArticleMetadata.model_validate(json.loads(raw))
        except (ValueError, PydanticValidationError) as e:
            raise EnrichmentError(
                f"Cannot decode metadata body: {e}",
                article_url=article_url,
                error_code=ErrorCode.EXTERNAL_SERVICE_BAD_RESPONSE,
            ) from e

    def enrich(self, article_url: str) -> int:
        """Return the word count of an article's extracted text."""
        metadata = self.article(article_url)
        self.logger.debug(f"{article_url} has {metadata.word_count} words")
        return metadata.word_count

"""
FeedSync Custom Exceptions
==========================

Exception hierarchy for the feed synchronization engine with error codes,
context information, and user-friendly error messages.

A held update lock is reported through ``UpdateOutcome.LOCK_HELD``, not raised.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"

    # Persistence errors (D001-D099)
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Feed ingestion errors (F001-F099)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_NOT_FOUND = "F006"
    FAVICON_UNRESOLVABLE = "F010"

    # Lock errors (K001-K099)
    LOCK_UNAVAILABLE = "K001"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_FEED_UNREACHABLE = "V005"

    # Resource management errors (R001-R099)
    RESOURCE_NOT_FOUND = "R002"

    # External service errors (E001-E099)
    EXTERNAL_SERVICE_ERROR = "E001"
    EXTERNAL_SERVICE_UNAVAILABLE = "E002"
    EXTERNAL_SERVICE_TIMEOUT = "E003"
    EXTERNAL_SERVICE_BAD_RESPONSE = "E004"

    # System errors (S001-S099)
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


class FeedSyncError(Exception):
    """Base exception for all FeedSync errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedSync error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _passthrough(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class ConfigurationError(FeedSyncError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


class PersistenceError(FeedSyncError):
    """Transactional write or read failure against the relational store."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize persistence error.

        Args:
            message: Error message
            query: SQL statement that caused the error
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_ERROR),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class FeedError(FeedSyncError):
    """Feed ingestion and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Feed processing failed: {message}"
            ),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class FetchError(FeedError):
    """Network or parse failure while fetching a feed document."""

    pass


class FaviconUnresolvable(FeedError):
    """The favicon heuristic chain could not even form a candidate URL."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FAVICON_UNRESOLVABLE)
        kwargs.setdefault("user_message", "Feed icon could not be resolved")
        super().__init__(message, **kwargs)


class EnrichmentError(FeedSyncError):
    """Article metadata service call failed."""

    def __init__(
        self,
        message: str,
        article_url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        """Initialize enrichment error.

        Args:
            message: Error message
            article_url: Article URL that was being enriched
            status_code: HTTP status returned by the metadata service
            response_body: Truncated response body for diagnostics
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if article_url:
            context["article_url"] = article_url
        if status_code is not None:
            context["status_code"] = status_code
        if response_body:
            context["response_body"] = response_body

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.EXTERNAL_SERVICE_ERROR),
            context=context,
            user_message=kwargs.get("user_message", "Article metadata unavailable"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )
        self.status_code = status_code
        self.response_body = response_body


class LockError(FeedSyncError):
    """The shared lock store could not be reached."""

    def __init__(self, message: str, lock_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if lock_key:
            context["lock_key"] = lock_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.LOCK_UNAVAILABLE),
            context=context,
            user_message=kwargs.get("user_message", "Update lock unavailable"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class ValidationError(FeedSyncError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedSyncError:
    """Convert generic exceptions to FeedSync exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        FeedSync exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, FeedSyncError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, (ConnectionError, TimeoutError)):
        error = FeedSyncError(
            message=f"Network error during {operation}: {str(exception)}",
            error_code=ErrorCode.FEED_NETWORK_ERROR,
            context=context,
            user_message="Network connection failed",
            recoverable=True,
        )

    elif isinstance(exception, PermissionError):
        error = FeedSyncError(
            message=f"Permission denied during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_PERMISSION_DENIED,
            context=context,
            user_message="Access denied",
            recoverable=False,
        )

    elif isinstance(exception, MemoryError):
        error = FeedSyncError(
            message=f"Memory exhausted during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_MEMORY_ERROR,
            context=context,
            user_message="System resources exhausted",
            recoverable=True,
        )

    else:
        error = FeedSyncError(
            message=f"Unexpected error during {operation}: {str(exception)}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error

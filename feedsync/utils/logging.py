"""
FeedSync Logging Configuration
==============================

Structured logging setup with proper formatting, levels, and output handling
for both development and production environments.
"""

import logging
import logging.handlers
import sys
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional


_RESERVED_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RESERVED_RECORD_FIELDS
        }

        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors for console output."""
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        # Feed context tag
        feed_id = getattr(record, "feed_id", None)
        feed_tag = f"[feed {feed_id}] " if feed_id is not None else ""

        formatted = (
            f"{color}[{timestamp}] {record.levelname:8}{reset} "
            f"{record.name}:{record.funcName}:{record.lineno} - "
            f"{feed_tag}{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logger(
    name: str = "feedsync",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Set up logger with appropriate handlers and formatting.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        console: Whether to log to console
        structured: Whether to use structured JSON logging
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)

        if structured:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ColoredConsoleFormatter())

        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )

        # Always use structured format for file logging
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Custom logger adapter for adding context to log messages."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any]):
        super().__init__(logger, extra)

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        """Process log message with extra context."""
        if "extra" in kwargs:
            kwargs["extra"].update(self.extra)
        else:
            kwargs["extra"] = self.extra.copy()

        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    feed_id: Optional[int] = None,
    account_id: Optional[int] = None,
) -> LoggerAdapter:
    """Get a logger adapter with component-specific context.

    Args:
        component_name: Name of the component (e.g., 'feed_fetcher', 'update_coordinator')
        feed_id: Associated feed ID (optional)
        account_id: Associated account ID (optional)

    Returns:
        Logger adapter with context
    """
    base_logger = logging.getLogger(f"feedsync.{component_name}")

    extra_context = {
        "component": component_name,
    }

    if feed_id is not None:
        extra_context["feed_id"] = feed_id
    if account_id is not None:
        extra_context["account_id"] = account_id

    return LoggerAdapter(base_logger, extra_context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/feedsync.log",
    enable_console: bool = True,
    structured_logging: bool = False,
) -> None:
    """Configure application-wide logging settings.

    Args:
        log_level: Global log level
        log_file: Path to main log file
        enable_console: Whether to enable console logging
        structured_logging: Whether to use JSON structured logging
    """
    setup_logger(
        name="feedsync",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
    )

    # Configure third-party library logging levels
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("feedparser").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


class PerformanceLogger:
    """Context manager for performance logging."""

    def __init__(self, logger: logging.Logger, operation: str, **kwargs):
        """Initialize performance logger.

        Args:
            logger: Logger instance
            operation: Operation being timed
            **kwargs: Additional context for the operation
        """
        self.logger = logger
        self.operation = operation
        self.context = kwargs
        self.start_time = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = datetime.now(timezone.utc)
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time:
            duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()

            context = {
                **self.context,
                "duration_seconds": duration,
                "success": exc_type is None,
            }

            if exc_type:
                self.logger.error(
                    f"Failed {self.operation} in {duration:.3f}s", extra=context
                )
            else:
                self.logger.info(
                    f"Completed {self.operation} in {duration:.3f}s", extra=context
                )

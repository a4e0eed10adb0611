"""
FeedSync Configuration System
=============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, AnyHttpUrl
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/feedsync.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedsync.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class LimitsSettings(BaseModel):
    """Network timeouts and response size ceilings."""
    request_timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, le=10, description="Retries for idempotent HTTP requests")
    max_feed_bytes: int = Field(default=1_000_000, ge=1024, description="Feed document size ceiling")
    max_favicon_page_bytes: int = Field(default=200_000, ge=1024, description="HTML read while looking for icons")
    favicon_sniff_bytes: int = Field(default=128, ge=8, le=4096, description="Bytes inspected to recognize an image")
    max_article_bytes: int = Field(default=1_000_000, ge=1024, description="Article metadata response ceiling")


class LockSettings(BaseModel):
    """Distributed update lock configuration."""
    redis_url: str = Field(default="redis://localhost:6379/0", description="Shared fast store URL")
    ttl_seconds: int = Field(default=30, ge=1, le=3600, description="Update lock time-to-live")
    key_prefix: str = Field(default="feedsync:update", description="Lock key namespace")

    @field_validator('redis_url')
    @classmethod
    def validate_redis_url(cls, v):
        """Ensure the lock store URL uses a redis scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("redis_url must start with redis://, rediss:// or unix://")
        return v


class EnrichmentSettings(BaseModel):
    """Article metadata service configuration."""
    api_url: Optional[AnyHttpUrl] = Field(default=None, description="Article metadata service base URL")
    api_secret: str = Field(default="", description="Shared secret sent in the Api-Secret header")

    def is_enabled(self) -> bool:
        """Check if entries should be enriched with word counts."""
        return self.api_url is not None


class SchedulerSettings(BaseModel):
    """Stale feed selection and dispatch configuration."""
    stale_after_minutes: int = Field(default=120, ge=1, description="Age after which a feed is refreshed")
    batch_limit: int = Field(default=500, ge=1, le=500, description="Maximum feeds selected per sweep")
    max_workers: int = Field(default=8, ge=1, le=64, description="Concurrent feed updates per sweep")


class FeedSyncSettings(BaseSettings):
    """Main application settings."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    lock: LockSettings = Field(default_factory=LockSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    app_name: str = Field(default="FeedSync", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDSYNC_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        if self.enrichment.is_enabled() and not self.enrichment.api_secret:
            errors.append("Article metadata service configured without api_secret")

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value

    @property
    def user_agent(self) -> str:
        return f"{self.app_name}/{self.version}"


def load_settings() -> FeedSyncSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Pydantic resolves environment variables, then .env values,
        # then Field defaults
        settings = FeedSyncSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[FeedSyncSettings] = None


def get_settings(reload: bool = False) -> FeedSyncSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings

"""
Foundation Component Tests
==========================

Tests for configuration, exceptions, logging, schema, models and validators.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from feedsync.config.settings import FeedSyncSettings, LockSettings
from feedsync.database.connection import DatabaseConnection
from feedsync.database.models import (
    EPOCH,
    Entry,
    Feed,
    from_db_timestamp,
    to_db_timestamp,
)
from feedsync.database.schema import DatabaseSchema
from feedsync.utils.exceptions import (
    ConfigurationError,
    EnrichmentError,
    ErrorCode,
    FeedSyncError,
    FetchError,
    PersistenceError,
    ValidationError,
    handle_exception,
)
from feedsync.utils.logging import (
    ColoredConsoleFormatter,
    PerformanceLogger,
    StructuredFormatter,
    get_logger_for_component,
    setup_logger,
)
from feedsync.utils.validators import URLValidator


class TestSettings:
    """Configuration loading and validation."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FEEDSYNC_DEBUG", raising=False)
        settings = FeedSyncSettings(_env_file=None)

        assert settings.lock.ttl_seconds == 30
        assert settings.scheduler.stale_after_minutes == 120
        assert settings.scheduler.batch_limit == 500
        assert settings.limits.max_feed_bytes == 1_000_000
        assert settings.enrichment.is_enabled() is False
        assert settings.user_agent == "FeedSync/1.0.0"
        assert settings.get_effective_log_level() == "INFO"

    def test_nested_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FEEDSYNC_LOCK__TTL_SECONDS", "45")
        monkeypatch.setenv("FEEDSYNC_ENRICHMENT__API_URL", "https://meta.example.com")
        monkeypatch.setenv("FEEDSYNC_ENRICHMENT__API_SECRET", "s3cret")

        settings = FeedSyncSettings(_env_file=None)

        assert settings.lock.ttl_seconds == 45
        assert settings.enrichment.is_enabled()

    def test_debug_forces_debug_level(self):
        assert FeedSyncSettings(debug=True, _env_file=None).get_effective_log_level() == "DEBUG"

    def test_batch_limit_cannot_exceed_500(self):
        with pytest.raises(PydanticValidationError):
            FeedSyncSettings(scheduler={"batch_limit": 501}, _env_file=None)

    def test_lock_store_url_scheme(self):
        with pytest.raises(PydanticValidationError):
            LockSettings(redis_url="http://cache.example.com")

    def test_enrichment_without_secret_is_invalid(self, tmp_path):
        settings = FeedSyncSettings(
            database={"path": str(tmp_path / "db.sqlite")},
            logging={"file_path": None},
            enrichment={"api_url": "https://meta.example.com"},
            _env_file=None,
        )

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_configuration()

        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID


class TestExceptions:
    """Exception hierarchy and handling helpers."""

    def test_error_string_carries_code(self):
        error = FetchError("HTTP 404", feed_url="https://a.example.com/", error_code=ErrorCode.FEED_NOT_FOUND)

        assert str(error) == "[F006] HTTP 404"
        assert error.context["feed_url"] == "https://a.example.com/"
        assert isinstance(error, FeedSyncError)

    def test_to_dict(self):
        error = EnrichmentError("bad", article_url="https://a.example.com/1", status_code=500, response_body="x")

        data = error.to_dict()

        assert data["error_type"] == "EnrichmentError"
        assert data["error_code"] == ErrorCode.EXTERNAL_SERVICE_ERROR.value
        assert data["context"]["article_url"] == "https://a.example.com/1"

    def test_validation_error_is_not_recoverable(self):
        error = ValidationError("missing", field_name="url")

        assert error.recoverable is False
        assert error.context == {"field_name": "url"}

    def test_handle_exception_passes_through_feedsync_errors(self):
        error = FetchError("down")

        assert handle_exception(error, logging.getLogger("test"), "fetch") is error

    @pytest.mark.parametrize(
        "exception, code",
        [
            (ConnectionError("reset"), ErrorCode.FEED_NETWORK_ERROR),
            (PermissionError("denied"), ErrorCode.SYSTEM_PERMISSION_DENIED),
            (MemoryError(), ErrorCode.SYSTEM_MEMORY_ERROR),
            (RuntimeError("boom"), None),
        ],
    )
    def test_handle_exception_wraps_generic_errors(self, exception, code):
        wrapped = handle_exception(exception, logging.getLogger("test"), "refresh", {"feed_id": 3})

        assert isinstance(wrapped, FeedSyncError)
        assert wrapped.error_code == code
        assert wrapped.context["feed_id"] == 3
        assert wrapped.context["original_exception_type"] == type(exception).__name__


class TestLogging:
    """Logging configuration helpers."""

    def _record(self, **extra):
        record = logging.LogRecord("feedsync.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_formatter_includes_extra_fields(self):
        output = json.loads(StructuredFormatter().format(self._record(feed_id=4, component="fetcher")))

        assert output["message"] == "hello world"
        assert output["level"] == "INFO"
        assert output["extra"] == {"feed_id": 4, "component": "fetcher"}

    def test_console_formatter_tags_feed(self):
        output = ColoredConsoleFormatter().format(self._record(feed_id=4))

        assert "[feed 4] hello world" in output

    def test_component_logger_context(self):
        adapter = get_logger_for_component("update_coordinator", feed_id=9, account_id=2)

        assert adapter.logger.name == "feedsync.update_coordinator"
        assert adapter.extra == {"component": "update_coordinator", "feed_id": 9, "account_id": 2}

    def test_setup_logger_writes_structured_file(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        logger = setup_logger("feedsync.test_file", level="DEBUG", log_file=str(log_file), console=False)

        logger.info("written", extra={"feed_id": 1})
        for handler in logger.handlers:
            handler.flush()
            handler.close()

        line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert line["message"] == "written"
        assert line["extra"]["feed_id"] == 1

    def test_performance_logger(self, caplog):
        logger = logging.getLogger("feedsync.test_perf")

        with caplog.at_level(logging.DEBUG, logger="feedsync.test_perf"):
            with PerformanceLogger(logger, "feed update", feed_id=5):
                pass
            with pytest.raises(RuntimeError):
                with PerformanceLogger(logger, "feed update", feed_id=6):
                    raise RuntimeError("boom")

        messages = [record.getMessage() for record in caplog.records]
        assert any(m.startswith("Completed feed update") for m in messages)
        assert any(m.startswith("Failed feed update") for m in messages)


class TestSchema:
    """Database schema management."""

    def test_create_and_verify(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "db" / "feedsync.db"))

        schema.create_tables()
        schema.create_tables()

        assert schema.verify_schema() is True

    def test_drop_tables_fails_verification(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "feedsync.db"))
        schema.create_tables()

        schema.drop_tables()

        assert schema.verify_schema() is False

    def test_entries_require_existing_feed(self, db_connection):
        with pytest.raises(sqlite3.IntegrityError):
            with db_connection.transaction() as conn:
                conn.execute(
                    "INSERT INTO entries (feed_id, title, url, published, created) VALUES (99, 't', 'u', ?, ?)",
                    (to_db_timestamp(EPOCH), to_db_timestamp(EPOCH)),
                )

    def test_database_info(self, db_connection):
        info = db_connection.get_database_info()

        assert info["table_counts"] == {"feeds": 0, "subscriptions": 0, "entries": 0}
        assert info["database_size_mb"] > 0

    def test_transaction_rolls_back_on_error(self, db_connection):
        with pytest.raises(sqlite3.IntegrityError):
            with db_connection.transaction() as conn:
                conn.execute("INSERT INTO feeds (url, title, updated) VALUES ('https://a.example.com/', 'A', ?)",
                             (to_db_timestamp(EPOCH),))
                conn.execute("INSERT INTO feeds (url, title, updated) VALUES ('https://a.example.com/', 'B', ?)",
                             (to_db_timestamp(EPOCH),))

        assert db_connection.execute_one("SELECT COUNT(*) FROM feeds")[0] == 0

    def test_locked_database_cannot_begin_transaction(self, db_connection, test_settings):
        impatient_db = DatabaseConnection(test_settings.database.path, pool_size=1, busy_timeout=0.1)
        writer = sqlite3.connect(test_settings.database.path, isolation_level=None)
        writer.execute("BEGIN IMMEDIATE")
        try:
            with pytest.raises(PersistenceError) as exc_info:
                with impatient_db.transaction() as conn:
                    conn.execute("SELECT 1")
        finally:
            writer.rollback()
            writer.close()

        assert exc_info.value.error_code == ErrorCode.DATABASE_TRANSACTION
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

        with impatient_db.transaction() as conn:
            conn.execute("SELECT 1")
        impatient_db.close_all_connections()


class TestModels:
    """Model conversions and derived values."""

    def test_timestamp_codec_orders_lexically(self):
        early = datetime(2024, 1, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
        late = early + timedelta(microseconds=1)

        assert to_db_timestamp(early) == "2024-01-02T03:04:05.000006Z"
        assert to_db_timestamp(early) < to_db_timestamp(late)
        assert from_db_timestamp(to_db_timestamp(early)) == early

    def test_offset_times_are_stored_in_utc(self):
        paris = timezone(timedelta(hours=1))

        assert to_db_timestamp(datetime(2024, 3, 1, 10, 0, tzinfo=paris)) == "2024-03-01T09:00:00.000000Z"
        assert to_db_timestamp(datetime(2024, 3, 1, 9, 0)) == "2024-03-01T09:00:00.000000Z"

    @pytest.mark.parametrize(
        "words, expected",
        [
            (0, ""),
            (150, "less than 1 minute"),
            (200, "1 minute"),
            (1000, "5 minutes"),
            (5000, "more than 20 minutes"),
        ],
    )
    def test_reading_time(self, words, expected):
        entry = Entry(
            id=1, feed_id=1, url="https://a.example.com/1",
            published=EPOCH, created=EPOCH, word_count=words,
        )

        assert entry.reading_time == expected

    def test_feed_from_row(self):
        feed = Feed.from_db_row({
            "feed_id": 3,
            "url": "https://a.example.com/feed",
            "title": "A",
            "favicon_url": "",
            "updated": "2024-03-01T09:00:00.000000Z",
            "owned_by": 0,
            "autorefresh": 1,
        })

        assert feed.id == 3
        assert feed.updated == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert feed.autorefresh is True
        assert str(feed) == "Feed(A)"


class TestURLValidator:
    """URL validation and normalization."""

    def test_feed_url_is_normalized(self):
        assert (
            URLValidator.validate_feed_url("  HTTPS://Blog.Example.COM#top ")
            == "https://blog.example.com/"
        )

    def test_feed_url_keeps_path_and_query(self):
        url = "https://example.com/Feed.xml?format=rss"

        assert URLValidator.validate_feed_url(url) == url

    @pytest.mark.parametrize(
        "url, code",
        [
            ("", ErrorCode.VALIDATION_REQUIRED_FIELD),
            ("mailto:a@example.com", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://127.0.0.1/feed", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://10.0.0.5/feed", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://LOCALHOST.:8080/feed", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://api.localhost/feed", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://[::1]/feed", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://169.254.169.254/latest", ErrorCode.VALIDATION_INVALID_FORMAT),
            ("http://0.0.0.0/feed", ErrorCode.VALIDATION_INVALID_FORMAT),
        ],
    )
    def test_invalid_feed_urls(self, url, code):
        with pytest.raises(ValidationError) as exc_info:
            URLValidator.validate_feed_url(url)

        assert exc_info.value.error_code == code

    @pytest.mark.parametrize(
        "url",
        [
            "https://blog.example.com/tags/localhost-tips/feed.xml",
            "https://releases.example.com/v110.2.3.4/feed.xml",
            "https://news.example.com/feed?format=data:rss&mirror=192.168.0.1",
            "https://localhost.example.com/feed",
            "http://93.184.216.34/feed",
        ],
    )
    def test_public_hosts_pass_whatever_the_path(self, url):
        assert URLValidator.validate_feed_url(url) == url

    def test_bookmark_url_is_stored_as_given(self):
        url = "https://Example.com/Article?id=1#section"

        assert URLValidator.validate_bookmark_url(f" {url} ") == url

    @pytest.mark.parametrize(
        "link, expected",
        [
            ("//cdn.example.com/a", "https://cdn.example.com/a"),
            ("http://example.com/a", "http://example.com/a"),
            (None, ""),
            ("  ", ""),
        ],
    )
    def test_normalize_link(self, link, expected):
        assert URLValidator.normalize_link(link) == expected

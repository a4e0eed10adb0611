#!/usr/bin/env python3
"""
FeedSync - Feed Synchronization Engine
======================================

Main application entry point with CLI interface for operating the engine.

Usage:
    python main.py --help                        # Show all commands
    python main.py check-config                  # Validate configuration
    python main.py init-db                       # Initialize database
    python main.py subscribe 1 URL --update-now  # Subscribe account 1 to a feed
    python main.py bookmark 1 URL --title TITLE  # Save a bookmark
    python main.py update FEED_ID                # Refresh one feed
    python main.py refresh-outdated              # Refresh every stale feed
    python main.py subscriptions 1               # List subscriptions of account 1
    python main.py entries 1                     # List newest entries of account 1
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedsync.config.settings import get_settings
from feedsync.database.schema import DatabaseSchema
from feedsync.database.connection import get_db_manager
from feedsync.processing.update_coordinator import UpdateCoordinator, UpdateOutcome
from feedsync.scheduler.refresh_scheduler import RefreshScheduler
from feedsync.services.subscription_manager import SubscriptionManager
from feedsync.storage.feed_repository import FeedRepository
from feedsync.ingestion.feed_fetcher import FeedFetcher
from feedsync.utils.logging import configure_application_logging
from feedsync.utils.exceptions import FeedSyncError

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedSync - feed synchronization engine."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        return

    try:
        settings = get_settings()
    except FeedSyncError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
    )


def _open_database(settings):
    DatabaseSchema(settings.database.path).create_tables()
    return get_db_manager(settings.database.path, settings.database.pool_size)


def _build_manager(settings, with_coordinator: bool = True) -> SubscriptionManager:
    db = _open_database(settings)
    coordinator = UpdateCoordinator.from_settings(db, settings) if with_coordinator else None
    return SubscriptionManager(db, FeedFetcher(settings), coordinator, settings)


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FeedSync Configuration[/bold blue]")

    try:
        settings = get_settings()

        table = Table(title="Configuration Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        checks = [
            ("Database", _check_database_config(settings)),
            ("Logging", _check_logging_config(settings)),
            ("Update Lock", _check_lock_config(settings)),
            ("Enrichment", _check_enrichment_config(settings)),
            ("Scheduler", _check_scheduler_config(settings)),
        ]

        all_passed = True
        for component, (passed, details) in checks:
            table.add_row(component, "✅ OK" if passed else "❌ FAIL", details)
            all_passed = all_passed and passed

        console.print(table)

        if all_passed:
            console.print("[bold green]✅ All configuration checks passed![/bold green]")
            sys.exit(0)
        else:
            console.print("[bold red]❌ Configuration validation failed[/bold red]")
            sys.exit(1)

    except FeedSyncError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing FeedSync Database[/bold blue]")

    settings = get_settings()
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if not schema.verify_schema():
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)

    console.print("[bold green]✅ Database initialized successfully![/bold green]")

    db_manager = get_db_manager(settings.database.path, settings.database.pool_size)
    info = db_manager.get_database_info()

    info_table = Table(title="Database Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")

    info_table.add_row("Database Path", settings.database.path)
    info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
    for table_name, count in info['table_counts'].items():
        info_table.add_row(f"Rows in {table_name}", str(count))

    console.print(info_table)


@cli.command()
@click.argument('account_id', type=int)
@click.argument('url')
@click.option('--update-now', is_flag=True, help='Refresh the feed right after subscribing')
def subscribe(account_id, url, update_now):
    """Subscribe ACCOUNT_ID to the feed at URL."""
    settings = get_settings()
    try:
        manager = _build_manager(settings, with_coordinator=update_now)
        feed_id = manager.subscribe(account_id, url, update_now=update_now)
    except FeedSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        logger.debug(f"Subscribe failed: {e}")
        sys.exit(1)

    console.print(f"[bold green]✅ Subscribed account {account_id} to feed {feed_id}[/bold green]")


@cli.command()
@click.argument('account_id', type=int)
@click.argument('url')
@click.option('--title', default='', help='Bookmark title (defaults to the URL)')
def bookmark(account_id, url, title):
    """Save URL into the bookmark feed of ACCOUNT_ID."""
    settings = get_settings()
    try:
        manager = _build_manager(settings, with_coordinator=False)
        feed_id = manager.bookmark(account_id, url, title)
    except FeedSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ Bookmarked in feed {feed_id}[/bold green]")


@cli.command()
@click.argument('account_id', type=int)
@click.argument('subscription_id', type=int)
def unsubscribe(account_id, subscription_id):
    """Remove SUBSCRIPTION_ID from ACCOUNT_ID."""
    settings = get_settings()
    try:
        manager = _build_manager(settings, with_coordinator=False)
        removed = manager.unsubscribe(subscription_id, account_id)
    except FeedSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    if removed:
        console.print(f"[bold green]✅ Subscription {subscription_id} removed[/bold green]")
    else:
        console.print(f"[yellow]No subscription {subscription_id} for account {account_id}[/yellow]")


@cli.command()
@click.argument('feed_id', type=int)
def update(feed_id):
    """Refresh a single feed now."""
    settings = get_settings()
    try:
        coordinator = UpdateCoordinator.from_settings(_open_database(settings), settings)
        result = coordinator.update(feed_id)
    except FeedSyncError as e:
        console.print(f"[bold red]❌ Update failed: {e}[/bold red]")
        sys.exit(1)

    if result.outcome == UpdateOutcome.LOCK_HELD:
        console.print(f"[yellow]⏳ Feed {feed_id} was refreshed recently, skipped[/yellow]")
    else:
        console.print(
            f"[bold green]✅ Feed {feed_id}: {result.entries_inserted} new entries "
            f"({result.entries_seen} candidates)[/bold green]"
        )


@cli.command()
def refresh_outdated():
    """Refresh every feed whose last update is older than the staleness window."""
    console.print("[bold blue]🔄 Refreshing outdated feeds[/bold blue]")

    settings = get_settings()
    db = _open_database(settings)
    scheduler = RefreshScheduler(
        UpdateCoordinator.from_settings(db, settings), FeedRepository(db), settings
    )
    report = asyncio.run(scheduler.refresh_outdated())

    table = Table(title="Refresh Summary")
    table.add_column("Selected", style="cyan")
    table.add_column("Updated", style="green")
    table.add_column("Skipped", style="yellow")
    table.add_column("Failed", style="red")
    table.add_row(str(report.selected), str(report.updated), str(report.skipped), str(report.failed))
    console.print(table)

    if report.failed:
        sys.exit(1)


@cli.command()
@click.argument('account_id', type=int)
def subscriptions(account_id):
    """List subscriptions of ACCOUNT_ID."""
    settings = get_settings()
    manager = _build_manager(settings, with_coordinator=False)
    subs = manager.subscriptions(account_id)

    if not subs:
        console.print("[yellow]No subscriptions[/yellow]")
        return

    table = Table(title=f"Subscriptions of account {account_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Feed", style="cyan")
    table.add_column("Title")
    table.add_column("Host")
    table.add_column("Updated", style="green")
    for sub in subs:
        table.add_row(
            str(sub.id),
            str(sub.feed_id),
            sub.title,
            sub.host,
            sub.updated.strftime('%Y-%m-%d %H:%M') if sub.updated else "",
        )
    console.print(table)


@cli.command()
@click.argument('account_id', type=int)
@click.option('--feed-id', type=int, help='Only entries of this feed')
def entries(account_id, feed_id):
    """List newest entries of ACCOUNT_ID."""
    settings = get_settings()
    manager = _build_manager(settings, with_coordinator=False)
    if feed_id is not None:
        items = manager.feed_entries(account_id, feed_id)
    else:
        items = manager.entries(account_id)

    if not items:
        console.print("[yellow]No entries[/yellow]")
        return

    table = Table(title=f"Entries of account {account_id}")
    table.add_column("Published", style="green")
    table.add_column("Feed", style="cyan")
    table.add_column("Title")
    table.add_column("Host")
    table.add_column("Reading time")
    for entry in items:
        table.add_row(
            entry.published.strftime('%Y-%m-%d %H:%M'),
            entry.feed_title,
            entry.title[:80],
            entry.url_host,
            entry.reading_time,
        )
    console.print(table)


def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {db_path}, Pool: {settings.database.pool_size}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_lock_config(settings) -> tuple[bool, str]:
    return True, f"{settings.lock.redis_url}, TTL {settings.lock.ttl_seconds}s"


def _check_enrichment_config(settings) -> tuple[bool, str]:
    """Check article metadata service configuration."""
    if not settings.enrichment.is_enabled():
        return True, "Disabled, word counts default to 0"
    if not settings.enrichment.api_secret:
        return False, "API secret not set"
    return True, f"Service: {settings.enrichment.api_url}"


def _check_scheduler_config(settings) -> tuple[bool, str]:
    scheduler = settings.scheduler
    return True, (
        f"Stale after {scheduler.stale_after_minutes} min, "
        f"batch {scheduler.batch_limit}, workers {scheduler.max_workers}"
    )


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedSync interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)

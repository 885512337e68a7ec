"""Command-line interface for Mail Dispatcher."""

import asyncio
import signal
import sys
from datetime import datetime, timedelta, timezone
from types import FrameType

import click
import structlog

from mail_dispatcher.config import Settings, get_settings
from mail_dispatcher.core import configure_logging
from mail_dispatcher.exceptions import StoreError
from mail_dispatcher.routing import RoutingEngine
from mail_dispatcher.services import DispatchScheduler, RetentionScheduler
from mail_dispatcher.storage import SqliteStore

logger = structlog.get_logger(__name__)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except Exception as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def _build_dispatcher(settings: Settings, store: SqliteStore) -> DispatchScheduler:
    engine = RoutingEngine(store, store, forward_raw=settings.forward_raw)
    return DispatchScheduler(settings, store, engine)


@click.group()
@click.option("--debug/--no-debug", default=None, help="Enable debug logging")
@click.option("--json-logs/--no-json-logs", default=None, help="JSON log format")
@click.pass_context
def main(ctx: click.Context, debug: bool | None, json_logs: bool | None) -> None:
    """Mail Dispatcher - forward mail by subject to named targets.

    Without flags, logging follows MAIL_DEBUG and MAIL_LOG_FORMAT.
    """
    if debug is None or json_logs is None:
        try:
            settings = get_settings()
        except Exception:
            # Reported by the subcommand that needs the settings
            settings = None
        if debug is None:
            debug = settings.debug if settings else False
        if json_logs is None:
            json_logs = settings.log_format == "json" if settings else False

    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["json_logs"] = json_logs
    configure_logging(json_format=json_logs, debug=debug)


@main.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the dispatcher and the retention job until signalled."""
    logger.info("starting_dispatcher_service")

    settings = _load_settings()
    store = SqliteStore(settings.database_path)
    dispatcher = _build_dispatcher(settings, store)
    retention = RetentionScheduler(settings, store)

    # Handle signals
    def handle_signal(signum: int, frame: FrameType | None) -> None:
        logger.info("signal_received", signal=signum)
        dispatcher.stop()
        retention.request_shutdown()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    async def serve() -> None:
        await store.init_schema()
        await asyncio.gather(dispatcher.run(), retention.run())
        await dispatcher.join()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error("dispatcher_crashed", error=str(e))
        sys.exit(1)


@main.command()
@click.pass_context
def poll(ctx: click.Context) -> None:
    """Run a single poll pass over all active accounts and wait for it."""
    settings = _load_settings()
    store = SqliteStore(settings.database_path)
    dispatcher = _build_dispatcher(settings, store)

    async def poll_once() -> int:
        tasks = await dispatcher.poll_all_accounts()
        await dispatcher.join()
        return len(tasks)

    try:
        count = asyncio.run(poll_once())
    except StoreError as e:
        click.echo(f"Store error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Polled {count} account(s).")


@main.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database schema."""
    settings = _load_settings()
    store = SqliteStore(settings.database_path)
    try:
        asyncio.run(store.init_schema())
    except StoreError as e:
        click.echo(f"Store error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Database ready at {settings.database_path}")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show dispatch outcome counts by status."""
    settings = _load_settings()
    store = SqliteStore(settings.database_path)
    try:
        counts = asyncio.run(store.count_outcomes_by_status())
    except StoreError as e:
        click.echo(f"Store error: {e}", err=True)
        sys.exit(1)

    click.echo(f"   Forwarded: {counts.get('forwarded', 0)}")
    click.echo(f"   Failed:    {counts.get('failed', 0)}")
    click.echo(f"   Total:     {sum(counts.values())}")


@main.command()
@click.option("--days", type=click.IntRange(min=0), default=None, help="Keep this many days")
@click.pass_context
def purge(ctx: click.Context, days: int | None) -> None:
    """Delete dispatch outcomes older than the retention window."""
    settings = _load_settings()
    store = SqliteStore(settings.database_path)
    days = settings.log_retention_days if days is None else days
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)

    try:
        deleted = asyncio.run(store.purge_outcomes(cutoff))
    except StoreError as e:
        click.echo(f"Store error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Deleted {deleted} outcome(s).")


if __name__ == "__main__":
    main()

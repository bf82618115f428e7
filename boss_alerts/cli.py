"""
Command-line interface for boss-alerts.

Provides commands to run the bot, initialize the database, and inspect
alert state.

Usage:
    boss-alerts run              # Ingestion + dispatch
    boss-alerts run --mock       # Same, without Discord or PostgreSQL
    boss-alerts ingest           # Ingestion only
    boss-alerts dispatch         # Dispatch only
    boss-alerts init-db          # Create the alerts table
    boss-alerts pending          # List unfired alerts
    boss-alerts detect "TEXT"    # Run countdown detection on a string
    boss-alerts health           # Check service health
"""

import asyncio
import signal
import sys
from datetime import datetime, timezone

import click
import structlog
from pydantic import ValidationError

from boss_alerts.alerts.detector import DEFAULT_KEYWORD, detect
from boss_alerts.config.settings import Settings, get_settings
from boss_alerts.observability.logging import setup_logging
from boss_alerts.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


def _load_settings(ctx: click.Context, require_live: bool = True) -> Settings:
    """Load settings and configure logging; exit 1 on invalid configuration."""
    debug = ctx.obj.get("debug", False) if ctx.obj else False

    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging("DEBUG" if debug else "INFO")
        missing = [".".join(str(p) for p in err["loc"]).upper() for err in e.errors()]
        logger.error("Invalid configuration", settings=missing)
        click.echo(f"Missing or invalid settings: {', '.join(missing)}", err=True)
        sys.exit(1)

    setup_logging(
        "DEBUG" if debug else settings.log_level,
        json_output=settings.is_production,
    )

    if require_live:
        missing = settings.missing_live_settings()
        if missing:
            logger.error("Invalid configuration", settings=missing)
            click.echo(f"Missing required settings: {', '.join(missing)}", err=True)
            sys.exit(1)

    return settings


def _run_bot(settings: Settings, mock: bool, ingest: bool, dispatch: bool) -> None:
    from boss_alerts.services.runner import BotRunner

    async def run():
        runner = BotRunner(settings, mock=mock)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(runner.stop()))

        await runner.run(ingest=ingest, dispatch=dispatch)

    asyncio.run(run())


def _format_ms(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, debug: bool) -> None:
    """Boss Alerts - ping a role before each announced world boss spawn."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option("--mock", is_flag=True, help="Use mock adapter, in-memory store and log channel")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.pass_context
def run(ctx: click.Context, mock: bool, metrics: bool) -> None:
    """Run ingestion and dispatch together."""
    settings = _load_settings(ctx, require_live=not mock)
    if metrics:
        get_metrics().start_server(settings.metrics_port)
    _run_bot(settings, mock=mock, ingest=True, dispatch=True)


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.pass_context
def ingest(ctx: click.Context, metrics: bool) -> None:
    """Run only the channel watcher."""
    settings = _load_settings(ctx)
    if metrics:
        get_metrics().start_server(settings.metrics_port)
    _run_bot(settings, mock=False, ingest=True, dispatch=False)


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.pass_context
def dispatch(ctx: click.Context, metrics: bool) -> None:
    """Run only the dispatch loop."""
    settings = _load_settings(ctx)
    if metrics:
        get_metrics().start_server(settings.metrics_port)
    _run_bot(settings, mock=False, ingest=False, dispatch=True)


@main.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Initialize the database schema."""
    from boss_alerts.alerts.repository import AlertRepository
    from boss_alerts.services.runner import create_database

    settings = _load_settings(ctx)

    async def run():
        async with create_database(settings) as db:
            await AlertRepository(db).create_table()
        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.option("--limit", default=20, help="Maximum alerts to show")
@click.pass_context
def pending(ctx: click.Context, limit: int) -> None:
    """List alerts that have not fired yet."""
    from boss_alerts.alerts.repository import AlertRepository
    from boss_alerts.services.runner import create_database

    settings = _load_settings(ctx)

    async def run():
        async with create_database(settings) as db:
            alerts = await AlertRepository(db).list_pending(limit=limit)

        if not alerts:
            click.echo("No pending alerts")
            return

        click.echo(f"{'ID':>6}  {'SOURCE EVENT':<22} {'RUN AT (UTC)':<20} CLAIMED")
        for alert in alerts:
            click.echo(
                f"{alert.id:>6}  {alert.source_event_id:<22} "
                f"{_format_ms(alert.run_at):<20} {_format_ms(alert.claimed_at)}"
            )

    asyncio.run(run())


@main.command("detect")
@click.argument("text")
@click.option("--keyword", default=DEFAULT_KEYWORD, help="Trigger keyword")
def detect_command(text: str, keyword: str) -> None:
    """Show the countdown detected in TEXT."""
    minutes = detect(text, keyword)
    if minutes is None:
        click.echo("No countdown detected")
        sys.exit(1)
    click.echo(f"Countdown: {minutes} minutes")


@main.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check health of all dependencies."""
    from boss_alerts.ingestion.discord_adapter import DiscordAdapter
    from boss_alerts.services.runner import create_database

    settings = _load_settings(ctx)

    async def check():
        results: dict[str, bool] = {}

        try:
            async with create_database(settings) as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        adapter = DiscordAdapter(
            channel_id=settings.watch_channel_id,
            token=settings.discord_token,
            api_base=settings.discord_api_base,
        )
        results["discord"] = await adapter.health_check()

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

        click.echo("-" * 40)

        if all(results.values()):
            click.echo(click.style("All services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()

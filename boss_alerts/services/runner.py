"""
Process runner - wires settings into the ingestion and dispatch services.

Live mode uses PostgreSQL, the Discord REST adapter and the Discord
channel. Mock mode swaps in the in-memory store, the mock adapter and
the log channel, so the whole pipeline runs without credentials.
"""

import asyncio

import structlog

from boss_alerts.alerts.channels import (
    CircuitBreaker,
    DiscordChannel,
    LogChannel,
    NotificationChannel,
)
from boss_alerts.alerts.config import DispatchConfig
from boss_alerts.alerts.dispatcher import AlertDispatcher, render_message
from boss_alerts.alerts.memory import InMemoryAlertStore
from boss_alerts.alerts.repository import AlertRepository
from boss_alerts.alerts.scheduler import AlertScheduler
from boss_alerts.alerts.service import AlertService
from boss_alerts.alerts.store import AlertStore
from boss_alerts.config.settings import Settings
from boss_alerts.ingestion.base_adapter import BaseAdapter
from boss_alerts.ingestion.discord_adapter import DiscordAdapter
from boss_alerts.ingestion.mock_adapter import MockAdapter
from boss_alerts.observability.logging import bind_context, clear_context
from boss_alerts.services.ingestion_service import IngestionService
from boss_alerts.storage.database import Database

logger = structlog.get_logger(__name__)


def create_database(settings: Settings) -> Database:
    """Build an (unconnected) Database from settings."""
    return Database(
        database_url=str(settings.database_url),
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        ssl=settings.db_ssl,
    )


class BotRunner:
    """
    Owns the long-running services of one bot process.

    Usage:
        runner = BotRunner(get_settings(), mock=True)
        await runner.run()  # Until stop() or both services exit
    """

    def __init__(
        self,
        settings: Settings,
        mock: bool = False,
        dispatch_config: DispatchConfig | None = None,
    ):
        self._settings = settings
        self._mock = mock
        self._dispatch_config = dispatch_config or DispatchConfig()

        self._database: Database | None = None
        self.store: AlertStore | None = None
        self.ingestion: IngestionService | None = None
        self.dispatcher: AlertDispatcher | None = None

    async def setup(self) -> None:
        """Connect to the store and build the services."""
        settings = self._settings
        claim_timeout_ms = self._dispatch_config.claim_timeout_ms

        channel: NotificationChannel
        adapter: BaseAdapter
        if self._mock:
            self.store = InMemoryAlertStore(claim_timeout_ms=claim_timeout_ms)
            channel = LogChannel()
            adapter = MockAdapter(channel_id=settings.watch_channel_id)
        else:
            self._database = create_database(settings)
            await self._database.connect()
            self.store = AlertRepository(self._database, claim_timeout_ms=claim_timeout_ms)
            await self.store.create_table()
            channel = CircuitBreaker(
                DiscordChannel(
                    token=settings.discord_token,
                    api_base=settings.discord_api_base,
                    allowed_role_ids=[settings.role_to_ping],
                    timeout=self._dispatch_config.send_timeout_seconds,
                ),
                failure_threshold=self._dispatch_config.circuit_breaker_threshold,
                recovery_timeout=self._dispatch_config.circuit_breaker_recovery_seconds,
            )
            adapter = DiscordAdapter(
                channel_id=settings.watch_channel_id,
                token=settings.discord_token,
                api_base=settings.discord_api_base,
                page_size=settings.poll_page_size,
                max_event_age_seconds=settings.max_event_age_seconds,
            )

        alert_service = AlertService(
            AlertScheduler(self.store),
            watch_channel_id=settings.watch_channel_id,
            lead_minutes=settings.ping_before_minutes,
            keyword=settings.trigger_keyword,
        )
        self.ingestion = IngestionService(
            adapter,
            alert_service,
            poll_interval=settings.poll_interval_seconds,
        )
        self.dispatcher = AlertDispatcher(
            self.store,
            channel,
            message=render_message(
                settings.role_to_ping,
                settings.ping_before_minutes,
                settings.alert_message_template,
            ),
            tick_interval=settings.check_interval_seconds,
            config=self._dispatch_config,
        )

    async def run(self, ingest: bool = True, dispatch: bool = True) -> None:
        """
        Run the selected services concurrently until they stop.

        A service that crashes is logged; the other keeps running. The
        database is closed even when setup fails part way.
        """
        try:
            await self.setup()
            bind_context(mode="mock" if self._mock else "live")

            tasks = []
            if ingest:
                tasks.append(asyncio.create_task(self.ingestion.start(), name="ingestion"))
            if dispatch:
                tasks.append(asyncio.create_task(self.dispatcher.start(), name="dispatch"))

            logger.info("Bot running", mock=self._mock, ingest=ingest, dispatch=dispatch)

            results = await asyncio.gather(*tasks, return_exceptions=True)
            for task, result in zip(tasks, results):
                if isinstance(result, Exception):
                    logger.error(
                        "Service crashed",
                        service=task.get_name(),
                        error=repr(result),
                    )
        finally:
            await self.close()

    async def stop(self) -> None:
        """Ask both services to finish their current cycle and exit."""
        if self.ingestion is not None:
            await self.ingestion.stop()
        if self.dispatcher is not None:
            await self.dispatcher.stop()

    async def close(self) -> None:
        if self._database is not None:
            await self._database.close()
            self._database = None
        logger.info("Bot shut down")
        clear_context()

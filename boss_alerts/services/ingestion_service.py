"""
Ingestion service - feeds adapter events into the AlertService.

Runs continuously, polling the adapter at a fixed interval. Adapter or
processing errors are logged and the loop carries on with the next poll.
"""

import asyncio
import time

import structlog

from boss_alerts.alerts.service import AlertService
from boss_alerts.ingestion.base_adapter import BaseAdapter

logger = structlog.get_logger(__name__)


class IngestionService:
    """
    Polls one adapter and hands every batch of events to the AlertService.

    Usage:
        service = IngestionService(adapter, alert_service, poll_interval=5)
        await service.start()  # Runs until stopped
    """

    def __init__(
        self,
        adapter: BaseAdapter,
        alert_service: AlertService,
        poll_interval: float = 5.0,
    ):
        self._adapter = adapter
        self._alert_service = alert_service
        self._poll_interval = poll_interval
        self._running = False
        self._stop_event = asyncio.Event()

        logger.info(
            "Ingestion service initialized",
            adapter=adapter.name,
            poll_interval=poll_interval,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Poll until stop() is called."""
        self._running = True
        self._stop_event.clear()
        logger.info("Starting ingestion service", adapter=self._adapter.name)

        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Adapter error",
                    adapter=self._adapter.name,
                    error=str(e),
                )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Ingestion service stopped", adapter=self._adapter.name)

    async def stop(self) -> None:
        """Stop after the current poll finishes."""
        logger.info("Stopping ingestion service")
        self._running = False
        self._stop_event.set()

    async def run_once(self) -> int:
        """
        Run one poll cycle.

        Returns:
            Number of newly scheduled alerts
        """
        start_time = time.monotonic()

        events = [event async for event in self._adapter.fetch()]
        scheduled = await self._alert_service.process_batch(events)

        if events:
            logger.info(
                "Poll completed",
                adapter=self._adapter.name,
                events=len(events),
                scheduled=scheduled,
                elapsed_seconds=round(time.monotonic() - start_time, 2),
            )
        return scheduled

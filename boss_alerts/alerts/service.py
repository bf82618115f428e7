"""Alert service turning inbound events into scheduled alerts.

Orchestrates: channel filter → text extraction → countdown detection →
scheduling. Each event is handled in isolation; a bad message or a store
outage is logged and the event dropped, never raised to the poll loop.
"""

import asyncio
from collections.abc import Callable

import structlog

from boss_alerts.alerts.detector import DEFAULT_KEYWORD, contains_keyword, detect
from boss_alerts.alerts.scheduler import AlertScheduler
from boss_alerts.alerts.schemas import now_ms
from boss_alerts.ingestion.schemas import InboundEvent, extract_text
from boss_alerts.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)


class AlertService:
    """
    Schedules an alert for every countdown announced in the watched channel.

    Usage:
        service = AlertService(scheduler, watch_channel_id="123", lead_minutes=5)
        scheduled = await service.process_event(event)
    """

    def __init__(
        self,
        scheduler: AlertScheduler,
        watch_channel_id: str,
        lead_minutes: int = 5,
        keyword: str = DEFAULT_KEYWORD,
        clock: Callable[[], int] = now_ms,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._watch_channel_id = watch_channel_id
        self._lead_minutes = lead_minutes
        self._keyword = keyword
        self._clock = clock
        self._metrics = metrics or get_metrics()

    async def process_event(self, event: InboundEvent) -> bool:
        """
        Detect a countdown in one event and schedule its alert.

        Returns:
            True if a new alert was scheduled
        """
        if event.channel_id != self._watch_channel_id:
            logger.debug("Ignoring event from unwatched channel", channel_id=event.channel_id)
            self._metrics.record_event("ignored")
            return False

        text = extract_text(event)
        minutes = detect(text, self._keyword)

        if minutes is None:
            if contains_keyword(text, self._keyword):
                logger.warning(
                    "Announcement without a countdown",
                    event_id=event.event_id,
                    text=text[:200],
                )
                self._metrics.record_event("malformed")
            else:
                self._metrics.record_event("ignored")
            return False

        try:
            scheduled = await self._scheduler.schedule(
                source_event_id=event.event_id,
                destination_id=event.channel_id,
                detected_minutes=minutes,
                lead_minutes=self._lead_minutes,
                now=self._clock(),
            )
        except Exception as e:
            logger.error(
                "Failed to schedule alert, dropping event",
                event_id=event.event_id,
                error=str(e),
            )
            self._metrics.record_event("error")
            return False

        self._metrics.record_event("scheduled" if scheduled else "duplicate")
        return scheduled

    async def process_batch(self, events: list[InboundEvent]) -> int:
        """
        Process events concurrently.

        Returns:
            Number of newly scheduled alerts
        """
        if not events:
            return 0

        results = await asyncio.gather(
            *(self.process_event(event) for event in events),
            return_exceptions=True,
        )

        scheduled = 0
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Unexpected error processing event",
                    event_id=event.event_id,
                    error=repr(result),
                )
            elif result:
                scheduled += 1
        return scheduled

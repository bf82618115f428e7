"""Dispatch loop that delivers due alerts.

Every tick claims due alerts from the store, sends each one through the
notification channel, then marks it fired. A failed or timed-out send
releases the claim so the next tick retries it. A send that succeeded
but could not be marked fired is left claimed; the claim lease expires
and the alert is sent again (at-least-once delivery).

Pattern: Orchestrator over a stateless channel; all alert state lives
in the store and is re-read every tick.
"""

import asyncio
import time
from collections.abc import Callable

import structlog

from boss_alerts.alerts.channels import NotificationChannel
from boss_alerts.alerts.config import DispatchConfig
from boss_alerts.alerts.schemas import Alert, TickResult, now_ms
from boss_alerts.alerts.store import AlertStore
from boss_alerts.config.settings import DEFAULT_MESSAGE_TEMPLATE
from boss_alerts.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)


def render_message(
    role_id: str,
    lead_minutes: int,
    template: str = DEFAULT_MESSAGE_TEMPLATE,
) -> str:
    """Fill the notification template with the role and lead time."""
    return template.format(role_id=role_id, lead_minutes=lead_minutes)


class AlertDispatcher:
    """
    Periodic worker that fires due alerts.

    Ticks run back to back with ``tick_interval`` seconds of sleep in
    between, so one process never has two ticks in flight. Several
    processes may dispatch from the same store; claim_due hands each
    alert to exactly one of them.

    Usage:
        dispatcher = AlertDispatcher(store, channel, message)
        await dispatcher.start()  # Runs until stopped

        # Tests drive ticks directly with a virtual clock
        result = await dispatcher.run_tick(now=1_700_000_000_000)
    """

    def __init__(
        self,
        store: AlertStore,
        channel: NotificationChannel,
        message: str,
        tick_interval: float = 10.0,
        config: DispatchConfig | None = None,
        clock: Callable[[], int] = now_ms,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            store: Alert store to claim from
            channel: Notification channel to send through
            message: Rendered notification text
            tick_interval: Seconds between ticks
            config: Dispatch configuration
            clock: Returns the current time in epoch ms
            metrics: Metrics collector (defaults to the global one)
        """
        self._store = store
        self._channel = channel
        self._message = message
        self._tick_interval = tick_interval
        self._config = config or DispatchConfig()
        self._clock = clock
        self._metrics = metrics or get_metrics()

        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run ticks until stop() is called."""
        self._running = True
        self._stop_event.clear()

        logger.info(
            "Dispatch loop started",
            channel=self._channel.name,
            tick_interval=self._tick_interval,
        )

        while self._running:
            try:
                await self.run_tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Dispatch tick failed", error=str(e))

            await self._sleep()

        logger.info("Dispatch loop stopped")

    async def stop(self) -> None:
        """Stop after the current tick finishes."""
        logger.info("Stopping dispatch loop")
        self._running = False
        self._stop_event.set()

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._tick_interval)
        except asyncio.TimeoutError:
            pass

    async def run_tick(self, now: int | None = None) -> TickResult:
        """
        Claim and deliver every alert due at ``now``.

        Store errors from claim_due propagate; per-alert errors never do.

        Args:
            now: Tick time in epoch ms (defaults to the clock)

        Returns:
            Counts of claimed, fired and failed alerts
        """
        if now is None:
            now = self._clock()
        start_time = time.monotonic()

        alerts = await self._store.claim_due(now, limit=self._config.batch_size)
        result = TickResult(now=now, claimed=len(alerts))

        if alerts:
            outcomes = await asyncio.gather(
                *(self._dispatch_one(alert, now) for alert in alerts),
                return_exceptions=True,
            )
            for alert, outcome in zip(alerts, outcomes):
                if outcome is True:
                    result.fired += 1
                else:
                    if isinstance(outcome, BaseException):
                        logger.error(
                            "Unexpected error dispatching alert",
                            alert_id=alert.id,
                            error=repr(outcome),
                        )
                    result.failed += 1

            logger.info(
                "Dispatch tick completed",
                claimed=result.claimed,
                fired=result.fired,
                failed=result.failed,
            )

        self._metrics.record_tick(
            claimed=result.claimed,
            fired=result.fired,
            latency=time.monotonic() - start_time,
        )
        return result

    async def _dispatch_one(self, alert: Alert, now: int) -> bool:
        """
        Send one claimed alert and settle its state.

        Returns:
            True if the alert was delivered and marked fired
        """
        log = logger.bind(alert_id=alert.id, source_event_id=alert.source_event_id)

        try:
            sent = await asyncio.wait_for(
                self._channel.send(alert.destination_id, self._message),
                timeout=self._config.send_timeout_seconds,
            )
            reason = "send_failed"
        except asyncio.TimeoutError:
            sent = False
            reason = "timeout"
        except Exception as e:
            log.warning("Notification send raised", error=str(e))
            sent = False
            reason = "send_failed"

        if not sent:
            log.warning("Notification not delivered, releasing claim", reason=reason)
            self._metrics.record_dispatch_failure(reason)
            await self._release(alert, log)
            return False

        try:
            fired = await self._store.mark_fired(alert.id, now)
        except Exception as e:
            # Leaving the claim in place: it expires and the alert is re-sent.
            log.error(
                "Notification sent but mark_fired failed",
                error=str(e),
                claim_timeout_ms=self._store.claim_timeout_ms,
            )
            self._metrics.record_dispatch_failure("mark_failed")
            return False

        if not fired:
            log.warning("Alert was already fired")
        else:
            log.info("Alert fired", destination_id=alert.destination_id)
        return True

    async def _release(self, alert: Alert, log: structlog.stdlib.BoundLogger) -> None:
        try:
            await self._store.release(alert.id, claimed_at=alert.claimed_at)
        except Exception as e:
            log.error("Failed to release claim", error=str(e))
            self._metrics.record_dispatch_failure("release_failed")

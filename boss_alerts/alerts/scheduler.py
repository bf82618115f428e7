"""Turns a detected countdown into a durable alert record."""

import structlog

from boss_alerts.alerts.schemas import MS_PER_MINUTE, Alert
from boss_alerts.alerts.store import AlertStore

logger = structlog.get_logger(__name__)


def compute_run_at(detected_minutes: int, lead_minutes: int, now: int) -> int:
    """Fire ``lead_minutes`` before the announced time, never in the past.

    Args:
        detected_minutes: Countdown parsed from the announcement.
        lead_minutes: How early to ping before the event.
        now: Current time in epoch ms.

    Returns:
        run_at in epoch ms.
    """
    delay_minutes = max(0, detected_minutes - lead_minutes)
    return now + delay_minutes * MS_PER_MINUTE


class AlertScheduler:
    """Writes one alert per announcement through the store's idempotent insert."""

    def __init__(self, store: AlertStore) -> None:
        self._store = store

    async def schedule(
        self,
        source_event_id: str,
        destination_id: str,
        detected_minutes: int,
        lead_minutes: int,
        now: int,
    ) -> bool:
        """
        Schedule the alert for an announcement.

        Re-processing an already scheduled event is a silent no-op, so
        upstream may deliver events more than once. Store errors propagate.

        Returns:
            True if a new alert was stored, False for a duplicate event
        """
        alert = Alert(
            source_event_id=source_event_id,
            destination_id=destination_id,
            run_at=compute_run_at(detected_minutes, lead_minutes, now),
            created_at=now,
        )

        inserted = await self._store.insert_if_absent(alert)
        if not inserted:
            logger.debug(
                "Alert already scheduled",
                source_event_id=source_event_id,
            )
            return False

        logger.info(
            "Alert scheduled",
            alert_id=alert.id,
            source_event_id=source_event_id,
            spawn_in_minutes=detected_minutes,
            ping_in_minutes=max(0, detected_minutes - lead_minutes),
            run_at=alert.run_at,
        )
        return True

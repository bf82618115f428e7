"""In-process AlertStore for tests and ``--mock`` runs.

Every operation reads and writes without awaiting in between, so on a
single event loop each one is atomic without a lock. State lives only as
long as the process.
"""

import dataclasses
import itertools

from boss_alerts.alerts.schemas import Alert
from boss_alerts.alerts.store import DEFAULT_CLAIM_TIMEOUT_MS, AlertStore


class InMemoryAlertStore(AlertStore):
    """Dict-backed AlertStore with the same claim semantics as PostgreSQL."""

    def __init__(self, claim_timeout_ms: int = DEFAULT_CLAIM_TIMEOUT_MS) -> None:
        super().__init__(claim_timeout_ms)
        self._alerts: dict[int, Alert] = {}
        self._by_source: dict[str, int] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._alerts)

    async def insert_if_absent(self, alert: Alert) -> bool:
        if alert.source_event_id in self._by_source:
            return False
        alert.id = next(self._ids)
        self._alerts[alert.id] = dataclasses.replace(alert)
        self._by_source[alert.source_event_id] = alert.id
        return True

    async def claim_due(self, now: int, limit: int | None = None) -> list[Alert]:
        expired_before = now - self.claim_timeout_ms
        due = sorted(
            (
                a for a in self._alerts.values()
                if a.is_due(now)
                and (a.claimed_at is None or a.claimed_at <= expired_before)
            ),
            key=lambda a: a.run_at,
        )
        if limit is not None:
            due = due[:limit]

        claimed = []
        for alert in due:
            alert.claimed_at = now
            claimed.append(dataclasses.replace(alert))
        return claimed

    async def mark_fired(self, alert_id: int, fired_at: int) -> bool:
        alert = self._alerts.get(alert_id)
        if alert is None or alert.fired_at is not None:
            return False
        alert.fired_at = fired_at
        return True

    async def release(self, alert_id: int, claimed_at: int | None = None) -> bool:
        alert = self._alerts.get(alert_id)
        if alert is None or alert.fired_at is not None or alert.claimed_at is None:
            return False
        if claimed_at is not None and alert.claimed_at != claimed_at:
            return False
        alert.claimed_at = None
        return True

    async def get_by_source_event_id(self, source_event_id: str) -> Alert | None:
        alert_id = self._by_source.get(source_event_id)
        if alert_id is None:
            return None
        return dataclasses.replace(self._alerts[alert_id])

    async def list_pending(self, limit: int = 50) -> list[Alert]:
        pending = sorted(
            (a for a in self._alerts.values() if a.fired_at is None),
            key=lambda a: a.run_at,
        )
        return [dataclasses.replace(a) for a in pending[:limit]]

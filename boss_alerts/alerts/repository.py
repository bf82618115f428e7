"""Alert repository backed by PostgreSQL.

Follows the asyncpg repository pattern: module-level SQL constants, a
thin class over ``Database``, and a ``_row_to_alert`` converter. Each
store operation is a single SQL statement, which is what makes it atomic
with respect to concurrent schedulers and dispatchers.
"""

import logging
from typing import Any

from boss_alerts.alerts.schemas import Alert
from boss_alerts.alerts.store import DEFAULT_CLAIM_TIMEOUT_MS, AlertStore
from boss_alerts.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS alerts (
    id              BIGSERIAL PRIMARY KEY,
    source_event_id TEXT UNIQUE NOT NULL,
    destination_id  TEXT NOT NULL,
    run_at          BIGINT NOT NULL,
    created_at      BIGINT NOT NULL,
    fired_at        BIGINT,
    claimed_at      BIGINT
);

ALTER TABLE alerts ADD COLUMN IF NOT EXISTS claimed_at BIGINT;

CREATE INDEX IF NOT EXISTS idx_alerts_due
    ON alerts(run_at) WHERE fired_at IS NULL;
"""

_INSERT_SQL = """
INSERT INTO alerts (source_event_id, destination_id, run_at, created_at)
VALUES ($1, $2, $3, $4)
ON CONFLICT (source_event_id) DO NOTHING
RETURNING id
"""

# SKIP LOCKED keeps concurrent claimers from blocking on, or double
# claiming, rows another transaction is already claiming.
_CLAIM_DUE_SQL = """
UPDATE alerts SET claimed_at = $1
WHERE id IN (
    SELECT id FROM alerts
    WHERE fired_at IS NULL
      AND run_at <= $1
      AND (claimed_at IS NULL OR claimed_at <= $2)
    ORDER BY run_at
    LIMIT $3
    FOR UPDATE SKIP LOCKED
)
RETURNING *
"""

_MARK_FIRED_SQL = """
UPDATE alerts SET fired_at = $2
WHERE id = $1 AND fired_at IS NULL
RETURNING id
"""

_RELEASE_SQL = """
UPDATE alerts SET claimed_at = NULL
WHERE id = $1
  AND fired_at IS NULL
  AND claimed_at IS NOT NULL
  AND ($2::BIGINT IS NULL OR claimed_at = $2)
RETURNING id
"""


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record to an Alert."""
    return Alert(
        id=row["id"],
        source_event_id=row["source_event_id"],
        destination_id=row["destination_id"],
        run_at=row["run_at"],
        created_at=row["created_at"],
        fired_at=row["fired_at"],
        claimed_at=row.get("claimed_at"),
    )


class AlertRepository(AlertStore):
    """PostgreSQL implementation of AlertStore."""

    def __init__(
        self,
        database: Database,
        claim_timeout_ms: int = DEFAULT_CLAIM_TIMEOUT_MS,
    ) -> None:
        super().__init__(claim_timeout_ms)
        self._db = database

    async def create_table(self) -> None:
        """Create the alerts table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Alerts table ensured")

    async def health_check(self) -> bool:
        return await self._db.health_check()

    async def insert_if_absent(self, alert: Alert) -> bool:
        alert_id = await self._db.fetchval(
            _INSERT_SQL,
            alert.source_event_id,
            alert.destination_id,
            alert.run_at,
            alert.created_at,
        )
        if alert_id is None:
            return False
        alert.id = alert_id
        return True

    async def claim_due(self, now: int, limit: int | None = None) -> list[Alert]:
        expired_before = now - self.claim_timeout_ms
        rows = await self._db.fetch(_CLAIM_DUE_SQL, now, expired_before, limit)
        alerts = [_row_to_alert(row) for row in rows]
        # RETURNING does not preserve the subquery order
        alerts.sort(key=lambda a: a.run_at)
        return alerts

    async def mark_fired(self, alert_id: int, fired_at: int) -> bool:
        result = await self._db.fetchval(_MARK_FIRED_SQL, alert_id, fired_at)
        return result is not None

    async def release(self, alert_id: int, claimed_at: int | None = None) -> bool:
        """
        Clear the claim on an unfired alert.

        Args:
            alert_id: Alert to release
            claimed_at: If given, only release when the stored claim matches,
                so a stale owner cannot drop a newer claim.
        """
        result = await self._db.fetchval(_RELEASE_SQL, alert_id, claimed_at)
        return result is not None

    async def get_by_source_event_id(self, source_event_id: str) -> Alert | None:
        row = await self._db.fetchrow(
            "SELECT * FROM alerts WHERE source_event_id = $1",
            source_event_id,
        )
        return _row_to_alert(row) if row else None

    async def list_pending(self, limit: int = 50) -> list[Alert]:
        rows = await self._db.fetch(
            """
            SELECT * FROM alerts
            WHERE fired_at IS NULL
            ORDER BY run_at ASC
            LIMIT $1
            """,
            limit,
        )
        return [_row_to_alert(row) for row in rows]

"""
Abstract base class for alert store implementations.

The store is the single source of truth for alert state. Every mutation
goes through one of the atomic operations below, so scheduler and
dispatcher instances never need to coordinate in-process.
"""

from abc import ABC, abstractmethod

from boss_alerts.alerts.schemas import Alert

DEFAULT_CLAIM_TIMEOUT_MS = 5 * 60_000


class AlertStore(ABC):
    """
    Interface for alert persistence backends.

    Claims are leases: an alert claimed more than ``claim_timeout_ms`` ago
    and still unfired is treated as abandoned and may be claimed again.

    Implementations:
    - AlertRepository: PostgreSQL via asyncpg
    - InMemoryAlertStore: single-process store for tests and mock mode
    """

    def __init__(self, claim_timeout_ms: int = DEFAULT_CLAIM_TIMEOUT_MS) -> None:
        if claim_timeout_ms <= 0:
            raise ValueError(f"claim_timeout_ms must be > 0, got {claim_timeout_ms}")
        self.claim_timeout_ms = claim_timeout_ms

    async def create_table(self) -> None:
        """Create backing schema if needed. No-op by default."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def insert_if_absent(self, alert: Alert) -> bool:
        """
        Insert an alert unless one exists for its source_event_id.

        Returns:
            True if inserted, False if the event was already recorded
        """
        ...

    @abstractmethod
    async def claim_due(self, now: int, limit: int | None = None) -> list[Alert]:
        """
        Atomically claim unfired alerts with run_at <= now.

        Alerts under a live claim are skipped. Each returned alert is
        owned exclusively by this caller until it is fired, released,
        or its claim expires.

        Args:
            now: Current time in epoch ms (also recorded as claimed_at)
            limit: Maximum number of alerts to claim

        Returns:
            Claimed alerts ordered by run_at
        """
        ...

    @abstractmethod
    async def mark_fired(self, alert_id: int, fired_at: int) -> bool:
        """
        Stamp fired_at on an unfired alert.

        Returns:
            True if this call fired it, False if already fired or missing
        """
        ...

    @abstractmethod
    async def release(self, alert_id: int, claimed_at: int | None = None) -> bool:
        """
        Drop the claim on an unfired alert so a later tick can retry it.

        When claimed_at is given the claim is only dropped if it still
        matches, so a caller whose lease expired cannot drop a newer claim.

        Returns:
            True if a claim was released
        """
        ...

    @abstractmethod
    async def get_by_source_event_id(self, source_event_id: str) -> Alert | None:
        ...

    @abstractmethod
    async def list_pending(self, limit: int = 50) -> list[Alert]:
        """Unfired alerts ordered by run_at ascending."""
        ...

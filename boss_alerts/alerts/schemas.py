"""Schema definitions for alert records.

Maps 1:1 to the ``alerts`` database table. Each alert is one pending or
delivered role ping derived from a single countdown announcement. All
timestamps are integer epoch milliseconds.
"""

import time
from dataclasses import dataclass, field
from typing import Any

MS_PER_MINUTE = 60_000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Alert:
    """A persisted alert record from the alerts table.

    Attributes:
        source_event_id: Id of the announcement that produced the alert.
            Unique across the table.
        destination_id: Channel the notification is posted to.
        run_at: When the alert becomes due. Never changes after insert.
        created_at: When the alert was scheduled.
        id: Surrogate key assigned by the store (None before insert).
        fired_at: When the notification was delivered; None while pending.
        claimed_at: When a dispatcher last claimed the alert; None when
            unclaimed.
    """

    source_event_id: str
    destination_id: str
    run_at: int
    created_at: int = field(default_factory=now_ms)
    id: int | None = None
    fired_at: int | None = None
    claimed_at: int | None = None

    def __post_init__(self) -> None:
        if not self.source_event_id:
            raise ValueError("source_event_id must be non-empty")
        if not self.destination_id:
            raise ValueError("destination_id must be non-empty")
        for name in ("run_at", "created_at"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

    @property
    def is_fired(self) -> bool:
        return self.fired_at is not None

    @property
    def is_claimed(self) -> bool:
        return self.claimed_at is not None

    def is_due(self, now: int) -> bool:
        """True if the alert is unfired and its run_at has passed."""
        return self.fired_at is None and self.run_at <= now

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "source_event_id": self.source_event_id,
            "destination_id": self.destination_id,
            "run_at": self.run_at,
            "created_at": self.created_at,
            "fired_at": self.fired_at,
            "claimed_at": self.claimed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Create an Alert from a dictionary or asyncpg Record."""
        return cls(
            id=data.get("id"),
            source_event_id=data["source_event_id"],
            destination_id=data["destination_id"],
            run_at=int(data["run_at"]),
            created_at=int(data["created_at"]),
            fired_at=data.get("fired_at"),
            claimed_at=data.get("claimed_at"),
        )


@dataclass
class TickResult:
    """Outcome of one dispatch tick."""

    now: int
    claimed: int = 0
    fired: int = 0
    failed: int = 0

    @property
    def idle(self) -> bool:
        return self.claimed == 0

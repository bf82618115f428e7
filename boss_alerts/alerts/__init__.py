"""Alert scheduling and dispatch.

Components:
- detect / contains_keyword: Pure countdown detection on message text
- Alert / TickResult: Dataclasses for alert records and tick outcomes
- AlertStore: Interface for atomic insert / claim / fire / release
- AlertRepository: PostgreSQL AlertStore (asyncpg)
- InMemoryAlertStore: Single-process AlertStore for tests and mock mode
- AlertScheduler: Idempotent alert creation from a detected countdown
- AlertService: Per-event orchestration with failure isolation
- AlertDispatcher: Periodic claim → send → mark fired loop
- NotificationChannel / DiscordChannel / LogChannel: Delivery channels
- CircuitBreaker: Resilience wrapper for channels
- DispatchConfig: Pydantic settings for the dispatch loop
"""

from boss_alerts.alerts.channels import (
    CircuitBreaker,
    DiscordChannel,
    LogChannel,
    NotificationChannel,
)
from boss_alerts.alerts.config import DispatchConfig
from boss_alerts.alerts.detector import contains_keyword, detect
from boss_alerts.alerts.dispatcher import AlertDispatcher, render_message
from boss_alerts.alerts.memory import InMemoryAlertStore
from boss_alerts.alerts.repository import AlertRepository
from boss_alerts.alerts.scheduler import AlertScheduler, compute_run_at
from boss_alerts.alerts.schemas import Alert, TickResult, now_ms
from boss_alerts.alerts.service import AlertService
from boss_alerts.alerts.store import AlertStore

__all__ = [
    "Alert",
    "AlertDispatcher",
    "AlertRepository",
    "AlertScheduler",
    "AlertService",
    "AlertStore",
    "CircuitBreaker",
    "DiscordChannel",
    "DispatchConfig",
    "InMemoryAlertStore",
    "LogChannel",
    "NotificationChannel",
    "TickResult",
    "compute_run_at",
    "contains_keyword",
    "detect",
    "now_ms",
    "render_message",
]

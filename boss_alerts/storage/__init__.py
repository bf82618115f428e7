"""Storage layer for alert persistence."""

from boss_alerts.storage.database import Database

__all__ = ["Database"]

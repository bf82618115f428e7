"""Long-running services and the process runner."""

from boss_alerts.services.ingestion_service import IngestionService
from boss_alerts.services.runner import BotRunner, create_database

__all__ = ["BotRunner", "IngestionService", "create_database"]

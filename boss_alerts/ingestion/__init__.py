"""Event ingestion: inbound message schema and source adapters."""

from boss_alerts.ingestion.base_adapter import BaseAdapter
from boss_alerts.ingestion.discord_adapter import DiscordAdapter
from boss_alerts.ingestion.mock_adapter import MockAdapter
from boss_alerts.ingestion.schemas import EmbedContent, InboundEvent, extract_text

__all__ = [
    "BaseAdapter",
    "DiscordAdapter",
    "EmbedContent",
    "InboundEvent",
    "MockAdapter",
    "extract_text",
]

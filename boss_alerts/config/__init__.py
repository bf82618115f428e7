"""Configuration for the boss-alerts bot."""

from boss_alerts.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]

"""Watches a Discord channel for world boss countdowns and pings a role before spawn."""

__version__ = "0.1.0"

USER_AGENT = f"DiscordBot (https://github.com/boss-alerts/boss-alerts, {__version__})"

"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MESSAGE_TEMPLATE = "⏰ <@&{role_id}> World Boss spawning in {lead_minutes} minutes!"


class Settings(BaseSettings):
    """
    Central configuration for the boss-alerts bot.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., DATABASE_URL).

    ``watch_channel_id`` and ``role_to_ping`` have no defaults, so building
    Settings without them raises a ValidationError. The Discord token and
    the database URL are only needed outside mock mode; see
    ``missing_live_settings``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Discord
    discord_token: str | None = None
    discord_api_base: str = "https://discord.com/api/v10"
    watch_channel_id: str = Field(min_length=1)
    role_to_ping: str = Field(min_length=1)

    # Alerting behaviour
    ping_before_minutes: int = Field(default=5, ge=0)
    check_interval_seconds: float = Field(default=10.0, gt=0)
    trigger_keyword: str = Field(default="world boss", min_length=1)
    alert_message_template: str = DEFAULT_MESSAGE_TEMPLATE

    # Inbound polling
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    poll_page_size: int = Field(default=50, ge=1, le=100)
    max_event_age_seconds: int = Field(default=600, ge=0)

    # PostgreSQL
    database_url: PostgresDsn | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_ssl: Literal["disable", "prefer", "require"] = "prefer"

    # Observability
    metrics_port: int = 8000

    @field_validator("alert_message_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Only {role_id} and {lead_minutes} placeholders are allowed."""
        try:
            v.format(role_id="0", lead_minutes=0)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid alert message template: {e!r}") from e
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def discord_configured(self) -> bool:
        """Check if a Discord bot token is configured."""
        return bool(self.discord_token)

    def missing_live_settings(self) -> list[str]:
        """Names of settings required to talk to Discord and PostgreSQL."""
        missing = []
        if not self.discord_configured:
            missing.append("DISCORD_TOKEN")
        if self.database_url is None:
            missing.append("DATABASE_URL")
        return missing


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()

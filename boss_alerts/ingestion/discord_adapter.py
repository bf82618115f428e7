"""
Discord adapter - polls a text channel over the REST API.

Each fetch asks for messages newer than the last one seen. The first
fetch after startup reads the latest page, so announcements posted while
the bot was down are still picked up; the store's idempotent insert
absorbs anything already scheduled.

Messages older than ``max_event_age_seconds`` are dropped so that a
backfill never schedules an alert for a spawn that already happened.
"""

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import httpx

from boss_alerts import USER_AGENT
from boss_alerts.ingestion.base_adapter import BaseAdapter
from boss_alerts.ingestion.schemas import EmbedContent, InboundEvent

logger = logging.getLogger(__name__)


class DiscordAdapter(BaseAdapter):
    """Reads new messages from one Discord channel."""

    def __init__(
        self,
        channel_id: str,
        token: str,
        api_base: str = "https://discord.com/api/v10",
        page_size: int = 50,
        max_event_age_seconds: int = 600,
        timeout: float = 10.0,
        rate_limit: int = 30,
    ):
        super().__init__(rate_limit=rate_limit)
        self._channel_id = channel_id
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._page_size = page_size
        self._max_event_age_seconds = max_event_age_seconds
        self._timeout = timeout
        self._cursor: str | None = None

    @property
    def name(self) -> str:
        return "discord_adapter"

    @property
    def cursor(self) -> str | None:
        """Id of the newest message seen so far."""
        return self._cursor

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bot {self._token}",
            "User-Agent": USER_AGENT,
        }

    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        params: dict[str, Any] = {"limit": self._page_size}
        if self._cursor is not None:
            params["after"] = self._cursor

        url = f"{self._api_base}/channels/{self._channel_id}/messages"

        await self._rate_limiter.acquire()
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url, params=params, headers=self._headers)

        if resp.status_code == 429:
            retry_after = resp.json().get("retry_after")
            logger.warning(f"Discord rate limited the poll (retry_after={retry_after})")
            return
        resp.raise_for_status()

        # Snowflake ids sort by creation time; process oldest first
        messages = sorted(resp.json(), key=lambda m: int(m["id"]))
        for message in messages:
            self._cursor = message["id"]
            yield message

    def _transform(self, raw: dict[str, Any]) -> InboundEvent | None:
        embeds = [
            EmbedContent(
                title=embed.get("title"),
                description=embed.get("description"),
                footer=(embed.get("footer") or {}).get("text"),
            )
            for embed in raw.get("embeds") or []
        ]

        event = InboundEvent(
            event_id=raw["id"],
            channel_id=raw.get("channel_id") or self._channel_id,
            content=raw.get("content") or "",
            embeds=embeds,
            timestamp=_parse_timestamp(raw.get("timestamp")),
        )

        if event.age_seconds() > self._max_event_age_seconds:
            logger.debug(f"Skipping stale message {event.event_id}")
            return None
        return event

    async def health_check(self) -> bool:
        """Check the token can read the watched channel."""
        url = f"{self._api_base}/channels/{self._channel_id}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url, headers=self._headers)
            return resp.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Discord health check failed: {e}")
            return False


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

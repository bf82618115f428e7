"""
Mock adapter for testing and development.

Generates synthetic channel traffic that mimics an announcement bot:
- countdown announcements in content or in embeds
- malformed announcements without a duration
- unrelated chatter
- occasional redelivery of the previous message id
"""

import itertools
import random
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

from boss_alerts.ingestion.base_adapter import BaseAdapter
from boss_alerts.ingestion.schemas import EmbedContent, InboundEvent

ANNOUNCEMENT_TEMPLATES = [
    "World Boss spawning in {minutes} minutes",
    "⚔️ The WORLD BOSS arrives in {minutes} minutes! Gather up.",
    "Heads up: world boss in {minutes} minutes",
]

EMBED_TEMPLATES = [
    ("World Boss Incoming", "Spawns in {minutes} minutes at the Ruins"),
    ("Event Timer", "World Boss will spawn in {minutes} minute(s)"),
]

MALFORMED_TEMPLATES = [
    "World Boss spawning soon!",
    "world boss event is live",
    "Heads up: world boss in 5 min",
]

CHATTER = [
    "anyone up for dungeons?",
    "gg everyone",
    "who has the 10 minute buff timer?",
]


class MockAdapter(BaseAdapter):
    """
    Mock adapter that generates synthetic channel messages.

    Useful for running the whole pipeline without Discord credentials.
    """

    def __init__(
        self,
        channel_id: str,
        events_per_fetch: int = 3,
        duplicate_rate: float = 0.1,
        seed: int | None = None,
    ):
        super().__init__(rate_limit=1000)
        self._channel_id = channel_id
        self._events_per_fetch = events_per_fetch
        self._duplicate_rate = duplicate_rate
        self._random = random.Random(seed)
        self._ids = itertools.count(1)
        self._last_id: str | None = None

    @property
    def name(self) -> str:
        return "mock_adapter"

    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        for _ in range(self._events_per_fetch):
            yield self._generate()

    def _generate(self) -> dict[str, Any]:
        if self._last_id is not None and self._random.random() < self._duplicate_rate:
            message_id = self._last_id
        else:
            message_id = f"mock_{next(self._ids)}"
        self._last_id = message_id

        minutes = self._random.randint(1, 30)
        roll = self._random.random()
        content = ""
        embeds: list[dict[str, str]] = []

        if roll < 0.4:
            content = self._random.choice(ANNOUNCEMENT_TEMPLATES).format(minutes=minutes)
        elif roll < 0.6:
            title, description = self._random.choice(EMBED_TEMPLATES)
            embeds.append({
                "title": title,
                "description": description.format(minutes=minutes),
                "footer": "Timers are approximate",
            })
        elif roll < 0.7:
            content = self._random.choice(MALFORMED_TEMPLATES)
        else:
            content = self._random.choice(CHATTER)

        return {"id": message_id, "content": content, "embeds": embeds}

    def _transform(self, raw: dict[str, Any]) -> InboundEvent | None:
        return InboundEvent(
            event_id=raw["id"],
            channel_id=self._channel_id,
            content=raw["content"],
            embeds=[EmbedContent(**embed) for embed in raw["embeds"]],
            timestamp=datetime.now(timezone.utc),
        )

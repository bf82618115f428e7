"""
Inbound event schema shared by all adapters.

An InboundEvent is one chat message: plain content plus the embed
fields bots use for announcements. Adapters map platform payloads onto
this shape; everything downstream reads only these fields.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class EmbedContent(BaseModel):
    """Text fields of a rich embed."""

    title: str | None = None
    description: str | None = None
    footer: str | None = None


class InboundEvent(BaseModel):
    """
    A message observed in a watched channel.

    Attributes:
        event_id: Platform message id, unique per message
        channel_id: Channel the message was posted in
        content: Plain message text
        embeds: Rich embeds attached to the message
        timestamp: When the message was posted
    """

    event_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    content: str = ""
    embeds: list[EmbedContent] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def age_seconds(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.timestamp).total_seconds()


def extract_text(event: InboundEvent) -> str:
    """
    Join the message content with the first embed's text fields.

    Announcement bots often put the countdown in an embed, so the title,
    description and footer are all searched.
    """
    parts = [event.content or ""]
    if event.embeds:
        embed = event.embeds[0]
        parts.extend([
            embed.title or "",
            embed.description or "",
            embed.footer or "",
        ])
    return " ".join(parts).strip()

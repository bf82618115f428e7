"""Notification channel implementations for alert delivery.

Provides an ABC for notification channels plus a Discord REST channel
and a log-only channel for mock runs. A CircuitBreaker decorator wraps
any channel so a Discord outage fails sends fast instead of waiting out
a timeout for every due alert.

Pattern: Decorator (CircuitBreaker wraps any NotificationChannel).
"""

import enum
import logging
import time
from abc import ABC, abstractmethod

import httpx

from boss_alerts import USER_AGENT

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'discord', 'log')."""

    @abstractmethod
    async def send(self, destination_id: str, content: str) -> bool:
        """Deliver a message to a destination.

        Args:
            destination_id: Platform id of the target channel.
            content: Rendered message text.

        Returns:
            True if delivery succeeded, False otherwise.
        """


class DiscordChannel(NotificationChannel):
    """Posts messages to Discord text channels via the REST API.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling)
    matching the project's HTTP pattern. Only the configured roles may be
    mentioned, so announcement text can never ping @everyone.
    """

    def __init__(
        self,
        token: str,
        api_base: str = "https://discord.com/api/v10",
        allowed_role_ids: list[str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._allowed_role_ids = allowed_role_ids or []
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "discord"

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bot {self._token}",
            "User-Agent": USER_AGENT,
        }

    def _build_payload(self, content: str) -> dict:
        return {
            "content": content,
            "allowed_mentions": {
                "parse": [],
                "roles": self._allowed_role_ids,
            },
        }

    async def send(self, destination_id: str, content: str) -> bool:
        url = f"{self._api_base}/channels/{destination_id}/messages"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    url,
                    json=self._build_payload(content),
                    headers=self._headers,
                )
                if resp.is_success:
                    return True
                if resp.status_code in (403, 404):
                    logger.error(
                        "Discord destination %s unreachable (HTTP %d)",
                        destination_id, resp.status_code,
                    )
                else:
                    logger.warning(
                        "Discord returned %d for channel %s",
                        resp.status_code, destination_id,
                    )
                return False
        except httpx.TimeoutException:
            logger.warning("Discord send timed out for channel %s", destination_id)
            return False
        except httpx.HTTPError as e:
            logger.warning(
                "Discord send failed for channel %s: %s", destination_id, e,
            )
            return False


class LogChannel(NotificationChannel):
    """Writes notifications to the log instead of a chat platform."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "log"

    async def send(self, destination_id: str, content: str) -> bool:
        self.sent.append((destination_id, content))
        logger.info("[%s] %s", destination_id, content)
        return True


class CircuitState(enum.Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(NotificationChannel):
    """Wraps a NotificationChannel with circuit breaker protection.

    State machine: CLOSED → OPEN → HALF_OPEN → CLOSED.

    - CLOSED: All requests pass through. Consecutive failures tracked.
    - OPEN: Requests rejected immediately. After recovery_timeout, moves
      to HALF_OPEN.
    - HALF_OPEN: Single trial request allowed. Success → CLOSED, failure → OPEN.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self._channel = channel
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def state(self) -> CircuitState:
        return self._state

    async def send(self, destination_id: str, content: str) -> bool:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit breaker %s: OPEN → HALF_OPEN (recovery trial)",
                    self.name,
                )
            else:
                logger.debug(
                    "Circuit breaker %s: OPEN, rejecting send to %s",
                    self.name, destination_id,
                )
                return False

        success = await self._channel.send(destination_id, content)

        if success:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(
                    "Circuit breaker %s: HALF_OPEN → CLOSED (trial succeeded)",
                    self.name,
                )
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit breaker %s: HALF_OPEN → OPEN (trial failed)",
                    self.name,
                )
            elif self._consecutive_failures >= self._failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit breaker %s: CLOSED → OPEN after %d failures",
                    self.name, self._consecutive_failures,
                )

        return success

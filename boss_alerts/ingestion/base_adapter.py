"""
Base adapter interface and shared functionality for event sources.

Each adapter must implement _fetch_raw() and _transform(). The base
class provides:
- Rate limiting
- Per-item error isolation
- Run statistics and logging
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from boss_alerts.ingestion.schemas import InboundEvent

logger = logging.getLogger(__name__)


@dataclass
class RateLimiter:
    """
    Simple token bucket rate limiter.

    Allows `rate` requests per minute with burst capacity.
    """

    rate: int  # requests per minute
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.rate)
        self._last_update = time.monotonic()

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._last_update = now

            self._tokens = min(
                float(self.rate),
                self._tokens + elapsed * (self.rate / 60.0),
            )

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * 60.0 / self.rate
                logger.debug(f"Rate limited, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._tokens = 0
            else:
                self._tokens -= 1


@dataclass
class AdapterStats:
    """Statistics for an adapter run."""

    events_fetched: int = 0
    events_filtered: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseAdapter(ABC):
    """
    Abstract base class for event adapters.

    Subclasses must implement:
        - name: Adapter name for logs
        - _fetch_raw(): Async generator yielding raw payloads
        - _transform(): Convert a raw payload to InboundEvent (or None)
    """

    def __init__(self, rate_limit: int = 60):
        """
        Initialize adapter with rate limiting.

        Args:
            rate_limit: Maximum requests per minute
        """
        self._rate_limiter = RateLimiter(rate=rate_limit)
        self._stats = AdapterStats()

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        """
        Fetch raw payloads from the source.

        Subclasses MUST call `await self._rate_limiter.acquire()` before
        each HTTP request.
        """
        ...

    @abstractmethod
    def _transform(self, raw: dict[str, Any]) -> InboundEvent | None:
        """
        Transform a raw payload to an InboundEvent.

        Returns None for payloads that should be skipped. Should not raise.
        """
        ...

    async def fetch(self) -> AsyncIterator[InboundEvent]:
        """
        Fetch and transform events from the source.

        A payload that fails to transform is logged and skipped; errors
        from the fetch itself propagate to the caller.

        Yields:
            InboundEvent instances
        """
        self._stats = AdapterStats()

        try:
            async for raw in self._fetch_raw():
                try:
                    event = self._transform(raw)
                    if event is None:
                        self._stats.events_filtered += 1
                        continue

                    self._stats.events_fetched += 1
                    yield event

                except Exception as e:
                    self._stats.errors += 1
                    logger.error(
                        f"Error transforming event in {self.name}: {e}",
                        exc_info=True,
                    )
                    continue

        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Error in {self.name} fetch: {e}")
            raise

        finally:
            logger.debug(
                f"{self.name} completed: "
                f"fetched={self._stats.events_fetched}, "
                f"filtered={self._stats.events_filtered}, "
                f"errors={self._stats.errors}, "
                f"elapsed={self._stats.elapsed_seconds:.2f}s"
            )

    @property
    def stats(self) -> AdapterStats:
        """Get current adapter statistics."""
        return self._stats

    async def health_check(self) -> bool:
        """Check if the adapter can reach its source. Override per adapter."""
        return True

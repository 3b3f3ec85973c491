"""Notification emitters for booking domain events.

The lifecycle hands every committed event to a ``NotificationEmitter`` and
moves on; delivery to connected clients is the socket layer's concern.
Emitters:
- InMemoryNotificationEmitter: records events (tests, local development)
- RedisNotificationEmitter: publishes JSON on a Redis pub/sub channel
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import redis.asyncio as redis

from app.config import settings
from app.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class NotificationEmitter(ABC):
    """Receives domain events after a successful commit."""

    @abstractmethod
    def emit(self, event: DomainEvent) -> None:
        """Hand off an event without waiting for delivery."""

    async def close(self) -> None:
        """Release any held connections."""


class InMemoryNotificationEmitter(NotificationEmitter):
    """Keeps emitted events in order."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    def emit(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[DomainEvent]:
        """Events with the given ``event_type``."""
        return [event for event in self.events if event.event_type == event_type]


class RedisNotificationEmitter(NotificationEmitter):
    """Publishes events to a Redis channel the socket gateway subscribes to."""

    def __init__(self, redis_url: str | None = None, channel: str | None = None) -> None:
        """Initialize emitter.

        Args:
            redis_url: Redis connection URL
            channel: Pub/sub channel name
        """
        self.redis_url = redis_url or settings.redis_url
        self.channel = channel or settings.notification_channel
        self._redis: redis.Redis | None = None
        self._pending: set[asyncio.Task] = set()

    def get_redis(self) -> redis.Redis:
        """Lazy-load Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    def emit(self, event: DomainEvent) -> None:
        task = asyncio.get_running_loop().create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, event: DomainEvent) -> None:
        try:
            await self.get_redis().publish(self.channel, event.model_dump_json())
        except redis.RedisError as e:
            logger.warning(
                f"Failed to publish {event.event_type} for booking {event.booking_id}: {e}"
            )

    async def close(self) -> None:
        """Wait for in-flight publishes, then close the connection."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_notification_emitter() -> NotificationEmitter:
    """Build the emitter selected by configuration."""
    if settings.notification_backend == "memory":
        return InMemoryNotificationEmitter()
    return RedisNotificationEmitter()

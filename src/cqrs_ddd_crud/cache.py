"""Cache invalidation after mutations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .ports.publisher import ICachePublisher

logger = logging.getLogger("cqrs_ddd.crud.cache")

CACHE_CLEAN_TOPIC = "cache.clean"


class CacheInvalidator:
    """Broadcasts ``"<service_name>.*"`` once per successful mutation.

    The signal never fails the mutation: publisher errors are logged and
    dropped. Without a publisher this is a no-op.
    """

    def __init__(self, service_name: str, publisher: ICachePublisher | None = None) -> None:
        self._publisher = publisher
        self.pattern = f"{service_name}.*"

    async def invalidate(self) -> None:
        if self._publisher is None:
            return
        try:
            await self._publisher.publish(self.pattern)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache invalidation failed for %s: %s", self.pattern, e)


class InMemoryCachePublisher:
    """Records published patterns. Useful in tests."""

    def __init__(self) -> None:
        self._patterns: list[str] = []

    async def publish(self, pattern: str) -> None:
        self._patterns.append(pattern)

    def get_published(self) -> list[str]:
        """Return all published patterns in order."""
        return list(self._patterns)

    def clear(self) -> None:
        self._patterns.clear()


class MessagePublisherCacheBridge:
    """Forwards invalidation signals to a message publisher.

    Any object with ``async publish(topic, message, **kwargs)`` works, e.g. a
    RabbitMQ or Kafka message publisher. The pattern is sent as
    the message on the ``"cache.clean"`` topic.
    """

    def __init__(self, publisher: Any, topic: str = CACHE_CLEAN_TOPIC) -> None:
        self._publisher = publisher
        self._topic = topic

    async def publish(self, pattern: str) -> None:
        await self._publisher.publish(self._topic, pattern)

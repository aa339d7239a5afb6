"""ICachePublisher — broadcast port for cache invalidation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ICachePublisher(Protocol):
    """
    Port for broadcasting a cache-invalidation signal.

    ``pattern`` is a namespace glob such as ``"users.*"``. Implementations
    decide how the signal reaches cache listeners (message bus, cache
    service, …).
    """

    async def publish(self, pattern: str) -> None: ...

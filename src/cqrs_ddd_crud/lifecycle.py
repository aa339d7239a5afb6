"""LifecycleManager — adapter connect with retry, and disconnect."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from .ports.adapter import IStorageAdapter

logger = logging.getLogger("cqrs_ddd.crud.lifecycle")

DEFAULT_RETRY_INTERVAL = 1.0


class LifecycleManager:
    """Owns the adapter connection of a service.

    ``connect()`` never gives up: every failure is logged and retried after
    ``retry_interval`` seconds until the adapter connects. The optional
    ``after_connected`` hook (sync or async) then runs once; its errors are
    logged and do not fail the connect.
    """

    def __init__(
        self,
        adapter: IStorageAdapter,
        *,
        after_connected: Callable[[], Any] | None = None,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        name: str = "",
    ) -> None:
        self._adapter = adapter
        self._after_connected = after_connected
        self._retry_interval = retry_interval
        self._name = name
        self.attempts = 0

    async def connect(self) -> None:
        while True:
            self.attempts += 1
            try:
                await self._adapter.connect()
                break
            except Exception as e:  # noqa: BLE001
                logger.error("Connection error in %s: %s", self._name or "service", e)
                logger.warning(
                    "Reconnecting in %.1fs (attempt %d)...",
                    self._retry_interval,
                    self.attempts,
                )
                await asyncio.sleep(self._retry_interval)

        logger.debug("%s connected after %d attempt(s)", self._name, self.attempts)
        await self._run_after_connected()

    async def _run_after_connected(self) -> None:
        if self._after_connected is None:
            return
        try:
            result = self._after_connected()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("after_connected hook failed in %s", self._name)

    async def disconnect(self) -> None:
        disconnect = getattr(self._adapter, "disconnect", None)
        if callable(disconnect):
            await disconnect()

"""ServiceRegistry — in-process action routing between CRUD services."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .context import Context
from .primitives.exceptions import ActionNotFoundError

if TYPE_CHECKING:
    from .service import CrudService

logger = logging.getLogger("cqrs_ddd.crud.registry")


class ServiceRegistry:
    """Routes ``"<service>.<action>"`` calls to registered services.

    Implements :class:`~cqrs_ddd_crud.ports.transport.IActionCaller`, so it
    can be handed to services as their ``caller`` for remote population::

        registry = ServiceRegistry()
        users = registry.register(CrudService("users", caller=registry))
        posts = registry.register(
            CrudService("posts", settings={"populates": {"author": "users.model"}},
                        caller=registry)
        )

    Internal actions (``model``) are routed too: every caller of the registry
    is in-process.

    **Conflict detection:** registering a second service under a taken name
    raises ``ValueError``.
    """

    def __init__(self) -> None:
        self._services: dict[str, CrudService] = {}

    def register(self, service: CrudService) -> CrudService:
        existing = self._services.get(service.name)
        if existing is not None and existing is not service:
            raise ValueError(f"Duplicate service name: {service.name!r}")
        self._services[service.name] = service
        logger.debug("Registered service %s", service.name)
        return service

    def get(self, name: str) -> CrudService:
        try:
            return self._services[name]
        except KeyError:
            raise ActionNotFoundError(f"Unknown service {name!r}") from None

    async def call(self, action: str, params: dict[str, Any]) -> Any:
        service_name, sep, action_name = action.rpartition(".")
        if not sep or not service_name:
            raise ActionNotFoundError(
                f"Action name must be '<service>.<action>', got {action!r}"
            )
        service = self.get(service_name)
        ctx = Context(params=dict(params), caller=self)
        return await service.dispatch(action_name, params, ctx, internal=True)

    async def start_all(self) -> None:
        await asyncio.gather(*(service.start() for service in self._services.values()))

    async def stop_all(self) -> None:
        await asyncio.gather(*(service.stop() for service in self._services.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def __len__(self) -> int:
        return len(self._services)

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IActionCaller(Protocol):
    """
    Port for calling an action on another service.

    Used by remote populate rules. The population engine issues::

        await caller.call(
            "users.model",
            {"id": [...], "resultAsObject": True, "populate": False, ...},
        )

    and expects a mapping of (encoded) ID to resolved document.
    """

    async def call(self, action: str, params: dict[str, Any]) -> Any:
        """
        Invoke *action* with *params* and return its result.

        Args:
            action: Fully-qualified action name, e.g. ``"users.model"``.
            params: Action parameters.
        """
        ...

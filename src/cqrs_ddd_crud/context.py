"""Context — per-request state handed through the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .primitives.exceptions import ActionNotFoundError

if TYPE_CHECKING:
    from .ports.transport import IActionCaller


@dataclass
class Context:
    """Request-scoped context.

    Attributes:
        params: The raw parameters the action was invoked with.
        caller: Transport used for remote lookups (remote populate rules).
        meta: Free-form request metadata (user, correlation id, …).
    """

    params: dict[str, Any] = field(default_factory=dict)
    caller: IActionCaller | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    async def call(self, action: str, params: dict[str, Any]) -> Any:
        """Call *action* through the configured transport."""
        if self.caller is None:
            raise ActionNotFoundError(
                f"No action caller configured; cannot call {action!r}"
            )
        return await self.caller.call(action, params)

"""IStorageAdapter — storage backend protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..params import QueryParams


@runtime_checkable
class IStorageAdapter(Protocol):
    """
    Contract every storage backend must satisfy.

    All operations except :meth:`entity_to_object` are coroutines and may
    raise an adapter-specific :class:`~cqrs_ddd_crud.primitives.AdapterError`.
    Documents returned by the adapter are *native* documents; the service
    converts them with :meth:`entity_to_object` before any further processing.

    ``count`` must ignore ``limit``/``offset``. The service strips them before
    calling it, but adapters should not rely on that.

    Patches passed to the ``update_*`` methods are either a plain mapping of
    fields to set, or an operator document (``$set``, ``$unset``, ``$inc``).
    """

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def find(self, params: QueryParams) -> list[Any]: ...

    async def count(self, params: QueryParams) -> int: ...

    async def insert(self, entity: dict[str, Any]) -> Any: ...

    async def insert_many(self, entities: list[dict[str, Any]]) -> list[Any]: ...

    async def find_by_id(self, entity_id: Any) -> Any | None: ...

    async def find_by_ids(self, entity_ids: list[Any]) -> list[Any]:
        """Return documents in the order of *entity_ids*; missing ones omitted."""
        ...

    async def update_by_id(self, entity_id: Any, patch: dict[str, Any]) -> Any | None: ...

    async def update_many(
        self, query: dict[str, Any], patch: dict[str, Any]
    ) -> list[Any] | int: ...

    async def remove_by_id(self, entity_id: Any) -> Any | None: ...

    async def remove_many(self, query: dict[str, Any]) -> int: ...

    async def clear(self) -> int: ...

    def entity_to_object(self, entity: Any) -> dict[str, Any]: ...

"""InMemoryAdapter — dict-backed storage adapter for tests and prototyping."""

from __future__ import annotations

import copy
import uuid
from typing import TYPE_CHECKING, Any

from ..ports.adapter import IStorageAdapter
from ..primitives.exceptions import DuplicateEntityError
from ..projection import MISSING, get_path, set_path

if TYPE_CHECKING:
    import builtins

    from ..params import QueryParams


def _apply_patch(doc: dict[str, Any], patch: dict[str, Any]) -> None:
    """Apply a plain field mapping or a ``$set``/``$unset``/``$inc`` document."""
    if not any(key.startswith("$") for key in patch):
        patch = {"$set": patch}
    for path, value in patch.get("$set", {}).items():
        set_path(doc, path, copy.deepcopy(value))
    for path in patch.get("$unset", {}):
        parent, _, leaf = path.rpartition(".")
        target = get_path(doc, parent) if parent else doc
        if isinstance(target, dict):
            target.pop(leaf, None)
    for path, amount in patch.get("$inc", {}).items():
        current = get_path(doc, path)
        set_path(doc, path, (0 if current is MISSING else current) + amount)


def _sort_key(value: Any) -> tuple[int, Any]:
    # Missing/None values sort first, mixed types fall back to their repr.
    if value is MISSING or value is None:
        return (0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, repr(value))


class InMemoryAdapter(IStorageAdapter):
    """In-memory implementation of ``IStorageAdapter``.

    Stores plain dicts keyed by their ID field, in insertion order. Filters are
    equality matches on (dot-path) keys; ``search`` is a case-insensitive
    substring match over ``search_fields`` (every string field when unset).
    Documents are deep-copied on the way in and out.
    """

    def __init__(self, id_field: str = "_id") -> None:
        self._id_field = id_field
        self._store: dict[Any, dict[str, Any]] = {}
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    # ── Queries ──────────────────────────────────────────────────

    async def find(self, params: QueryParams) -> builtins.list[dict[str, Any]]:
        docs = self._filter(params)
        for field in reversed(params.sort or []):
            descending = field.startswith("-")
            name = field.lstrip("-")
            docs.sort(key=lambda d, n=name: _sort_key(get_path(d, n)), reverse=descending)
        start = params.offset or 0
        end = start + params.limit if params.limit else None
        return [copy.deepcopy(doc) for doc in docs[start:end]]

    async def count(self, params: QueryParams) -> int:
        return len(self._filter(params))

    async def find_by_id(self, entity_id: Any) -> dict[str, Any] | None:
        doc = self._store.get(entity_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_by_ids(
        self, entity_ids: builtins.list[Any]
    ) -> builtins.list[dict[str, Any]]:
        return [
            copy.deepcopy(self._store[entity_id])
            for entity_id in entity_ids
            if entity_id in self._store
        ]

    # ── Mutations ────────────────────────────────────────────────

    async def insert(self, entity: dict[str, Any]) -> dict[str, Any]:
        doc = copy.deepcopy(dict(entity))
        if doc.get(self._id_field) is None:
            doc[self._id_field] = uuid.uuid4().hex
        elif doc[self._id_field] in self._store:
            raise DuplicateEntityError(doc[self._id_field])
        self._store[doc[self._id_field]] = doc
        return copy.deepcopy(doc)

    async def insert_many(
        self, entities: builtins.list[dict[str, Any]]
    ) -> builtins.list[dict[str, Any]]:
        return [await self.insert(entity) for entity in entities]

    async def update_by_id(
        self, entity_id: Any, patch: dict[str, Any]
    ) -> dict[str, Any] | None:
        doc = self._store.get(entity_id)
        if doc is None:
            return None
        _apply_patch(doc, patch)
        return copy.deepcopy(doc)

    async def update_many(self, query: dict[str, Any], patch: dict[str, Any]) -> int:
        matched = [doc for doc in self._store.values() if self._matches(doc, query)]
        for doc in matched:
            _apply_patch(doc, patch)
        return len(matched)

    async def remove_by_id(self, entity_id: Any) -> dict[str, Any] | None:
        return self._store.pop(entity_id, None)

    async def remove_many(self, query: dict[str, Any]) -> int:
        ids = [
            entity_id
            for entity_id, doc in self._store.items()
            if self._matches(doc, query)
        ]
        for entity_id in ids:
            del self._store[entity_id]
        return len(ids)

    async def clear(self) -> int:
        count = len(self._store)
        self._store.clear()
        return count

    def entity_to_object(self, entity: Any) -> dict[str, Any]:
        return copy.deepcopy(dict(entity))

    # ── Helpers ──────────────────────────────────────────────────

    def _filter(self, params: QueryParams) -> builtins.list[dict[str, Any]]:
        return [
            doc
            for doc in self._store.values()
            if self._matches(doc, params.query or {})
            and self._matches_search(doc, params.search, params.search_fields)
        ]

    @staticmethod
    def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
        return all(get_path(doc, path) == value for path, value in query.items())

    @staticmethod
    def _matches_search(
        doc: dict[str, Any], search: str | None, fields: builtins.list[str] | None
    ) -> bool:
        if not search:
            return True
        needle = search.lower()
        if fields:
            values = [get_path(doc, field) for field in fields]
        else:
            values = list(doc.values())
        return any(isinstance(v, str) and needle in v.lower() for v in values)

    def __len__(self) -> int:
        return len(self._store)

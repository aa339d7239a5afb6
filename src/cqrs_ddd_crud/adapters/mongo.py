"""MongoAdapter — Motor-backed storage adapter, plus an ObjectId codec."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..ports.adapter import IStorageAdapter
from ..primitives.exceptions import (
    AdapterConnectionError,
    AdapterError,
    DuplicateEntityError,
)

if TYPE_CHECKING:
    import builtins
    from collections.abc import Iterator

    from motor.motor_asyncio import AsyncIOMotorClient

    from ..params import QueryParams

logger = logging.getLogger("cqrs_ddd.crud.mongo")


class MongoAdapterError(AdapterError):
    """Raised when a MongoDB operation fails."""


@contextmanager
def _translate_errors(operation: str, entity_id: Any = None) -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError as e:
        raise DuplicateEntityError(entity_id) from e
    except PyMongoError as e:
        raise MongoAdapterError(f"MongoDB {operation} failed: {e}") from e


class ObjectIdCodec:
    """Exposes ``ObjectId`` values as 24-char hex strings.

    Strings that are not valid ObjectIds decode to themselves so collections
    with custom string IDs keep working.
    """

    def encode(self, entity_id: Any) -> Any:
        if isinstance(entity_id, ObjectId):
            return str(entity_id)
        return entity_id

    def decode(self, external_id: Any) -> Any:
        if isinstance(external_id, str) and ObjectId.is_valid(external_id):
            return ObjectId(external_id)
        return external_id


def _as_patch(patch: dict[str, Any]) -> dict[str, Any]:
    if any(key.startswith("$") for key in patch):
        return patch
    return {"$set": patch}


class MongoAdapter(IStorageAdapter):
    """Storage adapter over one MongoDB collection.

    Pass either a connection ``url`` (a Motor client is created on
    :meth:`connect` and closed on :meth:`disconnect`) or a ready ``client``
    (used as is, never closed here).

    ``search`` is a case-insensitive regex over ``search_fields``; without
    search fields it falls back to a ``$text`` query, which needs a text index.
    """

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        database: str = "test",
        collection: str = "",
        *,
        client: Any = None,
        server_selection_timeout_ms: int = 5000,
        **client_kwargs: Any,
    ) -> None:
        if not collection:
            raise ValueError("MongoAdapter requires a collection name")
        self._url = url
        self._database = database
        self._collection_name = collection
        self._client: AsyncIOMotorClient[Any] | Any = client
        self._owns_client = client is None
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._client_kwargs = client_kwargs

    async def connect(self) -> None:
        if self._client is not None and not self._owns_client:
            return
        try:
            from motor.motor_asyncio import AsyncIOMotorClient
        except ImportError as e:
            raise AdapterConnectionError(
                "motor is required; install with motor>=3.3.0"
            ) from e
        try:
            if self._client is None:
                self._client = AsyncIOMotorClient(
                    self._url,
                    serverSelectionTimeoutMS=self._server_selection_timeout_ms,
                    **self._client_kwargs,
                )
            await self._client.admin.command("ping")
        except Exception as e:
            raise AdapterConnectionError(str(e)) from e
        logger.info("Connected to MongoDB collection %s", self._collection_name)

    async def disconnect(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def _collection(self) -> Any:
        if self._client is None:
            raise AdapterConnectionError("Not connected; call connect() first")
        return self._client.get_database(self._database).get_collection(
            self._collection_name
        )

    # ── Query building ───────────────────────────────────────────

    @staticmethod
    def build_match(params: QueryParams) -> dict[str, Any]:
        """Combine ``query`` and ``search`` into a single ``$match`` filter."""
        match: dict[str, Any] = dict(params.query or {})
        if not params.search:
            return match

        if params.search_fields:
            pattern = re.escape(params.search)
            search: dict[str, Any] = {
                "$or": [
                    {field: {"$regex": pattern, "$options": "i"}}
                    for field in params.search_fields
                ]
            }
        else:
            search = {"$text": {"$search": params.search}}

        if not match:
            return search
        return {"$and": [match, search]}

    @staticmethod
    def build_sort(sort: builtins.list[str] | None) -> dict[str, int]:
        return {field.lstrip("-"): -1 if field.startswith("-") else 1 for field in sort or []}

    def build_pipeline(self, params: QueryParams) -> builtins.list[dict[str, Any]]:
        pipeline: builtins.list[dict[str, Any]] = []
        match = self.build_match(params)
        if match:
            pipeline.append({"$match": match})
        sort = self.build_sort(params.sort)
        if sort:
            pipeline.append({"$sort": sort})
        if params.offset:
            pipeline.append({"$skip": params.offset})
        if params.limit:
            pipeline.append({"$limit": params.limit})
        return pipeline

    # ── Queries ──────────────────────────────────────────────────

    async def find(self, params: QueryParams) -> builtins.list[dict[str, Any]]:
        with _translate_errors("find"):
            cursor = self._collection().aggregate(self.build_pipeline(params))
            return [doc async for doc in cursor]

    async def count(self, params: QueryParams) -> int:
        with _translate_errors("count"):
            return int(
                await self._collection().count_documents(self.build_match(params))
            )

    async def find_by_id(self, entity_id: Any) -> dict[str, Any] | None:
        with _translate_errors("find_by_id"):
            doc: dict[str, Any] | None = await self._collection().find_one(
                {"_id": entity_id}
            )
        return doc

    async def find_by_ids(
        self, entity_ids: builtins.list[Any]
    ) -> builtins.list[dict[str, Any]]:
        with _translate_errors("find_by_ids"):
            cursor = self._collection().find({"_id": {"$in": list(entity_ids)}})
            by_id = {doc["_id"]: doc async for doc in cursor}
        return [by_id[entity_id] for entity_id in entity_ids if entity_id in by_id]

    # ── Mutations ────────────────────────────────────────────────

    async def insert(self, entity: dict[str, Any]) -> dict[str, Any]:
        doc = dict(entity)
        with _translate_errors("insert", doc.get("_id")):
            await self._collection().insert_one(doc)
        return doc

    async def insert_many(
        self, entities: builtins.list[dict[str, Any]]
    ) -> builtins.list[dict[str, Any]]:
        docs = [dict(entity) for entity in entities]
        if docs:
            with _translate_errors("insert_many"):
                await self._collection().insert_many(docs)
        return docs

    async def update_by_id(
        self, entity_id: Any, patch: dict[str, Any]
    ) -> dict[str, Any] | None:
        with _translate_errors("update_by_id", entity_id):
            doc: dict[str, Any] | None = await self._collection().find_one_and_update(
                {"_id": entity_id},
                _as_patch(patch),
                return_document=ReturnDocument.AFTER,
            )
        return doc

    async def update_many(self, query: dict[str, Any], patch: dict[str, Any]) -> int:
        with _translate_errors("update_many"):
            result = await self._collection().update_many(query, _as_patch(patch))
        return int(result.modified_count)

    async def remove_by_id(self, entity_id: Any) -> dict[str, Any] | None:
        with _translate_errors("remove_by_id"):
            doc: dict[str, Any] | None = await self._collection().find_one_and_delete(
                {"_id": entity_id}
            )
        return doc

    async def remove_many(self, query: dict[str, Any]) -> int:
        with _translate_errors("remove_many"):
            result = await self._collection().delete_many(query)
        return int(result.deleted_count)

    async def clear(self) -> int:
        with _translate_errors("clear"):
            result = await self._collection().delete_many({})
        return int(result.deleted_count)

    def entity_to_object(self, entity: Any) -> dict[str, Any]:
        return dict(entity)

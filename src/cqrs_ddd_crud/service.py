"""
CrudService — CRUD actions over a pluggable storage adapter.

The service composes the pipeline explicitly: frozen :class:`CrudSettings`,
an injected :class:`IStorageAdapter`, and one collaborator per concern
(parameter sanitizing, validation, transformation, cache invalidation,
lifecycle)::

    users = CrudService(
        "users",
        adapter=MongoAdapter(url, "app", "users"),
        settings={"fields": ["_id", "name"], "populates": {"team": "teams.model"}},
        caller=registry,
        publisher=InMemoryCachePublisher(),
    )
    await users.start()
    page = await users.list({"page": 2, "pageSize": 20})

Actions take the raw request parameters (camelCase keys) and an optional
:class:`Context`. ``model`` is internal: other services call it to populate
their relations.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .adapters.memory import InMemoryAdapter
from .cache import CacheInvalidator
from .context import Context
from .lifecycle import DEFAULT_RETRY_INTERVAL, LifecycleManager
from .params import QueryParams, sanitize_params
from .populate import PopulationEngine
from .ports.codec import IdentityCodec
from .primitives.exceptions import (
    ActionNotFoundError,
    EntityNotFoundError,
    ValidationError,
)
from .projection import FieldProjector
from .settings import CrudSettings
from .transform import DocumentTransformer, TransformDirective
from .validation import EntityValidator

if TYPE_CHECKING:
    import builtins
    from collections.abc import Callable, Mapping

    from .ports.adapter import IStorageAdapter
    from .ports.codec import IIdCodec
    from .ports.publisher import ICachePublisher
    from .ports.transport import IActionCaller

logger = logging.getLogger("cqrs_ddd.crud.service")

ACTIONS = ("find", "count", "list", "create", "get", "model", "update", "remove")
INTERNAL_ACTIONS = frozenset({"model"})


def total_pages(total: int, page_size: int) -> int:
    """Ceiling of ``total / page_size`` in integer arithmetic."""
    return (total + page_size - 1) // page_size


@dataclass(frozen=True)
class PageResult:
    """One page of a ``list`` call."""

    rows: list[Any]
    total: int
    page: int
    page_size: int
    total_pages: int

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the wire shape ``{rows, total, page, pageSize, totalPages}``."""
        return {
            "rows": self.rows,
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }


class CrudService:
    """Generic CRUD service bound to one adapter and one settings object."""

    def __init__(
        self,
        name: str,
        adapter: IStorageAdapter | None = None,
        settings: CrudSettings | Mapping[str, Any] | None = None,
        *,
        caller: IActionCaller | None = None,
        publisher: ICachePublisher | None = None,
        id_codec: IIdCodec | None = None,
        after_connected: Callable[[CrudService], Any] | None = None,
        authorize_fields: Callable[[list[str]], list[str]] | None = None,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ) -> None:
        if not name:
            raise ValueError("CrudService requires a name")
        self.name = name
        if isinstance(settings, CrudSettings):
            self.settings = settings
        else:
            self.settings = CrudSettings.model_validate(dict(settings or {}))

        self.adapter: IStorageAdapter = adapter or InMemoryAdapter(
            id_field=self.settings.id_field
        )
        self.caller = caller
        self.codec: IIdCodec = id_codec or IdentityCodec()

        self.projector = FieldProjector(authorize_fields)
        self.populator = PopulationEngine(self.settings.populates)
        self.transformer = DocumentTransformer(
            self.adapter, self.settings, self.codec, self.populator, self.projector
        )
        self.validator = EntityValidator(self.settings.entity_validator)
        self.invalidator = CacheInvalidator(name, publisher)

        hook = None
        if after_connected is not None:

            def hook() -> Any:
                return after_connected(self)

        self.lifecycle = LifecycleManager(
            self.adapter,
            after_connected=hook,
            retry_interval=retry_interval,
            name=name,
        )

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        await self.lifecycle.connect()

    async def stop(self) -> None:
        await self.lifecycle.disconnect()

    # ── Dispatch ─────────────────────────────────────────────────

    async def dispatch(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        ctx: Context | None = None,
        *,
        internal: bool = False,
    ) -> Any:
        """Invoke an action by name (``"find"``, ``"list"``, …).

        Actions in ``INTERNAL_ACTIONS`` (``model``) are only routed for
        in-process callers, which pass ``internal=True``.
        """
        if action not in ACTIONS or (action in INTERNAL_ACTIONS and not internal):
            raise ActionNotFoundError(f"{self.name} has no action {action!r}")
        logger.debug("Dispatching %s.%s", self.name, action)
        return await getattr(self, action)(params, ctx)

    # ── Read actions ─────────────────────────────────────────────

    async def find(
        self, params: Mapping[str, Any] | None = None, ctx: Context | None = None
    ) -> builtins.list[Any]:
        ctx = self._context(params, ctx)
        query = sanitize_params(params, self.settings)
        return await self._find(query, ctx)

    async def count(
        self,
        params: Mapping[str, Any] | None = None,
        ctx: Context | None = None,  # noqa: ARG002
    ) -> int:
        query = sanitize_params(params, self.settings)
        return await self._count(query)

    async def list(
        self, params: Mapping[str, Any] | None = None, ctx: Context | None = None
    ) -> PageResult:
        """Fetch one page and the total count concurrently."""
        ctx = self._context(params, ctx)
        query = sanitize_params(params, self.settings, for_list=True)

        rows, total = await asyncio.gather(
            self._find(query, ctx),
            self._count(query),
        )

        page_size = query.page_size or self.settings.page_size
        return PageResult(
            rows=rows,
            total=total,
            page=query.page or 1,
            page_size=page_size,
            total_pages=total_pages(total, page_size),
        )

    async def get(self, params: Mapping[str, Any], ctx: Context | None = None) -> Any:
        """Fetch one entity (or a list, for a list of IDs); populated by default."""
        ctx = self._context(params, ctx)
        entity_id = _require(params, "id")
        directive = TransformDirective.from_params(params)

        if isinstance(entity_id, (list, tuple)):
            docs = await self._find_by_ids(entity_id)
            return await self.transformer.transform(docs, ctx, directive)

        doc = await self.adapter.find_by_id(self.codec.decode(entity_id))
        if doc is None:
            raise EntityNotFoundError(self.name, entity_id)
        return await self.transformer.transform(doc, ctx, directive)

    async def model(self, params: Mapping[str, Any], ctx: Context | None = None) -> Any:
        """Fetch by ID or IDs for internal use. Not populated unless asked.

        With a list of IDs and ``resultAsObject`` the result is a mapping of
        encoded ID to document; IDs that do not exist are left out.
        """
        ctx = self._context(params, ctx)
        entity_id = _require(params, "id")
        directive = TransformDirective.from_params(params, populate_default=False)

        if isinstance(entity_id, (list, tuple)):
            docs = await self._find_by_ids(entity_id)
            if _flag(params, "resultAsObject", "result_as_object"):
                return await self.transformer.transform_keyed(docs, ctx, directive)
            return await self.transformer.transform(docs, ctx, directive)

        doc = await self.adapter.find_by_id(self.codec.decode(entity_id))
        return await self.transformer.transform(doc, ctx, directive)

    # ── Write actions ────────────────────────────────────────────

    async def create(self, params: Mapping[str, Any], ctx: Context | None = None) -> Any:
        ctx = self._context(params, ctx)
        entity = await self.validator.validate(_require(params, "entity"))
        doc = await self.adapter.insert(entity)
        return await self._after_mutation(doc, params, ctx)

    async def update(self, params: Mapping[str, Any], ctx: Context | None = None) -> Any:
        ctx = self._context(params, ctx)
        entity_id = _require(params, "id")
        patch = _require(params, "update")
        doc = await self.adapter.update_by_id(self.codec.decode(entity_id), patch)
        if doc is None:
            raise EntityNotFoundError(self.name, entity_id)
        return await self._after_mutation(doc, params, ctx)

    async def remove(self, params: Mapping[str, Any], ctx: Context | None = None) -> Any:
        ctx = self._context(params, ctx)
        entity_id = _require(params, "id")
        doc = await self.adapter.remove_by_id(self.codec.decode(entity_id))
        if doc is None or doc == 0:
            raise EntityNotFoundError(self.name, entity_id)
        return await self._after_mutation(doc, params, ctx)

    # ── Bulk methods ─────────────────────────────────────────────

    async def create_many(
        self, entities: builtins.list[dict[str, Any]], ctx: Context | None = None
    ) -> builtins.list[Any]:
        ctx = self._context(None, ctx)
        entities = await self.validator.validate(list(entities))
        docs = await self.adapter.insert_many(entities)
        return await self._after_mutation(docs, None, ctx)  # type: ignore[no-any-return]

    async def update_many(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        ctx: Context | None = None,
    ) -> Any:
        ctx = self._context(None, ctx)
        result = await self.adapter.update_many(query, update)
        return await self._after_mutation(result, None, ctx)

    async def remove_many(self, query: dict[str, Any], ctx: Context | None = None) -> Any:
        ctx = self._context(None, ctx)
        result = await self.adapter.remove_many(query)
        return await self._after_mutation(result, None, ctx)

    async def clear(self) -> int:
        """Delete every entity; returns the number removed."""
        count = await self.adapter.clear()
        await self.invalidator.invalidate()
        return count

    # ── Internals ────────────────────────────────────────────────

    async def _find(self, query: QueryParams, ctx: Context) -> builtins.list[Any]:
        docs = await self.adapter.find(query)
        return await self.transformer.transform(  # type: ignore[no-any-return]
            docs, ctx, TransformDirective.from_params(query)
        )

    async def _count(self, query: QueryParams) -> int:
        return await self.adapter.count(query.without_pagination())

    async def _find_by_ids(self, entity_ids: Any) -> builtins.list[Any]:
        docs = await self.adapter.find_by_ids([self.codec.decode(i) for i in entity_ids])
        return [doc for doc in docs if doc is not None]

    async def _after_mutation(
        self, result: Any, params: Mapping[str, Any] | None, ctx: Context
    ) -> Any:
        transformed = await self.transformer.transform(
            result, ctx, TransformDirective.from_params(params or {})
        )
        await self.invalidator.invalidate()
        return transformed

    def _context(self, params: Mapping[str, Any] | None, ctx: Context | None) -> Context:
        if ctx is None:
            return Context(params=dict(params or {}), caller=self.caller)
        if ctx.caller is None and self.caller is not None:
            return dataclasses.replace(ctx, caller=self.caller)
        return ctx


def _require(params: Mapping[str, Any] | None, key: str) -> Any:
    if not params or key not in params:
        raise ValidationError({key: ["is required"]})
    return params[key]


def _flag(params: Mapping[str, Any], *names: str) -> bool:
    return any(bool(params.get(name)) for name in names)

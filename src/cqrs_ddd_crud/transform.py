"""DocumentTransformer — turns native adapter documents into response documents."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .projection import normalize_fields

if TYPE_CHECKING:
    from .context import Context
    from .populate import PopulationEngine
    from .ports.adapter import IStorageAdapter
    from .ports.codec import IIdCodec
    from .projection import FieldProjector
    from .settings import CrudSettings

_SCALARS = (str, bytes, int, float, bool)


@dataclass(frozen=True)
class TransformDirective:
    """What a request asks of the transformer.

    ``fields=None`` falls back to the settings' default projection;
    ``fields=False`` returns full documents.
    """

    populate: bool = True
    fields: list[str] | bool | None = None

    @classmethod
    def from_params(cls, params: Any, *, populate_default: bool = True) -> TransformDirective:
        if isinstance(params, Mapping):
            populate = params.get("populate")
            fields = params.get("fields")
        else:
            populate = getattr(params, "populate", None)
            fields = getattr(params, "fields", None)
        return cls(
            populate=populate_default if populate is None else bool(populate),
            fields=normalize_fields(fields),
        )


class DocumentTransformer:
    """Runs the response pipeline over one document or an ordered list.

    Steps, in order: ``entity_to_object`` → encode the ID field → populate
    relations → project fields. A single document goes in and comes out
    single; ``None`` and scalar results (counts) pass through untouched.
    Document order is never changed.
    """

    def __init__(
        self,
        adapter: IStorageAdapter,
        settings: CrudSettings,
        codec: IIdCodec,
        populator: PopulationEngine,
        projector: FieldProjector,
    ) -> None:
        self._adapter = adapter
        self._settings = settings
        self._codec = codec
        self._populator = populator
        self._projector = projector

    async def transform(
        self,
        docs: Any,
        ctx: Context,
        directive: TransformDirective | None = None,
    ) -> Any:
        if docs is None or isinstance(docs, _SCALARS):
            return docs

        single = not isinstance(docs, (list, tuple))
        items = [docs] if single else list(docs)
        _, results = await self._run(items, ctx, directive or TransformDirective())
        return results[0] if single else results

    async def transform_keyed(
        self,
        docs: list[Any],
        ctx: Context,
        directive: TransformDirective | None = None,
    ) -> dict[Any, Any]:
        """Transform *docs* into a mapping of encoded ID to document."""
        keys, results = await self._run(
            list(docs), ctx, directive or TransformDirective()
        )
        return dict(zip(keys, results))

    async def _run(
        self,
        items: list[Any],
        ctx: Context,
        directive: TransformDirective,
    ) -> tuple[list[Any], list[Any]]:
        id_field = self._settings.id_field
        objects = [self._adapter.entity_to_object(item) for item in items]

        keys: list[Any] = []
        for obj in objects:
            if id_field in obj:
                obj[id_field] = self._codec.encode(obj[id_field])
            keys.append(obj.get(id_field))

        if directive.populate:
            await self._populator.populate(objects, ctx)

        fields = self._resolve_fields(directive)
        return keys, [self._projector.project(obj, fields) for obj in objects]

    def _resolve_fields(self, directive: TransformDirective) -> list[str] | bool | None:
        if directive.fields is None:
            return self._settings.fields
        return directive.fields

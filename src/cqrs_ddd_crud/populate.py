"""
Relation population: replaces foreign-key fields with the entities they
reference.

A populate rule is resolved once, when settings are built, into one of two
variants:

- :class:`LocalPopulate`: an in-process handler
  ``handler(ids, rule, ctx) -> {id: value}`` (sync or async).
- :class:`RemotePopulate`: a batched lookup through the request's action
  caller, ``ctx.call(action, {"id": ids, "resultAsObject": True, ...})``.

Raw configuration accepted by :func:`build_populate_rule`::

    populates = {
        "author": "users.model",                      # remote, by action name
        "tags": {"action": "tags.model", "populate": True, "params": {...}},
        "likes": count_likes,                         # local handler
        "votes": {"handler": load_votes},             # local handler
    }
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from .primitives.exceptions import PopulationError
from .projection import MISSING

if TYPE_CHECKING:
    from collections.abc import Callable

    from .context import Context

logger = logging.getLogger("cqrs_ddd.crud.populate")


@dataclass(frozen=True)
class LocalPopulate:
    """Resolve IDs with an in-process handler."""

    field: str
    handler: Callable[..., Any]

    def describe(self) -> str:
        name = getattr(self.handler, "__name__", type(self.handler).__name__)
        return f"handler {name}"


@dataclass(frozen=True)
class RemotePopulate:
    """Resolve IDs with a single batched action call."""

    field: str
    action: str
    params: Mapping[str, Any] = field(default_factory=dict)
    populate: bool = False

    def describe(self) -> str:
        return f"action {self.action!r}"

    def call_params(self, ids: list[Any]) -> dict[str, Any]:
        return {
            "id": ids,
            "resultAsObject": True,
            "populate": self.populate,
            **self.params,
        }


PopulateRule = Union[LocalPopulate, RemotePopulate]


def build_populate_rule(field_name: str, raw: Any) -> PopulateRule:
    """Turn a raw populate configuration entry into a rule variant."""
    if isinstance(raw, (LocalPopulate, RemotePopulate)):
        if raw.field == field_name:
            return raw
        if isinstance(raw, LocalPopulate):
            return LocalPopulate(field=field_name, handler=raw.handler)
        return RemotePopulate(
            field=field_name,
            action=raw.action,
            params=raw.params,
            populate=raw.populate,
        )
    if isinstance(raw, str):
        return RemotePopulate(field=field_name, action=raw)
    if isinstance(raw, Mapping):
        if "handler" in raw:
            return LocalPopulate(field=field_name, handler=raw["handler"])
        if "action" in raw:
            return RemotePopulate(
                field=field_name,
                action=raw["action"],
                params=dict(raw.get("params") or {}),
                populate=bool(raw.get("populate", False)),
            )
        raise ValueError(
            f"Populate rule for {field_name!r} needs an 'action' or a 'handler'"
        )
    if callable(raw):
        return LocalPopulate(field=field_name, handler=raw)
    raise TypeError(
        f"Unsupported populate rule for {field_name!r}: {type(raw).__name__}"
    )


def build_populate_rules(raw: Mapping[str, Any] | None) -> dict[str, PopulateRule]:
    if not raw:
        return {}
    return {name: build_populate_rule(name, rule) for name, rule in raw.items()}


def collect_ids(docs: list[dict[str, Any]], field_name: str) -> list[Any]:
    """Gather the unique, non-null foreign IDs of *field_name* across *docs*.

    List values are flattened one level. First-seen order is kept.
    """
    ids: list[Any] = []
    for doc in docs:
        value = doc.get(field_name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            ids.extend(item for item in value if item is not None)
        else:
            ids.append(value)
    return list(dict.fromkeys(ids))


def _lookup(resolved: Mapping[Any, Any], entity_id: Any) -> Any:
    if entity_id in resolved:
        return resolved[entity_id]
    key = str(entity_id)
    if key in resolved:
        return resolved[key]
    return MISSING


def merge_resolved(
    docs: list[dict[str, Any]], field_name: str, resolved: Mapping[Any, Any]
) -> None:
    """Write resolved values back into *docs* in place.

    List fields keep their order and drop unresolved IDs. Scalar fields take
    the resolved value; when unresolved the key is removed.
    """
    for doc in docs:
        value = doc.get(field_name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            models = [_lookup(resolved, item) for item in value if item is not None]
            doc[field_name] = [m for m in models if m is not MISSING and m is not None]
        else:
            model = _lookup(resolved, value)
            if model is MISSING:
                doc.pop(field_name, None)
            else:
                doc[field_name] = model


class PopulationEngine:
    """Resolves the configured relations of a batch of documents.

    Every rule with at least one ID is resolved concurrently; the engine
    returns once all of them have been merged. A single failing rule raises
    :class:`PopulationError` and no partially populated batch is returned.
    """

    def __init__(self, rules: Mapping[str, PopulateRule] | None = None) -> None:
        self._rules: dict[str, PopulateRule] = dict(rules or {})

    @property
    def rules(self) -> dict[str, PopulateRule]:
        return dict(self._rules)

    async def populate(
        self,
        docs: list[dict[str, Any]],
        ctx: Context,
        rules: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        active = self._rules if rules is None else build_populate_rules(rules)
        if not docs or not active:
            return docs

        pending = []
        for field_name, rule in active.items():
            ids = collect_ids(docs, field_name)
            if not ids:
                continue
            pending.append(self._populate_rule(docs, rule, ids, ctx))

        if pending:
            await asyncio.gather(*pending)
        return docs

    async def _populate_rule(
        self,
        docs: list[dict[str, Any]],
        rule: PopulateRule,
        ids: list[Any],
        ctx: Context,
    ) -> None:
        logger.debug(
            "Populating %s with %d id(s) via %s", rule.field, len(ids), rule.describe()
        )
        try:
            resolved = await self._resolve(rule, ids, ctx)
        except PopulationError:
            raise
        except Exception as exc:
            raise PopulationError(rule.field, rule.describe(), str(exc)) from exc

        if not isinstance(resolved, Mapping):
            raise PopulationError(
                rule.field,
                rule.describe(),
                f"expected a mapping of id to value, got {type(resolved).__name__}",
            )
        merge_resolved(docs, rule.field, resolved)

    async def _resolve(self, rule: PopulateRule, ids: list[Any], ctx: Context) -> Any:
        if isinstance(rule, LocalPopulate):
            result = rule.handler(ids, rule, ctx)
            if inspect.isawaitable(result):
                result = await result
            return result
        return await ctx.call(rule.action, rule.call_params(ids))

"""Tests for CrudService actions over the in-memory adapter."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from cqrs_ddd_crud.adapters.memory import InMemoryAdapter
from cqrs_ddd_crud.cache import InMemoryCachePublisher
from cqrs_ddd_crud.context import Context
from cqrs_ddd_crud.params import QueryParams
from cqrs_ddd_crud.primitives.exceptions import (
    ActionNotFoundError,
    AdapterError,
    EntityNotFoundError,
    ValidationError,
)
from cqrs_ddd_crud.service import CrudService, PageResult, total_pages


class PrefixCodec:
    def encode(self, entity_id: Any) -> Any:
        return f"ext-{entity_id}"

    def decode(self, external_id: Any) -> Any:
        return str(external_id).removeprefix("ext-")


class SlowCountAdapter(InMemoryAdapter):
    """Find blocks until count has started."""

    def __init__(self) -> None:
        super().__init__()
        self.count_started = asyncio.Event()
        self.count_params: list[QueryParams] = []

    async def find(self, params: QueryParams) -> list[dict[str, Any]]:
        await asyncio.wait_for(self.count_started.wait(), timeout=1)
        return await super().find(params)

    async def count(self, params: QueryParams) -> int:
        self.count_params.append(params)
        self.count_started.set()
        await asyncio.sleep(0.01)
        return await super().count(params)


async def seed(service: CrudService, count: int) -> None:
    for i in range(count):
        await service.adapter.insert({"_id": i, "n": i})


def test_total_pages() -> None:
    assert total_pages(25, 10) == 3
    assert total_pages(20, 10) == 2
    assert total_pages(0, 10) == 0


def test_page_result_wire_shape() -> None:
    page = PageResult(rows=[], total=0, page=1, page_size=10, total_pages=0)

    assert page.to_dict() == {
        "rows": [],
        "total": 0,
        "page": 1,
        "pageSize": 10,
        "totalPages": 0,
    }


def test_service_requires_name() -> None:
    with pytest.raises(ValueError):
        CrudService("")


@pytest.mark.asyncio
class TestReadActions:
    async def test_find_applies_sort_limit_offset(self) -> None:
        service = CrudService("items")
        await seed(service, 5)

        rows = await service.find({"sort": "-n", "limit": "2", "offset": "1"})

        assert [r["n"] for r in rows] == [3, 2]

    async def test_count_ignores_pagination(self) -> None:
        service = CrudService("items")
        await seed(service, 5)

        assert await service.count({"limit": 2, "offset": 1}) == 5

    async def test_count_with_query(self) -> None:
        service = CrudService("items")
        await seed(service, 5)

        assert await service.count({"query": {"n": 3}}) == 1

    async def test_list_defaults(self) -> None:
        service = CrudService("items")
        await seed(service, 25)

        page = await service.list()

        assert page.page == 1
        assert page.page_size == 10
        assert page.total == 25
        assert page.total_pages == 3
        assert [r["n"] for r in page.rows] == list(range(10))

    async def test_list_last_page(self) -> None:
        service = CrudService("items")
        await seed(service, 25)

        page = await service.list({"page": 3, "pageSize": 10})

        assert [r["n"] for r in page.rows] == [20, 21, 22, 23, 24]

    async def test_list_clamps_page_size(self) -> None:
        service = CrudService("items")
        await seed(service, 3)

        page = await service.list({"pageSize": 500})

        assert page.page_size == 100

    async def test_list_empty_collection(self) -> None:
        page = await CrudService("items").list()

        assert page.rows == []
        assert page.total == 0
        assert page.total_pages == 0

    async def test_list_runs_find_and_count_concurrently(self) -> None:
        adapter = SlowCountAdapter()
        service = CrudService("items", adapter)
        await seed(service, 15)

        page = await service.list({"page": 2})

        assert page.total == 15
        assert len(page.rows) == 5
        # Count sees the filter without the page window.
        assert adapter.count_params[0].limit is None
        assert adapter.count_params[0].offset is None

    async def test_get_missing_raises(self) -> None:
        with pytest.raises(EntityNotFoundError):
            await CrudService("items").get({"id": "nope"})

    async def test_get_requires_id(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await CrudService("items").get({})

        assert exc_info.value.errors == {"id": ["is required"]}

    async def test_get_list_of_ids_keeps_order(self) -> None:
        service = CrudService("items")
        await seed(service, 3)

        rows = await service.get({"id": [2, 99, 0]})

        assert [r["_id"] for r in rows] == [2, 0]

    async def test_get_applies_projection(self) -> None:
        service = CrudService("items", settings={"fields": ["_id"]})
        await seed(service, 1)

        assert await service.get({"id": 0}) == {"_id": 0}

    async def test_model_missing_single_id_returns_none(self) -> None:
        assert await CrudService("items").model({"id": "nope"}) is None

    async def test_model_result_as_object(self) -> None:
        service = CrudService("items", id_codec=PrefixCodec())
        await service.adapter.insert({"_id": "a", "name": "A"})
        await service.adapter.insert({"_id": "b", "name": "B"})

        result = await service.model(
            {"id": ["ext-b", "ext-zz", "ext-a"], "resultAsObject": True}
        )

        assert result == {
            "ext-b": {"_id": "ext-b", "name": "B"},
            "ext-a": {"_id": "ext-a", "name": "A"},
        }

    async def test_model_does_not_populate_by_default(self) -> None:
        lookup = AsyncMock(return_value={})
        service = CrudService("items", settings={"populates": {"owner": lookup}})
        await service.adapter.insert({"_id": 1, "owner": 5})

        assert await service.model({"id": 1}) == {"_id": 1, "owner": 5}
        lookup.assert_not_awaited()

    async def test_get_populates_by_default(self) -> None:
        async def lookup(ids: list[Any], rule: Any, ctx: Any) -> dict[Any, Any]:
            return {i: {"name": f"user-{i}"} for i in ids}

        service = CrudService("items", settings={"populates": {"owner": lookup}})
        await service.adapter.insert({"_id": 1, "owner": 5})

        assert await service.get({"id": 1}) == {"_id": 1, "owner": {"name": "user-5"}}
        assert await service.get({"id": 1, "populate": False}) == {"_id": 1, "owner": 5}


@pytest.mark.asyncio
class TestWriteActions:
    async def test_create_then_get(self) -> None:
        service = CrudService("items")

        created = await service.create({"entity": {"name": "Walter"}})
        fetched = await service.get({"id": created["_id"]})

        assert fetched == created
        assert fetched["name"] == "Walter"

    async def test_create_requires_entity(self) -> None:
        with pytest.raises(ValidationError):
            await CrudService("items").create({})

    async def test_update_patches_entity(self) -> None:
        service = CrudService("items")
        created = await service.create({"entity": {"name": "a", "votes": 1}})

        updated = await service.update(
            {"id": created["_id"], "update": {"$inc": {"votes": 2}}}
        )

        assert updated["votes"] == 3
        assert updated["name"] == "a"

    async def test_update_missing_raises(self) -> None:
        with pytest.raises(EntityNotFoundError):
            await CrudService("items").update({"id": "nope", "update": {"a": 1}})

    async def test_update_requires_patch(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await CrudService("items").update({"id": 1})

        assert "update" in exc_info.value.errors

    async def test_remove_returns_removed_entity(self) -> None:
        service = CrudService("items")
        created = await service.create({"entity": {"name": "a"}})

        removed = await service.remove({"id": created["_id"]})

        assert removed == created
        assert await service.count() == 0

    async def test_remove_missing_raises(self) -> None:
        with pytest.raises(EntityNotFoundError):
            await CrudService("items").remove({"id": "nope"})

    async def test_validation_failure_skips_adapter(self) -> None:
        adapter = AsyncMock()
        service = CrudService(
            "items", adapter, settings={"entity_validator": lambda e: "name" in e}
        )

        with pytest.raises(ValidationError):
            await service.create({"entity": {"title": "x"}})

        adapter.insert.assert_not_awaited()

    async def test_create_many_validates_every_entity(self) -> None:
        adapter = AsyncMock()
        service = CrudService(
            "items", adapter, settings={"entity_validator": {"name": str}}
        )

        with pytest.raises(ValidationError):
            await service.create_many([{"name": "ok"}, {"title": "missing name"}])

        adapter.insert_many.assert_not_awaited()

    async def test_bulk_methods(self) -> None:
        service = CrudService("items")
        await service.create_many([{"kind": "a"}, {"kind": "a"}, {"kind": "b"}])

        assert await service.update_many({"kind": "a"}, {"kind": "c"}) == 2
        assert await service.count({"query": {"kind": "c"}}) == 2
        assert await service.remove_many({"kind": "c"}) == 2
        assert await service.clear() == 1
        assert await service.count() == 0


@pytest.mark.asyncio
class TestIdCodec:
    async def test_ids_are_decoded_and_encoded(self) -> None:
        service = CrudService("items", id_codec=PrefixCodec())

        created = await service.create({"entity": {"_id": "42", "name": "x"}})

        assert created["_id"] == "ext-42"
        assert await service.adapter.find_by_id("42") is not None
        assert (await service.get({"id": "ext-42"}))["name"] == "x"
        assert (await service.update({"id": "ext-42", "update": {"n": 1}}))["n"] == 1
        assert (await service.remove({"id": "ext-42"}))["_id"] == "ext-42"

    async def test_identity_codec_round_trip(self) -> None:
        service = CrudService("items")

        for value in ("abc", 7, None):
            assert service.codec.encode(service.codec.decode(value)) == value


@pytest.mark.asyncio
class TestCacheInvalidation:
    @pytest.fixture
    def publisher(self) -> InMemoryCachePublisher:
        return InMemoryCachePublisher()

    async def test_each_mutation_invalidates_once(
        self, publisher: InMemoryCachePublisher
    ) -> None:
        service = CrudService("posts", publisher=publisher)

        created = await service.create({"entity": {"title": "a"}})
        assert publisher.get_published() == ["posts.*"]

        await service.update({"id": created["_id"], "update": {"title": "b"}})
        await service.remove({"id": created["_id"]})
        await service.create_many([{"title": "c"}])
        await service.update_many({"title": "c"}, {"title": "d"})
        await service.remove_many({"title": "d"})
        await service.clear()

        assert publisher.get_published() == ["posts.*"] * 7

    async def test_reads_do_not_invalidate(
        self, publisher: InMemoryCachePublisher
    ) -> None:
        service = CrudService("posts", publisher=publisher)
        await service.adapter.insert({"_id": 1})

        await service.find()
        await service.count()
        await service.list()
        await service.get({"id": 1})
        await service.model({"id": 1})

        assert publisher.get_published() == []

    async def test_failed_mutation_does_not_invalidate(
        self, publisher: InMemoryCachePublisher
    ) -> None:
        service = CrudService("posts", publisher=publisher)

        with pytest.raises(EntityNotFoundError):
            await service.remove({"id": "missing"})

        assert publisher.get_published() == []


@pytest.mark.asyncio
class TestLifecycleAndDispatch:
    async def test_start_connects_and_runs_hook(self) -> None:
        seen: list[CrudService] = []
        service = CrudService("items", after_connected=seen.append)

        await service.start()

        assert service.adapter.connected is True
        assert seen == [service]

        await service.stop()
        assert service.adapter.connected is False

    async def test_after_connected_can_seed(self) -> None:
        async def seed_items(service: CrudService) -> None:
            if await service.count() == 0:
                await service.create_many([{"name": "a"}, {"name": "b"}])

        service = CrudService("items", after_connected=seed_items)

        await service.start()

        assert await service.count() == 2

    async def test_dispatch_routes_to_action(self) -> None:
        service = CrudService("items")
        await seed(service, 2)

        assert await service.dispatch("count") == 2

    async def test_dispatch_unknown_action(self) -> None:
        with pytest.raises(ActionNotFoundError):
            await CrudService("items").dispatch("drop")

    async def test_dispatch_does_not_expose_bulk_methods(self) -> None:
        with pytest.raises(ActionNotFoundError):
            await CrudService("items").dispatch("clear")

    async def test_model_is_internal_only(self) -> None:
        service = CrudService("items")
        await seed(service, 1)

        with pytest.raises(ActionNotFoundError):
            await service.dispatch("model", {"id": 0})

        assert await service.dispatch("model", {"id": 0}, internal=True) == {
            "_id": 0,
            "n": 0,
        }


class User(BaseModel):
    name: str


@pytest.mark.asyncio
class TestMutationRequestOptions:
    async def test_fields_honoured_with_explicit_context(self) -> None:
        service = CrudService("users")

        created = await service.create(
            {"entity": {"name": "a", "secret": "x"}, "fields": ["name"]},
            Context(meta={"user": "u1"}),
        )

        assert created == {"name": "a"}

    async def test_populate_flag_honoured_with_explicit_context(self) -> None:
        lookup = AsyncMock(return_value={5: {"name": "owner"}})
        service = CrudService("items", settings={"populates": {"owner": lookup}})
        await service.adapter.insert({"_id": 1, "owner": 5})

        updated = await service.update(
            {"id": 1, "update": {"n": 1}, "populate": False},
            Context(params={"populate": True}),
        )

        assert updated == {"_id": 1, "owner": 5, "n": 1}
        lookup.assert_not_awaited()

    async def test_model_validate_accepts_valid_entity(self) -> None:
        service = CrudService(
            "users", settings={"entity_validator": User.model_validate}
        )

        created = await service.create({"entity": {"name": "Alice"}})

        assert created["name"] == "Alice"

    async def test_model_validate_rejects_invalid_entity(self) -> None:
        service = CrudService(
            "users", settings={"entity_validator": User.model_validate}
        )

        with pytest.raises(ValidationError) as exc_info:
            await service.create({"entity": {"title": "no name"}})

        assert "name" in exc_info.value.errors
        assert await service.count() == 0


@pytest.mark.asyncio
class TestListFailures:
    async def test_count_failure_fails_list(self) -> None:
        adapter = InMemoryAdapter()
        error = AdapterError("count down")
        adapter.count = AsyncMock(side_effect=error)  # type: ignore[method-assign]
        service = CrudService("items", adapter)
        await seed(service, 3)

        with pytest.raises(AdapterError) as exc_info:
            await service.list()

        assert exc_info.value is error

    async def test_find_failure_fails_list(self) -> None:
        adapter = InMemoryAdapter()
        error = AdapterError("find down")
        adapter.find = AsyncMock(side_effect=error)  # type: ignore[method-assign]
        service = CrudService("items", adapter)
        await seed(service, 3)

        with pytest.raises(AdapterError) as exc_info:
            await service.list()

        assert exc_info.value is error

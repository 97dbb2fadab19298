"""Tests for the query executor."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from polyquery.core.exceptions import (
    ConfigInvalidError,
    ConnectionNotFoundError,
    NoStructuredOutputError,
)
from polyquery.engine.cache import CacheConfig, ResultCache
from polyquery.engine.executor import QueryExecutor
from polyquery.models.connections import Connection, SourceType
from polyquery.models.query import ChartType
from polyquery.models.schema import CollectionSchema, SchemaSnapshot


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


MONGO = Connection(id="m1", name="Shop", type=SourceType.MONGODB, config={"uri": "mongodb://x"})
SHEET = Connection(id="x1", name="Book", type=SourceType.EXCEL, config={"path": "book.xlsx"})

DESCRIPTOR_TEXT = json.dumps(
    {
        "dbName": "shop",
        "collectionName": "orders",
        "query": {"status": "paid"},
        "projection": ["id", "status"],
        "limit": 10,
        "explanation": "Paid orders",
        "chartType": "bar",
    }
)


def _snapshot(db_name: str = "shop", collection_name: str = "orders") -> SchemaSnapshot:
    return SchemaSnapshot(
        generated_at=datetime.now(UTC),
        schemas=[CollectionSchema(db_name=db_name, collection_name=collection_name)],
    )


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def registry() -> MagicMock:
    registry = MagicMock()
    registry.get.return_value = None
    registry.first_of_type.return_value = MONGO
    return registry


@pytest.fixture
def schema_cache() -> MagicMock:
    cache = MagicMock()
    cache.get_snapshot.return_value = (MONGO, _snapshot())
    return cache


@pytest.fixture
def adapters() -> dict[SourceType, MagicMock]:
    mongo = MagicMock()
    mongo.fetch_data.return_value = [{"id": 1, "status": "paid"}, {"id": 2, "status": "paid"}]
    sheet = MagicMock()
    sheet.fetch_data.return_value = [{"name": "Widget"}]
    return {SourceType.MONGODB: mongo, SourceType.EXCEL: sheet, SourceType.SQL: MagicMock()}


@pytest.fixture
def generate_text() -> AsyncMock:
    return AsyncMock(return_value=f"```json\n{DESCRIPTOR_TEXT}\n```")


@pytest.fixture
def executor(registry, schema_cache, adapters, generate_text, timer) -> QueryExecutor:
    return QueryExecutor(
        registry=registry,
        schema_cache=schema_cache,
        adapters=adapters,
        result_cache=ResultCache(CacheConfig(), timer=timer),
        generate_text=generate_text,
    )


class TestAsk:
    """Tests for QueryExecutor.ask."""

    @pytest.mark.asyncio
    async def test_returns_envelope(self, executor, adapters, generate_text) -> None:
        envelope = await executor.ask("paid orders", "m1")

        assert envelope.count == 2
        assert envelope.query.collection_name == "orders"
        assert envelope.query.chart_type == ChartType.BAR

        user_prompt, system_prompt = generate_text.await_args.args
        assert "paid orders" in user_prompt
        assert '"collectionName": "orders"' in system_prompt

        call = adapters[SourceType.MONGODB].fetch_data.call_args
        assert call.args == (MONGO.config, "orders")
        assert call.kwargs == {
            "filter": {"status": "paid"},
            "limit": 10,
            "projection": ["id", "status"],
            "sort": None,
            "db_name": "shop",
        }

    @pytest.mark.asyncio
    async def test_non_document_source_gets_no_db_name(
        self, executor, schema_cache, adapters
    ) -> None:
        schema_cache.get_snapshot.return_value = (SHEET, _snapshot("book", "Products"))

        await executor.ask("paid orders", "x1")

        assert "db_name" not in adapters[SourceType.EXCEL].fetch_data.call_args.kwargs

    @pytest.mark.asyncio
    async def test_cache_hit_within_ttl(self, executor, timer, adapters, generate_text) -> None:
        first = await executor.ask("paid orders", "m1")
        timer.now += 299.0
        second = await executor.ask("paid orders", "m1")

        assert second == first
        assert generate_text.await_count == 1
        assert adapters[SourceType.MONGODB].fetch_data.call_count == 1

    @pytest.mark.asyncio
    async def test_cache_miss_after_ttl(self, executor, timer, generate_text) -> None:
        await executor.ask("paid orders", "m1")
        timer.now += 300.001
        await executor.ask("paid orders", "m1")

        assert generate_text.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_connection_passed_through(self, executor, schema_cache) -> None:
        await executor.ask("paid orders", "missing")
        schema_cache.get_snapshot.assert_called_once_with("missing")

    @pytest.mark.asyncio
    async def test_all_heuristic_applied(self, executor, generate_text, adapters) -> None:
        generate_text.return_value = json.dumps(
            {"collectionName": "orders", "projection": ["a", "b", "c", "d", "e", "f"]}
        )

        envelope = await executor.ask("show all orders")

        assert envelope.query.projection is None
        assert adapters[SourceType.MONGODB].fetch_data.call_args.kwargs["projection"] is None

    @pytest.mark.asyncio
    async def test_no_structured_output(self, executor, generate_text, adapters) -> None:
        generate_text.return_value = "Sorry, I cannot help with that."

        with pytest.raises(NoStructuredOutputError) as exc_info:
            await executor.ask("paid orders")

        assert exc_info.value.raw_response == "Sorry, I cannot help with that."
        adapters[SourceType.MONGODB].fetch_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, executor, generate_text) -> None:
        generate_text.return_value = "nothing useful"
        with pytest.raises(NoStructuredOutputError):
            await executor.ask("paid orders")

        generate_text.return_value = DESCRIPTOR_TEXT
        envelope = await executor.ask("paid orders")
        assert envelope.count == 2


class TestFetchRaw:
    """Tests for QueryExecutor.fetch_raw."""

    @pytest.mark.asyncio
    async def test_uses_first_document_connection(self, executor, registry, adapters) -> None:
        docs = await executor.fetch_raw("shop", "orders", limit=5)

        assert len(docs) == 2
        registry.first_of_type.assert_called_once_with(SourceType.MONGODB)
        adapters[SourceType.MONGODB].fetch_data.assert_called_once_with(
            MONGO.config, "orders", limit=5, db_name="shop"
        )

    @pytest.mark.asyncio
    async def test_explicit_connection(self, executor, registry) -> None:
        registry.get.return_value = MONGO
        await executor.fetch_raw("shop", "orders", connection_id="m1")
        registry.get.assert_called_once_with("m1")

    @pytest.mark.asyncio
    async def test_unknown_connection(self, executor) -> None:
        with pytest.raises(ConnectionNotFoundError):
            await executor.fetch_raw("shop", "orders", connection_id="nope")

    @pytest.mark.asyncio
    async def test_wrong_source_type(self, executor, registry) -> None:
        registry.get.return_value = SHEET
        with pytest.raises(ConfigInvalidError):
            await executor.fetch_raw("shop", "orders", connection_id="x1")

    @pytest.mark.asyncio
    async def test_no_document_connection(self, executor, registry) -> None:
        registry.first_of_type.return_value = None
        with pytest.raises(ConnectionNotFoundError):
            await executor.fetch_raw("shop", "orders")

"""Query executor: natural-language prompt in, result envelope out.

Flow: result cache -> connection + schema -> text generation -> descriptor
parse/repair -> "all" heuristic -> adapter fetch -> result cache store.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, TypeVar

from polyquery.core.exceptions import ConfigInvalidError, ConnectionNotFoundError
from polyquery.core.logging import get_logger
from polyquery.engine.adapters.base import SourceAdapter
from polyquery.engine.cache import ResultCache
from polyquery.engine.descriptor import apply_all_heuristic, parse_descriptor
from polyquery.engine.registry import ConnectionRegistry
from polyquery.engine.schema_cache import SchemaCache
from polyquery.models.connections import Connection, SourceType
from polyquery.models.query import DEFAULT_LIMIT, QueryDescriptor, ResultEnvelope
from polyquery.prompts.query_generator import format_query_generator_prompt

logger = get_logger(__name__)

T = TypeVar("T")

# (user_prompt, system_prompt) -> raw generated text
TextGenerator = Callable[[str, str], Awaitable[str]]

# Thread pool for blocking driver calls (pymongo, openpyxl, duckdb, psycopg)
_executor_pool = ThreadPoolExecutor(max_workers=4)


class QueryExecutor:
    """Answers prompts against registered connections.

    Attributes:
        registry: Connection registry used for resolution.
        schema_cache: Source of (possibly regenerated) schemas.
        adapters: Adapter per source type.
        result_cache: Cache of finished envelopes.
        generate_text: Async text generation step; returns raw text.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        schema_cache: SchemaCache,
        adapters: Mapping[SourceType, SourceAdapter],
        result_cache: ResultCache,
        generate_text: TextGenerator,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.registry = registry
        self.schema_cache = schema_cache
        self.adapters = adapters
        self.result_cache = result_cache
        self.generate_text = generate_text
        self.default_limit = default_limit

    async def _run_blocking(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor_pool, partial(func, *args, **kwargs))

    async def ask(self, prompt: str, connection_id: str | None = None) -> ResultEnvelope:
        """Answer ``prompt`` against the requested (or first) connection.

        Args:
            prompt: The user's natural-language request.
            connection_id: Requested connection; unknown ids fall back to the first.

        Returns:
            ResultEnvelope with the repaired descriptor and fetched records.

        Raises:
            ConnectionNotFoundError: No connections are registered.
            NoStructuredOutputError: The generator returned no JSON object.
            DescriptorParseError: The generator's JSON could not be used.
            ConfigInvalidError: The connection config is incomplete.
            SourceUnreachableError: The source could not be contacted.
        """
        cached = await self.result_cache.get(connection_id, prompt)
        if cached is not None:
            logger.info("ask_cache_hit", connection_id=connection_id)
            return cached

        start_time = time.perf_counter()

        connection, snapshot = await self._run_blocking(
            self.schema_cache.get_snapshot, connection_id
        )
        system_prompt, user_prompt = format_query_generator_prompt(
            prompt, snapshot.schemas, connection.type
        )

        raw_text = await self.generate_text(user_prompt, system_prompt)
        logger.debug("ask_generated", connection_id=connection.id, raw_length=len(raw_text))

        descriptor = parse_descriptor(raw_text, snapshot.schemas, self.default_limit)
        descriptor = apply_all_heuristic(descriptor, prompt)

        data = await self._fetch(connection, descriptor)
        envelope = ResultEnvelope(query=descriptor, data=data)

        await self.result_cache.set(connection_id, prompt, envelope)

        logger.info(
            "ask_completed",
            connection_id=connection.id,
            source_type=str(connection.type),
            collection=descriptor.collection_name,
            count=envelope.count,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return envelope

    async def _fetch(self, connection: Connection, descriptor: QueryDescriptor) -> list[dict]:
        adapter = self.adapters[connection.type]
        kwargs: dict[str, Any] = {
            "filter": descriptor.query,
            "limit": descriptor.limit,
            "projection": descriptor.projection,
            "sort": descriptor.sort,
        }
        if connection.type == SourceType.MONGODB:
            kwargs["db_name"] = descriptor.db_name

        return await self._run_blocking(
            adapter.fetch_data,
            connection.config,
            descriptor.collection_name,
            **kwargs,
        )

    def _document_connection(self, connection_id: str | None) -> Connection:
        if connection_id:
            connection = self.registry.get(connection_id)
            if connection is None:
                raise ConnectionNotFoundError(
                    f"Connection '{connection_id}' not found", connection_id=connection_id
                )
            if connection.type != SourceType.MONGODB:
                raise ConfigInvalidError(
                    f"Connection '{connection_id}' is not a document store",
                    source_type=str(connection.type),
                )
            return connection

        connection = self.registry.first_of_type(SourceType.MONGODB)
        if connection is None:
            raise ConnectionNotFoundError("No document-store connection is registered")
        return connection

    async def fetch_raw(
        self,
        db_name: str,
        collection_name: str,
        limit: int = DEFAULT_LIMIT,
        connection_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Unfiltered fetch of up to ``limit`` documents from a document store."""
        connection = self._document_connection(connection_id)
        adapter = self.adapters[SourceType.MONGODB]
        docs = await self._run_blocking(
            adapter.fetch_data,
            connection.config,
            collection_name,
            limit=limit,
            db_name=db_name,
        )
        logger.info(
            "raw_fetch_completed",
            connection_id=connection.id,
            db=db_name,
            collection=collection_name,
            count=len(docs),
        )
        return docs

"""MongoDB adapter.

Schema is inferred by walking the first documents of every collection in
every user database; filters are handed to MongoDB unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from bson.errors import BSONError
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConfigurationError as MongoConfigurationError
from pymongo.errors import OperationFailure, PyMongoError

from polyquery.core.exceptions import (
    ConfigInvalidError,
    ExecutionError,
    PolyQueryError,
    SourceUnreachableError,
)
from polyquery.engine.adapters.base import (
    SourceAdapter,
    clamp_limit,
    coerce_filter,
    coerce_projection,
    normalize_sort,
    to_jsonable,
    walk_document,
)
from polyquery.models.connections import SourceType
from polyquery.models.query import DEFAULT_LIMIT
from polyquery.models.schema import CollectionSchema

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = frozenset({"admin", "local", "config"})
DEFAULT_SAMPLE_SIZE = 100
DEFAULT_TIMEOUT_MS = 5000

# Unauthorized, AuthenticationFailed
AUTH_ERROR_CODES = frozenset({13, 18})


class DocumentStoreAdapter(SourceAdapter):
    """Infers and queries MongoDB collections.

    Config keys:
        uri: MongoDB connection string (required).
        sampleSize: Documents sampled per collection (default 100).
    """

    source_type = SourceType.MONGODB

    def __init__(
        self,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.sample_size = sample_size
        self.timeout_ms = timeout_ms

    def _client(self, config: Mapping[str, Any]) -> MongoClient:
        (uri,) = self.require(config, "uri")
        try:
            return MongoClient(uri, serverSelectionTimeoutMS=self.timeout_ms)
        except MongoConfigurationError as e:
            raise ConfigInvalidError(
                f"Invalid MongoDB URI: {e}",
                source_type=str(self.source_type),
                missing=["uri"],
            ) from e

    def infer_schema(self, config: Mapping[str, Any]) -> list[CollectionSchema]:
        sample_size = int(config.get("sampleSize") or self.sample_size)
        client = self._client(config)
        try:
            results: list[CollectionSchema] = []
            for db_name in client.list_database_names():
                if db_name in SYSTEM_DATABASES:
                    continue
                db = client[db_name]
                for collection_name in db.list_collection_names():
                    docs = list(db[collection_name].find({}).limit(sample_size))
                    schema = CollectionSchema(
                        db_name=db_name,
                        collection_name=collection_name,
                        sample_count=len(docs),
                    )
                    for doc in docs:
                        walk_document(schema, doc)
                    results.append(schema)

            logger.info(
                "Inferred MongoDB schema",
                extra={"collections": len(results), "sample_size": sample_size},
            )
            return results
        except (PyMongoError, BSONError) as e:
            raise SourceUnreachableError(
                f"Could not read MongoDB schema: {e}",
                source_type=str(self.source_type),
                original_error=str(e),
            ) from e
        finally:
            client.close()

    def fetch_data(
        self,
        config: Mapping[str, Any],
        sub_collection: str,
        filter: Any = None,
        limit: int = DEFAULT_LIMIT,
        projection: Sequence[str] | None = None,
        sort: Any = None,
        db_name: str | None = None,
    ) -> list[dict[str, Any]]:
        """Run ``find`` against ``db_name.sub_collection``.

        ``db_name`` falls back to ``config["database"]`` and then to the
        database named in the URI.
        """
        client = self._client(config)
        try:
            database = db_name or config.get("database")
            db = client[database] if database else client.get_default_database()
            collection = db[sub_collection]

            fields = coerce_projection(projection)
            mongo_projection = None
            if fields:
                mongo_projection = {field: 1 for field in fields}
                if "_id" not in mongo_projection:
                    mongo_projection["_id"] = 0

            cursor = collection.find(coerce_filter(filter), mongo_projection)
            sort_spec = normalize_sort(sort)
            if sort_spec:
                cursor = cursor.sort(
                    [(key, ASCENDING if d > 0 else DESCENDING) for key, d in sort_spec]
                )
            cursor = cursor.limit(clamp_limit(limit))

            docs = [to_jsonable(doc) for doc in cursor]
            logger.debug(
                "Fetched MongoDB documents",
                extra={"collection": sub_collection, "count": len(docs)},
            )
            return docs
        except MongoConfigurationError as e:
            raise ConfigInvalidError(
                "No database given and the MongoDB URI names no default database",
                source_type=str(self.source_type),
                missing=["database"],
            ) from e
        except (PyMongoError, BSONError) as e:
            raise self._query_error(e, sub_collection, filter) from e
        finally:
            client.close()

    def _query_error(self, error: Exception, collection: str, filter: Any) -> PolyQueryError:
        """Rejected queries are execution errors; connection and auth failures are not."""
        if isinstance(error, OperationFailure) and error.code not in AUTH_ERROR_CODES:
            return ExecutionError(
                f"MongoDB rejected the query on {collection}: {error}",
                statement=repr(filter),
                original_error=str(error),
            )
        return SourceUnreachableError(
            f"MongoDB query failed: {error}",
            source_type=str(self.source_type),
            original_error=str(error),
        )

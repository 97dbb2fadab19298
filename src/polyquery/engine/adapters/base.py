"""Source adapter interface and the helpers every variant shares.

Each adapter knows how to infer a schema for, and fetch records from, one
kind of storage. Adapters are stateless apart from injected caches: every
call opens its own client and releases it before returning.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from bson import ObjectId
from bson.decimal128 import Decimal128

from polyquery.core.exceptions import ConfigInvalidError
from polyquery.models.connections import SourceType
from polyquery.models.query import DEFAULT_LIMIT
from polyquery.models.schema import CollectionSchema

# Elements inspected per array when walking a document
MAX_ARRAY_ELEMENTS = 5

SORT_DIRECTIONS = {
    1: 1,
    -1: -1,
    "1": 1,
    "-1": -1,
    "asc": 1,
    "ascending": 1,
    "desc": -1,
    "descending": -1,
}


class SourceAdapter(ABC):
    """Capability interface implemented by the three source variants."""

    source_type: SourceType

    @abstractmethod
    def infer_schema(self, config: Mapping[str, Any]) -> list[CollectionSchema]:
        """Enumerate sub-collections and infer a schema for each.

        Raises:
            ConfigInvalidError: Required config keys are missing.
            SourceUnreachableError: The source cannot be contacted.
        """

    @abstractmethod
    def fetch_data(
        self,
        config: Mapping[str, Any],
        sub_collection: str,
        filter: Any = None,
        limit: int = DEFAULT_LIMIT,
        projection: Sequence[str] | None = None,
        sort: Any = None,
    ) -> list[dict[str, Any]]:
        """Fetch at most ``limit`` filtered, projected and sorted records."""

    def require(self, config: Mapping[str, Any], *keys: str) -> list[Any]:
        """Return the values of ``keys`` or raise ConfigInvalidError listing the missing ones."""
        missing = [key for key in keys if not config.get(key)]
        if missing:
            raise ConfigInvalidError(
                f"{self.source_type} connection is missing required config: {', '.join(missing)}",
                source_type=str(self.source_type),
                missing=missing,
            )
        return [config[key] for key in keys]


def type_tag(value: Any) -> str:
    """Map a runtime value to a source-independent type tag."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal, Decimal128)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (datetime, date, time)):
        return "date"
    if isinstance(value, ObjectId):
        return "objectId"
    if isinstance(value, (bytes, bytearray)):
        return "binary"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def to_jsonable(value: Any) -> Any:
    """Convert driver-specific values (ObjectId, Decimal128, dates) to JSON-safe ones."""
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (ObjectId, Decimal128)):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return value


def record_value(schema: CollectionSchema, path: str, value: Any) -> None:
    schema.field(path).record(type_tag(value), to_jsonable(value))


def _walk_array(schema: CollectionSchema, path: str, values: Sequence[Any]) -> None:
    record_value(schema, path, values)
    element_path = f"{path}[]"
    for element in values[:MAX_ARRAY_ELEMENTS]:
        if isinstance(element, Mapping):
            record_value(schema, element_path, element)
            walk_document(schema, element, element_path)
        elif isinstance(element, (list, tuple)):
            walk_document(schema, element, element_path)
        else:
            record_value(schema, element_path, element)


def walk_document(schema: CollectionSchema, doc: Any, prefix: str = "") -> None:
    """Record every path reachable in ``doc`` into ``schema`` (types merge by union).

    Nested objects extend the path with ``.``; array elements use a trailing
    ``[]`` and only the first few elements of each array are visited.
    """
    if isinstance(doc, (list, tuple)):
        _walk_array(schema, prefix, doc)
        return
    if not isinstance(doc, Mapping):
        record_value(schema, prefix, doc)
        return

    for key, value in doc.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, (list, tuple)):
            _walk_array(schema, path, value)
        elif isinstance(value, Mapping):
            record_value(schema, path, value)
            walk_document(schema, value, path)
        else:
            record_value(schema, path, value)


def coerce_filter(filter: Any) -> dict[str, Any]:
    """Treat anything that is not a mapping (lists, strings, None) as "no filter"."""
    if isinstance(filter, Mapping):
        return dict(filter)
    return {}


def coerce_projection(projection: Any) -> list[str]:
    if not projection or isinstance(projection, (str, bytes)):
        return []
    if isinstance(projection, Mapping):
        return [str(k) for k, v in projection.items() if v]
    return [str(p) for p in projection if isinstance(p, str) and p]


def apply_projection(record: Mapping[str, Any], projection: Sequence[str]) -> dict[str, Any]:
    """Keep exactly the projected keys; keys missing from ``record`` stay absent."""
    if not projection:
        return dict(record)
    return {key: record[key] for key in projection if key in record}


def normalize_sort(sort: Any) -> list[tuple[str, int]]:
    """Turn ``{field: 1|-1|"asc"|"desc"}`` into ``[(field, 1|-1)]``, dropping invalid entries."""
    if not isinstance(sort, Mapping):
        return []
    pairs = []
    for key, direction in sort.items():
        if isinstance(direction, bool):
            continue
        if isinstance(direction, str):
            direction = direction.strip().lower()
        resolved = SORT_DIRECTIONS.get(direction)
        if resolved is not None:
            pairs.append((str(key), resolved))
    return pairs


def clamp_limit(limit: Any) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return value if value > 0 else DEFAULT_LIMIT

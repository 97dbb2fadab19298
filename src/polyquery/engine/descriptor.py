"""Turn raw generator text into a validated query descriptor.

The text generation step is unreliable: it may wrap the JSON in prose or
code fences, omit keys, or use the wrong types. Everything here is about
recovering a usable descriptor or failing with the raw text attached.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from polyquery.core.exceptions import DescriptorParseError, NoStructuredOutputError
from polyquery.engine.adapters.base import coerce_projection
from polyquery.models.query import DEFAULT_LIMIT, ChartType, QueryDescriptor
from polyquery.models.schema import CollectionSchema

logger = logging.getLogger(__name__)

ALL_WORD = re.compile(r"\ball\b", re.IGNORECASE)

# Projections wider than this are treated as "the generator listed everything"
MAX_PROJECTION_FOR_ALL = 5


def extract_json_object(text: str) -> str:
    """Return the first balanced ``{...}`` substring of ``text``.

    Braces inside JSON strings are ignored while balancing.

    Raises:
        NoStructuredOutputError: No balanced object exists in ``text``.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        start = text.find("{", start + 1)

    raise NoStructuredOutputError("Generator returned no JSON object", raw_response=text)


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _projection(value: Any) -> list[str] | None:
    # Mongo-style {"name": 1, "_id": 0} keeps only the included fields
    return coerce_projection(value) or None


def _limit(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


def _chart_type(value: Any) -> ChartType:
    try:
        return ChartType(str(value).strip().lower())
    except ValueError:
        return ChartType.TABLE


def repair_descriptor(
    data: Mapping[str, Any],
    schemas: list[CollectionSchema],
    raw_response: str = "",
    default_limit: int = DEFAULT_LIMIT,
) -> QueryDescriptor:
    """Fill defaults and coerce types so the result always validates.

    ``dbName``/``collectionName`` default to the first schema entry, the
    filter to ``{}``, ``limit`` to 50 and ``chartType`` to ``table``.

    Raises:
        DescriptorParseError: No target collection is named and no schema exists to default to.
    """
    first = schemas[0] if schemas else None
    db_name = _text(data.get("dbName")) or (first.db_name if first else None)
    collection_name = _text(data.get("collectionName")) or (
        first.collection_name if first else None
    )
    if db_name is None or collection_name is None:
        raise DescriptorParseError(
            "Descriptor names no collection and no schema is available",
            raw_response=raw_response,
        )

    query = data.get("query")
    sort = data.get("sort")
    explanation = data.get("explanation")

    return QueryDescriptor(
        db_name=db_name,
        collection_name=collection_name,
        query=dict(query) if isinstance(query, Mapping) else {},
        projection=_projection(data.get("projection")),
        sort=dict(sort) if isinstance(sort, Mapping) and sort else None,
        limit=_limit(data.get("limit"), default_limit),
        explanation=explanation if isinstance(explanation, str) else "",
        chart_type=_chart_type(data.get("chartType")),
    )


def parse_descriptor(
    raw_text: str,
    schemas: list[CollectionSchema],
    default_limit: int = DEFAULT_LIMIT,
) -> QueryDescriptor:
    """Extract, parse and repair a descriptor from raw generator output.

    Raises:
        NoStructuredOutputError: The text contains no JSON object.
        DescriptorParseError: The JSON is invalid or not an object.
    """
    candidate = extract_json_object(raw_text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise DescriptorParseError(
            f"Generator returned invalid JSON: {e.msg}", raw_response=raw_text
        ) from e

    if not isinstance(data, dict):
        raise DescriptorParseError("Generator JSON is not an object", raw_response=raw_text)

    return repair_descriptor(data, schemas, raw_response=raw_text, default_limit=default_limit)


def apply_all_heuristic(descriptor: QueryDescriptor, prompt: str) -> QueryDescriptor:
    """Drop the projection when the user asked for "all" and it is absent or too wide."""
    if not ALL_WORD.search(prompt):
        return descriptor
    projection = descriptor.projection
    if projection is None or len(projection) > MAX_PROJECTION_FOR_ALL:
        if projection is not None:
            logger.info(
                "Clearing projection for 'all' request",
                extra={"projection_size": len(projection)},
            )
        return descriptor.model_copy(update={"projection": None})
    return descriptor

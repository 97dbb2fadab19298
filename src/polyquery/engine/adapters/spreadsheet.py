"""Excel workbook adapter.

Every worksheet is one sub-collection. Filtering happens in Python with
case-insensitive substring matching, since spreadsheet cells are typed
loosely and operators expect "active" to match "Active".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl.utils.exceptions import InvalidFileException

from polyquery.core.exceptions import SourceUnreachableError, SubCollectionNotFoundError
from polyquery.engine.adapters.base import (
    SourceAdapter,
    apply_projection,
    clamp_limit,
    coerce_filter,
    coerce_projection,
    normalize_sort,
    record_value,
)
from polyquery.engine.workbook_cache import ParsedWorkbook, WorkbookCache
from polyquery.models.connections import SourceType
from polyquery.models.query import DEFAULT_LIMIT
from polyquery.models.schema import CollectionSchema

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 100
DEFAULT_MAX_ROWS = 10000


def matches_filter(record: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """Every non-blank filter value must be a case-insensitive substring of the field."""
    for key, expected in filter.items():
        if expected is None or str(expected).strip() == "":
            continue
        actual = record.get(key)
        haystack = "" if actual is None else str(actual)
        if str(expected).lower() not in haystack.lower():
            return False
    return True


def _sort_key(value: Any) -> tuple[int, Any]:
    # Numbers before text, blanks last; mixed columns never compare across kinds
    if value is None or value == "":
        return (2, "")
    if isinstance(value, bool):
        return (1, str(value).lower())
    if isinstance(value, (int, float)):
        return (0, value)
    try:
        return (0, float(str(value)))
    except ValueError:
        return (1, str(value).lower())


def sort_records(records: list[dict[str, Any]], sort: Any) -> list[dict[str, Any]]:
    ordered = list(records)
    for key, direction in reversed(normalize_sort(sort)):
        ordered.sort(key=lambda r, k=key: _sort_key(r.get(k)), reverse=direction < 0)
    return ordered


class SpreadsheetAdapter(SourceAdapter):
    """Infers and queries worksheets of an .xlsx workbook.

    Config keys:
        path: Workbook path, absolute or relative to the working directory
            (``filePath`` is accepted as an alias).
    """

    source_type = SourceType.EXCEL

    def __init__(
        self,
        workbook_cache: WorkbookCache | None = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        max_rows: int = DEFAULT_MAX_ROWS,
    ) -> None:
        self.workbook_cache = workbook_cache if workbook_cache is not None else WorkbookCache()
        self.sample_size = sample_size
        self.max_rows = max_rows

    def _resolve_path(self, config: Mapping[str, Any]) -> Path:
        if not config.get("path") and config.get("filePath"):
            config = {**config, "path": config["filePath"]}
        (raw_path,) = self.require(config, "path")
        path = Path(raw_path).expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        path = path.resolve()

        if not path.exists():
            raise SourceUnreachableError(
                f"File not found: {path}", source_type=str(self.source_type)
            )
        if path.is_dir():
            raise SourceUnreachableError(
                f"{path} is a directory, not a file", source_type=str(self.source_type)
            )
        return path

    def _load(self, config: Mapping[str, Any]) -> ParsedWorkbook:
        path = self._resolve_path(config)
        try:
            return self.workbook_cache.get(path)
        except (InvalidFileException, BadZipFile, OSError, KeyError, ValueError) as e:
            raise SourceUnreachableError(
                f"Could not read workbook {path}: {e}",
                source_type=str(self.source_type),
                original_error=str(e),
            ) from e

    def infer_schema(self, config: Mapping[str, Any]) -> list[CollectionSchema]:
        workbook = self._load(config)
        db_name = Path(workbook.path).name
        results: list[CollectionSchema] = []

        for sheet in workbook.sheets.values():
            if not sheet.rows:
                continue
            schema = CollectionSchema(
                db_name=db_name,
                collection_name=sheet.name,
                sample_count=len(sheet.rows),
            )
            for record in sheet.records(max_rows=self.sample_size):
                for key, value in record.items():
                    record_value(schema, key, value)
            results.append(schema)

        logger.info(
            "Inferred workbook schema",
            extra={"path": workbook.path, "sheets": len(results)},
        )
        return results

    def fetch_data(
        self,
        config: Mapping[str, Any],
        sub_collection: str,
        filter: Any = None,
        limit: int = DEFAULT_LIMIT,
        projection: Sequence[str] | None = None,
        sort: Any = None,
    ) -> list[dict[str, Any]]:
        workbook = self._load(config)
        sheet = workbook.find_sheet(sub_collection)
        if sheet is None:
            raise SubCollectionNotFoundError(
                f"Workbook {workbook.path} has no sheets", name=sub_collection
            )

        records = sheet.records(fill="", max_rows=self.max_rows)
        criteria = coerce_filter(filter)
        filtered = [r for r in records if matches_filter(r, criteria)]
        logger.info(
            "Filtered worksheet rows",
            extra={"sheet": sheet.name, "loaded": len(records), "matched": len(filtered)},
        )

        filtered = sort_records(filtered, sort)
        fields = coerce_projection(projection)
        return [apply_projection(r, fields) for r in filtered[: clamp_limit(limit)]]

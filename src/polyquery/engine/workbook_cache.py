"""Parsed-workbook cache keyed by file path and modification time.

Workbooks are parsed once with openpyxl and kept as immutable snapshots;
a file is re-read only when its mtime changes. Size is bounded with an LRU
policy so long-running processes do not keep every workbook ever opened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cachetools import LRUCache
from openpyxl import load_workbook

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKBOOKS = 16


@dataclass(frozen=True)
class ParsedSheet:
    """One worksheet: a header row plus the non-blank data rows below it."""

    name: str
    headers: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...]

    def records(self, *, fill: Any = None, max_rows: int | None = None) -> list[dict[str, Any]]:
        """Return rows as dicts.

        With ``fill=None`` blank cells are omitted from each record, otherwise
        every header is present and blank cells take the ``fill`` value.
        """
        rows = self.rows if max_rows is None else self.rows[:max_rows]
        out = []
        for row in rows:
            record: dict[str, Any] = {}
            for header, value in zip(self.headers, row, strict=False):
                if value is None:
                    if fill is None:
                        continue
                    value = fill
                record[header] = value
            if fill is not None:
                for header in self.headers[len(row) :]:
                    record[header] = fill
            out.append(record)
        return out


@dataclass(frozen=True)
class ParsedWorkbook:
    path: str
    mtime_ns: int
    sheets: dict[str, ParsedSheet] = field(default_factory=dict)

    @property
    def sheet_names(self) -> list[str]:
        return list(self.sheets)

    def find_sheet(self, name: str) -> ParsedSheet | None:
        """Resolve a sheet by exact name, then case-insensitively, then the first sheet."""
        if name in self.sheets:
            return self.sheets[name]
        lowered = name.lower()
        for sheet_name, sheet in self.sheets.items():
            if sheet_name.lower() == lowered:
                logger.info(f'Sheet "{name}" not found, using "{sheet_name}" instead')
                return sheet
        if self.sheets:
            first = next(iter(self.sheets.values()))
            logger.info(f'Sheet "{name}" not found, using first sheet "{first.name}"')
            return first
        return None


def _header_names(raw: tuple[Any, ...]) -> tuple[str, ...]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, cell in enumerate(raw):
        name = str(cell).strip() if cell is not None and str(cell).strip() else f"column_{idx + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        headers.append(name)
    return tuple(headers)


def parse_workbook(path: Path) -> ParsedWorkbook:
    """Read every worksheet of ``path`` into memory."""
    stat = path.stat()
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheets: dict[str, ParsedSheet] = {}
        for worksheet in workbook.worksheets:
            rows_iter = worksheet.iter_rows(values_only=True)
            header_row = next(rows_iter, None)
            if header_row is None:
                sheets[worksheet.title] = ParsedSheet(worksheet.title, (), ())
                continue
            headers = _header_names(header_row)
            rows = tuple(
                tuple(row[: len(headers)])
                for row in rows_iter
                if any(cell is not None and cell != "" for cell in row)
            )
            sheets[worksheet.title] = ParsedSheet(worksheet.title, headers, rows)
    finally:
        workbook.close()

    return ParsedWorkbook(path=str(path), mtime_ns=stat.st_mtime_ns, sheets=sheets)


class WorkbookCache:
    """Process-wide cache of parsed workbooks.

    Entries are immutable, so concurrent misses on the same file only cost a
    duplicate parse; the last write wins.
    """

    def __init__(self, max_workbooks: int = DEFAULT_MAX_WORKBOOKS) -> None:
        self._cache: LRUCache[str, ParsedWorkbook] = LRUCache(maxsize=max_workbooks)
        self.parse_count = 0

    def get(self, path: Path) -> ParsedWorkbook:
        """Return the parsed workbook, re-parsing when the file's mtime changed."""
        key = str(path)
        mtime_ns = path.stat().st_mtime_ns
        cached = self._cache.get(key)
        if cached is not None and cached.mtime_ns == mtime_ns:
            return cached

        logger.info("Workbook cache miss, reading file", extra={"path": key})
        parsed = parse_workbook(path)
        self.parse_count += 1
        self._cache[key] = parsed
        return parsed

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

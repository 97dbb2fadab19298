"""Source adapters, one per supported source kind."""

from __future__ import annotations

from typing import TYPE_CHECKING

from polyquery.engine.adapters.base import SourceAdapter
from polyquery.engine.adapters.document import DocumentStoreAdapter
from polyquery.engine.adapters.relational import RelationalAdapter
from polyquery.engine.adapters.spreadsheet import SpreadsheetAdapter
from polyquery.engine.workbook_cache import WorkbookCache
from polyquery.models.connections import SourceType

if TYPE_CHECKING:
    from polyquery.core.config import Settings

AdapterMap = dict[SourceType, SourceAdapter]


def build_adapters(
    settings: Settings,
    workbook_cache: WorkbookCache | None = None,
) -> AdapterMap:
    """Create one adapter per source type from settings.

    Args:
        settings: Application settings (sample sizes, timeouts).
        workbook_cache: Shared parsed-workbook cache for the spreadsheet adapter.

    Returns:
        Mapping of source type to adapter instance.
    """
    if workbook_cache is None:
        workbook_cache = WorkbookCache(settings.WORKBOOK_CACHE_SIZE)
    return {
        SourceType.MONGODB: DocumentStoreAdapter(
            sample_size=settings.DOCUMENT_SAMPLE_SIZE,
            timeout_ms=settings.MONGO_TIMEOUT_MS,
        ),
        SourceType.EXCEL: SpreadsheetAdapter(
            workbook_cache=workbook_cache,
            sample_size=settings.SPREADSHEET_SAMPLE_SIZE,
            max_rows=settings.SPREADSHEET_MAX_ROWS,
        ),
        SourceType.SQL: RelationalAdapter(),
    }


__all__ = [
    "AdapterMap",
    "SourceAdapter",
    "DocumentStoreAdapter",
    "SpreadsheetAdapter",
    "RelationalAdapter",
    "build_adapters",
]

"""Schema inference and cross-source query execution.

This package provides:
- Source adapters for MongoDB, Excel workbooks and SQL databases
- File-backed connection registry and metadata overlay
- Schema snapshot cache with age-based regeneration
- Result cache and the query executor
"""

from polyquery.engine.adapters import (
    AdapterMap,
    DocumentStoreAdapter,
    RelationalAdapter,
    SourceAdapter,
    SpreadsheetAdapter,
    build_adapters,
)
from polyquery.engine.cache import CacheConfig, ResultCache, generate_cache_key
from polyquery.engine.descriptor import (
    apply_all_heuristic,
    extract_json_object,
    parse_descriptor,
    repair_descriptor,
)
from polyquery.engine.executor import QueryExecutor
from polyquery.engine.metadata import MetadataStore
from polyquery.engine.registry import ConnectionRegistry
from polyquery.engine.schema_cache import SchemaCache
from polyquery.engine.workbook_cache import WorkbookCache

__all__ = [
    # Adapters
    "AdapterMap",
    "SourceAdapter",
    "DocumentStoreAdapter",
    "SpreadsheetAdapter",
    "RelationalAdapter",
    "build_adapters",
    "WorkbookCache",
    # Persistence
    "ConnectionRegistry",
    "MetadataStore",
    "SchemaCache",
    # Query path
    "CacheConfig",
    "ResultCache",
    "generate_cache_key",
    "extract_json_object",
    "parse_descriptor",
    "repair_descriptor",
    "apply_all_heuristic",
    "QueryExecutor",
]

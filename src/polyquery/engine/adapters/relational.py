"""SQL adapter for DuckDB files and PostgreSQL databases.

Columns come from ``information_schema`` so no rows need to be scanned to
describe a table. Filters become parameterized equality predicates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import duckdb
import psycopg

from polyquery.core.exceptions import (
    ExecutionError,
    SourceUnreachableError,
    SubCollectionNotFoundError,
)
from polyquery.engine.adapters.base import (
    SourceAdapter,
    apply_projection,
    clamp_limit,
    coerce_filter,
    coerce_projection,
    normalize_sort,
    to_jsonable,
)
from polyquery.models.connections import SourceType
from polyquery.models.query import DEFAULT_LIMIT
from polyquery.models.schema import CollectionSchema, FieldInfo

logger = logging.getLogger(__name__)

TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = {p}
    AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

COLUMNS_SQL = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = {p}
    AND table_name = {p}
    ORDER BY ordinal_position
"""


@dataclass(frozen=True)
class Dialect:
    name: str
    placeholder: str
    default_schema: str
    errors: tuple[type[Exception], ...]


DUCKDB = Dialect("duckdb", "?", "main", (duckdb.Error,))
POSTGRES = Dialect("postgres", "%s", "public", (psycopg.Error,))


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class RelationalAdapter(SourceAdapter):
    """Infers and queries SQL tables.

    Config keys:
        database: DuckDB database file (default driver).
        dsn: PostgreSQL connection string; selects the postgres driver.
        driver: Optional explicit ``"duckdb"`` or ``"postgres"``.
        schema: Table schema to expose (``main`` / ``public`` by default).
    """

    source_type = SourceType.SQL

    def _dialect(self, config: Mapping[str, Any]) -> Dialect:
        driver = str(config.get("driver") or "").lower()
        dsn = str(config.get("dsn") or "")
        if driver in ("postgres", "postgresql") or dsn.startswith(("postgres://", "postgresql://")):
            return POSTGRES
        return DUCKDB

    @contextmanager
    def _connect(self, config: Mapping[str, Any]) -> Iterator[tuple[Any, Dialect, str]]:
        """Open a fresh connection; it is closed when the block exits, success or not."""
        dialect = self._dialect(config)
        try:
            if dialect is POSTGRES:
                (dsn,) = self.require(config, "dsn")
                conn = psycopg.connect(dsn, connect_timeout=10)
                db_name = conn.info.dbname
            else:
                (database,) = self.require(config, "database")
                path = Path(database).expanduser()
                if not path.exists():
                    raise SourceUnreachableError(
                        f"Database file not found: {path}", source_type=str(self.source_type)
                    )
                conn = duckdb.connect(str(path), read_only=True)
                db_name = path.stem
        except dialect.errors as e:
            raise SourceUnreachableError(
                f"Could not connect to {dialect.name} database: {e}",
                source_type=str(self.source_type),
                original_error=str(e),
            ) from e

        try:
            yield conn, dialect, str(config.get("databaseName") or db_name)
        finally:
            conn.close()

    @staticmethod
    def _fetchall(conn: Any, sql: str, params: Sequence[Any] = ()) -> tuple[list[str], list[tuple]]:
        cursor = conn.execute(sql, list(params)) if params else conn.execute(sql)
        columns = [d[0] for d in cursor.description] if cursor.description else []
        return columns, cursor.fetchall()

    def _run(self, conn: Any, dialect: Dialect, sql: str, params: Sequence[Any] = ()):
        try:
            return self._fetchall(conn, sql, params)
        except dialect.errors as e:
            raise ExecutionError(
                f"{dialect.name} query failed: {e}",
                statement=sql,
                original_error=str(e),
            ) from e

    def _schema_name(self, config: Mapping[str, Any], dialect: Dialect) -> str:
        return str(config.get("schema") or dialect.default_schema)

    def _tables(self, conn: Any, dialect: Dialect, schema: str) -> list[str]:
        _, rows = self._run(conn, dialect, TABLES_SQL.format(p=dialect.placeholder), [schema])
        return [row[0] for row in rows]

    def _columns(self, conn: Any, dialect: Dialect, schema: str, table: str) -> list[tuple[str, str]]:
        sql = COLUMNS_SQL.format(p=dialect.placeholder)
        _, rows = self._run(conn, dialect, sql, [schema, table])
        return [(row[0], str(row[1])) for row in rows]

    def _qualified(self, schema: str, table: str) -> str:
        return f"{quote_identifier(schema)}.{quote_identifier(table)}"

    def infer_schema(self, config: Mapping[str, Any]) -> list[CollectionSchema]:
        with self._connect(config) as (conn, dialect, db_name):
            schema_name = self._schema_name(config, dialect)
            results: list[CollectionSchema] = []
            for table in self._tables(conn, dialect, schema_name):
                fields = {
                    name: FieldInfo(types=[data_type], examples=[])
                    for name, data_type in self._columns(conn, dialect, schema_name, table)
                }
                _, count_rows = self._run(
                    conn,
                    dialect,
                    f"SELECT COUNT(*) FROM {self._qualified(schema_name, table)}",  # nosec B608
                )
                results.append(
                    CollectionSchema(
                        db_name=db_name,
                        collection_name=table,
                        sample_count=int(count_rows[0][0]) if count_rows else 0,
                        fields=fields,
                    )
                )

        logger.info(
            "Inferred SQL schema",
            extra={"driver": dialect.name, "tables": len(results)},
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
        with self._connect(config) as (conn, dialect, _):
            schema_name = self._schema_name(config, dialect)
            table = self._match_table(self._tables(conn, dialect, schema_name), sub_collection)
            columns = [name for name, _ in self._columns(conn, dialect, schema_name, table)]

            sql, params = self._build_select(
                dialect, schema_name, table, columns, filter, limit, projection, sort
            )
            if sql is None:
                return []

            names, rows = self._run(conn, dialect, sql, params)

        fields = coerce_projection(projection)
        return [apply_projection(to_jsonable(dict(zip(names, row))), fields) for row in rows]

    @staticmethod
    def _match_table(tables: list[str], requested: str) -> str:
        if requested in tables:
            return requested
        for table in tables:
            if table.lower() == requested.lower():
                return table
        raise SubCollectionNotFoundError(f"Table '{requested}' not found", name=requested)

    def _build_select(
        self,
        dialect: Dialect,
        schema_name: str,
        table: str,
        columns: list[str],
        filter: Any,
        limit: Any,
        projection: Sequence[str] | None,
        sort: Any,
    ) -> tuple[str | None, list[Any]]:
        """Build a parameterized SELECT, or return ``(None, [])`` when nothing can match."""
        known = set(columns)
        where: list[str] = []
        params: list[Any] = []

        for key, value in coerce_filter(filter).items():
            if key not in known:
                if value is None:
                    continue
                logger.info("Filter names unknown column, no rows match", extra={"column": key})
                return None, []
            if value is None:
                where.append(f"{quote_identifier(key)} IS NULL")
            elif isinstance(value, (Mapping, list, tuple)):
                logger.warning("Ignoring non-scalar filter value", extra={"column": key})
            else:
                where.append(f"{quote_identifier(key)} = {dialect.placeholder}")
                params.append(value)

        selected = [f for f in coerce_projection(projection) if f in known]
        select_list = ", ".join(quote_identifier(c) for c in selected) if selected else "*"

        sql = f"SELECT {select_list} FROM {self._qualified(schema_name, table)}"  # nosec B608
        if where:
            sql += " WHERE " + " AND ".join(where)

        order = [
            f"{quote_identifier(key)} {'ASC' if direction > 0 else 'DESC'}"
            for key, direction in normalize_sort(sort)
            if key in known
        ]
        if order:
            sql += " ORDER BY " + ", ".join(order)

        sql += f" LIMIT {dialect.placeholder}"
        params.append(clamp_limit(limit))
        return sql, params

"""Pytest fixtures for the test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import duckdb
import pytest
from openpyxl import Workbook

from polyquery.core.config import Settings

WorkbookFactory = Callable[..., Path]


@pytest.fixture
def mock_settings(tmp_path: Path) -> Settings:
    """Create settings pointing all persisted state at a temp directory."""
    return Settings(
        OPENAI_API_KEY="test-api-key",  # type: ignore
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",
        DATA_DIR=tmp_path / "data",
        REDIS_URL=None,
    )


@pytest.fixture
def mock_llm_client() -> MagicMock:
    """Create a mock LLM client for testing."""
    client = MagicMock()
    client.ainvoke = AsyncMock(return_value="Mock response")
    client.invoke = MagicMock(return_value="Mock response")
    return client


@pytest.fixture
def make_workbook(tmp_path: Path) -> WorkbookFactory:
    """Factory writing an .xlsx file with one or more sheets.

    Usage: ``make_workbook({"Products": [["id", "name"], [1, "A"]]}, name="shop.xlsx")``
    """

    def _make(sheets: dict[str, list[list[Any]]], name: str = "book.xlsx") -> Path:
        workbook = Workbook()
        workbook.remove(workbook.active)
        for title, rows in sheets.items():
            worksheet = workbook.create_sheet(title)
            for row in rows:
                worksheet.append(row)
        path = tmp_path / name
        workbook.save(path)
        return path

    return _make


@pytest.fixture
def sample_products() -> list[list[Any]]:
    """Header plus three product rows."""
    return [
        ["id", "name", "price"],
        [1, "Widget", 9.5],
        [2, "Gadget", 25],
        [3, "Doohickey", 4.25],
    ]


@pytest.fixture
def products_workbook(make_workbook: WorkbookFactory, sample_products: list[list[Any]]) -> Path:
    return make_workbook({"Products": sample_products}, name="products.xlsx")


@pytest.fixture
def duckdb_file(tmp_path: Path) -> Path:
    """DuckDB database with ``products`` and ``orders`` tables."""
    path = tmp_path / "warehouse.duckdb"
    conn = duckdb.connect(str(path))
    try:
        conn.execute("CREATE TABLE products (id INTEGER, name VARCHAR, price DOUBLE, category VARCHAR)")
        conn.execute(
            "INSERT INTO products VALUES "
            "(1, 'Widget', 9.5, 'tools'), "
            "(2, 'Gadget', 25.0, 'toys'), "
            "(3, 'Doohickey', 4.25, NULL)"
        )
        conn.execute("CREATE TABLE orders (order_id INTEGER, product_id INTEGER, qty INTEGER)")
        conn.execute("INSERT INTO orders VALUES (10, 1, 2), (11, 2, 1)")
    finally:
        conn.close()
    return path

"""Tests for the parsed-workbook cache."""

from __future__ import annotations

import os
from pathlib import Path

from polyquery.engine.workbook_cache import ParsedSheet, WorkbookCache, parse_workbook


class TestParseWorkbook:
    """Tests for parse_workbook."""

    def test_reads_every_sheet(self, make_workbook) -> None:
        path = make_workbook(
            {"Products": [["id", "name"], [1, "A"]], "Empty": []},
        )
        workbook = parse_workbook(path)

        assert workbook.sheet_names == ["Products", "Empty"]
        assert workbook.sheets["Products"].headers == ("id", "name")
        assert workbook.sheets["Products"].rows == ((1, "A"),)
        assert workbook.sheets["Empty"].rows == ()

    def test_blank_and_duplicate_headers(self, make_workbook) -> None:
        path = make_workbook({"S": [["name", None, "name"], ["a", "b", "c"]]})
        sheet = parse_workbook(path).sheets["S"]

        assert sheet.headers == ("name", "column_2", "name_1")

    def test_skips_blank_rows(self, make_workbook) -> None:
        path = make_workbook({"S": [["a"], [1], [None], [2]]})
        assert parse_workbook(path).sheets["S"].rows == ((1,), (2,))


class TestParsedSheet:
    """Tests for record conversion."""

    def test_records_omit_blank_cells_by_default(self) -> None:
        sheet = ParsedSheet("S", ("a", "b"), ((1, None),))
        assert sheet.records() == [{"a": 1}]

    def test_records_fill_blank_cells(self) -> None:
        sheet = ParsedSheet("S", ("a", "b", "c"), ((1, None),))
        assert sheet.records(fill="") == [{"a": 1, "b": "", "c": ""}]

    def test_records_max_rows(self) -> None:
        sheet = ParsedSheet("S", ("a",), tuple((i,) for i in range(10)))
        assert len(sheet.records(max_rows=3)) == 3


class TestFindSheet:
    """Tests for sheet resolution."""

    def test_exact_then_case_insensitive_then_first(self, make_workbook) -> None:
        path = make_workbook({"Products": [["a"], [1]], "Orders": [["b"], [2]]})
        workbook = parse_workbook(path)

        assert workbook.find_sheet("Orders").name == "Orders"
        assert workbook.find_sheet("orders").name == "Orders"
        assert workbook.find_sheet("nope").name == "Products"


class TestWorkbookCache:
    """Tests for mtime-based reuse."""

    def test_parses_once_while_unchanged(self, products_workbook: Path) -> None:
        cache = WorkbookCache()
        first = cache.get(products_workbook)
        second = cache.get(products_workbook)

        assert first is second
        assert cache.parse_count == 1

    def test_reparses_when_mtime_changes(self, products_workbook: Path) -> None:
        cache = WorkbookCache()
        cache.get(products_workbook)

        stat = products_workbook.stat()
        os.utime(products_workbook, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
        cache.get(products_workbook)

        assert cache.parse_count == 2

    def test_bounded_size(self, make_workbook) -> None:
        cache = WorkbookCache(max_workbooks=2)
        for idx in range(3):
            cache.get(make_workbook({"S": [["a"], [idx]]}, name=f"b{idx}.xlsx"))

        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0

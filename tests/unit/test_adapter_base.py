"""Tests for shared adapter helpers and the document walk."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from bson import ObjectId

from polyquery.core.exceptions import ConfigInvalidError
from polyquery.engine.adapters.base import (
    apply_projection,
    clamp_limit,
    coerce_filter,
    coerce_projection,
    normalize_sort,
    to_jsonable,
    type_tag,
    walk_document,
)
from polyquery.engine.adapters.spreadsheet import SpreadsheetAdapter
from polyquery.models.schema import CollectionSchema


def _schema() -> CollectionSchema:
    return CollectionSchema(db_name="d", collection_name="c")


class TestTypeTag:
    """Tests for runtime type tags."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            (True, "boolean"),
            (3, "number"),
            (2.5, "number"),
            (Decimal("1.5"), "number"),
            ("x", "string"),
            (datetime(2026, 1, 1), "date"),
            (ObjectId(), "objectId"),
            (b"\x00", "binary"),
            ({"a": 1}, "object"),
            ([1], "array"),
        ],
    )
    def test_tags(self, value, expected) -> None:
        assert type_tag(value) == expected


class TestToJsonable:
    """Tests for JSON-safe conversion."""

    def test_converts_nested_driver_values(self) -> None:
        oid = ObjectId()
        result = to_jsonable({"_id": oid, "at": datetime(2026, 1, 2, 3, 4), "n": [Decimal("2")]})

        assert result == {"_id": str(oid), "at": "2026-01-02T03:04:00", "n": [2.0]}


class TestWalkDocument:
    """Tests for the schema union walk."""

    def test_nested_paths_and_arrays(self) -> None:
        schema = _schema()
        walk_document(
            schema,
            {"name": "A", "address": {"city": "X"}, "tags": ["a", "b"], "items": [{"sku": "1"}]},
        )

        assert set(schema.fields) == {
            "name",
            "address",
            "address.city",
            "tags",
            "tags[]",
            "items",
            "items[]",
            "items[].sku",
        }
        assert schema.fields["tags"].types == ["array"]
        assert schema.fields["tags[]"].types == ["string"]

    def test_types_are_union_across_records(self) -> None:
        schema = _schema()
        records = [{"v": 1}, {"v": "one"}, {"v": None}, {"v": 2}, {"w": True}]
        for record in records:
            walk_document(schema, record)

        assert schema.fields["v"].types == ["number", "string", "null"]
        assert schema.fields["w"].types == ["boolean"]

    def test_field_set_is_superset_of_every_record(self) -> None:
        schema = _schema()
        records = [{"a": 1, "b": {"c": 2}}, {"d": [1, 2]}, {"a": "x", "e": None}]
        for record in records:
            walk_document(schema, record)

        for record in records:
            assert set(record) <= set(schema.fields)

    def test_only_first_five_array_elements(self) -> None:
        schema = _schema()
        walk_document(schema, {"xs": [1, 2, 3, 4, 5, "six"]})

        assert schema.fields["xs[]"].types == ["number"]


class TestCoercion:
    """Tests for filter, projection, sort and limit coercion."""

    @pytest.mark.parametrize("value", [None, [], ["a"], "status", 3])
    def test_non_mapping_filter_is_empty(self, value) -> None:
        assert coerce_filter(value) == {}

    def test_projection_from_list_and_mapping(self) -> None:
        assert coerce_projection(["a", "b"]) == ["a", "b"]
        assert coerce_projection({"a": 1, "_id": 0}) == ["a"]
        assert coerce_projection(None) == []
        assert coerce_projection("a") == []

    def test_apply_projection_keeps_only_requested(self) -> None:
        assert apply_projection({"name": "A", "price": 10}, ["name"]) == {"name": "A"}

    def test_apply_projection_absent_field(self) -> None:
        assert apply_projection({"name": "A"}, ["missing"]) == {}

    def test_normalize_sort(self) -> None:
        assert normalize_sort({"a": 1, "b": "desc", "c": "sideways", "d": True}) == [
            ("a", 1),
            ("b", -1),
        ]
        assert normalize_sort(["a"]) == []

    @pytest.mark.parametrize(("value", "expected"), [(10, 10), ("5", 5), (0, 50), (-3, 50), (None, 50)])
    def test_clamp_limit(self, value, expected) -> None:
        assert clamp_limit(value) == expected


class TestRequire:
    """Tests for required config keys."""

    def test_lists_missing_keys(self) -> None:
        with pytest.raises(ConfigInvalidError) as exc_info:
            SpreadsheetAdapter().require({}, "path")

        assert exc_info.value.missing == ["path"]
        assert exc_info.value.error_code == "CONFIG_INVALID"

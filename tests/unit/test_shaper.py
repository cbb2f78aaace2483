"""
Unit tests for the Result Shaper.

Tests cover:
- Row bounding and counts
- Re-shaping an existing RowSet
- JSON conversion of store scalars
- Normalization of analysis results
"""

import datetime as dt
import json
import uuid
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from datagate.shaper import (
    DISPLAY_CAP,
    PREVIEW_ROWS,
    SERIES_DISPLAY_CAP,
    normalize_analysis,
    shape,
    to_jsonable,
)


def _rows(n: int) -> list[dict]:
    return [{"id": i, "name": f"row{i}"} for i in range(n)]


class TestShape:
    """Tests for shape()."""

    @pytest.mark.parametrize(
        ("n", "cap", "ceiling", "expected"),
        [
            (10, 3, 5000, 3),
            (2, 100, 5000, 2),
            (50, 100, 20, 20),
            (0, 10, 5000, 0),
            (5, 0, 5000, 0),
        ],
    )
    def test_length_is_min(self, n: int, cap: int, ceiling: int, expected: int) -> None:
        """len(rows) == min(len(input), cap, ceiling)."""
        row_set = shape(_rows(n), cap, ceiling)
        assert len(row_set.rows) == expected
        assert row_set.returned_count == expected
        assert row_set.total_available == n

    def test_preserves_order(self) -> None:
        row_set = shape(_rows(10), 4)
        assert [r["id"] for r in row_set.rows] == [0, 1, 2, 3]

    def test_explicit_total_available(self) -> None:
        row_set = shape(_rows(5), 3, total_available=40)
        assert row_set.returned_count == 3
        assert row_set.total_available == 40
        assert row_set.truncated

    def test_columns_default_to_first_row_keys(self) -> None:
        assert shape(_rows(2), 10).columns == ["id", "name"]

    def test_explicit_columns(self) -> None:
        assert shape([], 10, columns=["a", "b"]).columns == ["a", "b"]

    def test_idempotent(self) -> None:
        """shape(shape(r, c), c) == shape(r, c)."""
        once = shape(_rows(10), 4)
        assert shape(once, 4) == once

    def test_reshape_with_larger_cap_is_unchanged(self) -> None:
        once = shape(_rows(10), 4)
        again = shape(once, 100)
        assert again == once
        assert again.total_available == 10

    def test_reshape_with_smaller_cap(self) -> None:
        again = shape(shape(_rows(10), 4), 2)
        assert again.returned_count == 2
        assert again.total_available == 10

    def test_negative_cap_raises(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            shape(_rows(3), -1)

    def test_converts_values(self) -> None:
        row_set = shape([{"amount": Decimal("1.50"), "day": dt.date(2024, 1, 2)}], 10)
        assert row_set.rows == [{"amount": 1.5, "day": "2024-01-02"}]


class TestToJsonable:
    """Tests for to_jsonable()."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, None),
            (True, True),
            (7, 7),
            ("x", "x"),
            (1.25, 1.25),
            (float("nan"), None),
            (float("inf"), None),
            (Decimal("10.5"), 10.5),
            (dt.datetime(2024, 5, 1, 12, 30), "2024-05-01T12:30:00"),
            (dt.time(8, 15), "08:15:00"),
            (dt.timedelta(minutes=2), 120.0),
            (b"\x00\x01", "AAE="),
            (np.int64(3), 3),
            (np.float64(2.5), 2.5),
            (pd.NA, None),
            (pd.NaT, None),
        ],
    )
    def test_scalars(self, value: object, expected: object) -> None:
        assert to_jsonable(value) == expected

    def test_uuid(self) -> None:
        value = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert to_jsonable(value) == "12345678-1234-5678-1234-567812345678"

    def test_nested(self) -> None:
        value = {"a": [Decimal("1"), {"b": dt.date(2020, 1, 1)}], 2: (1, 2)}
        assert to_jsonable(value) == {"a": [1.0, {"b": "2020-01-01"}], "2": [1, 2]}

    def test_unknown_falls_back_to_str(self) -> None:
        class Thing:
            def __str__(self) -> str:
                return "thing"

        assert to_jsonable(Thing()) == "thing"

    def test_result_is_json_serializable(self) -> None:
        value = to_jsonable({"x": np.array([1, 2]), "y": pd.Timestamp("2024-01-01")})
        json.dumps(value)


class TestNormalizeAnalysis:
    """Tests for normalize_analysis()."""

    def test_dataframe(self) -> None:
        df = pd.DataFrame({"a": range(10), "b": [x * 2 for x in range(10)]})
        result = normalize_analysis(df)
        assert result["type"] == "DataFrame"
        assert result["shape"] == [10, 2]
        assert result["columns"] == ["a", "b"]
        assert len(result["sample"]) == PREVIEW_ROWS
        assert result["sample"][0] == {"a": 0, "b": 0}

    def test_series(self) -> None:
        series = pd.Series(range(50), name="n")
        result = normalize_analysis(series)
        assert result["type"] == "Series"
        assert result["name"] == "n"
        assert result["length"] == 50
        assert len(result["values"]) == SERIES_DISPLAY_CAP
        assert result["values"][:3] == [0, 1, 2]

    def test_list_truncated(self) -> None:
        result = normalize_analysis(list(range(500)))
        assert len(result) == DISPLAY_CAP

    def test_tuple_and_ndarray_become_lists(self) -> None:
        assert normalize_analysis((1, 2)) == [1, 2]
        assert normalize_analysis(np.array([1.5, 2.5])) == [1.5, 2.5]

    def test_dict_made_json_safe(self) -> None:
        result = normalize_analysis({"total": Decimal("3.5"), "avg": np.float64(1.0)})
        assert result == {"total": 3.5, "avg": 1.0}

    def test_scalar(self) -> None:
        assert normalize_analysis(np.int64(42)) == 42

    def test_set_is_sorted_list(self) -> None:
        assert normalize_analysis({"b", "a"}) == ["a", "b"]

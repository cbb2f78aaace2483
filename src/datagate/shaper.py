"""
Result Shaper for datagate.

Pure truncation and size-capping logic shared by every execution path, so
that the query path and the analysis path cannot disagree about how many
rows a caller gets back.

Functions:
    - shape: Bound a sequence of rows to min(cap, ceiling) as a RowSet
    - to_jsonable: Convert store values (Decimal, datetime, UUID, ...) to JSON
    - normalize_analysis: Reduce an analysis return value to a transportable preview

Nothing here performs I/O.
"""

import base64
import datetime as dt
import math
import uuid
from decimal import Decimal
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from datagate.schema import HARD_CEILING, RowSet

# Display caps for analysis results, independent of the row cap
DISPLAY_CAP = 100
SERIES_DISPLAY_CAP = 20
PREVIEW_ROWS = 5


def shape(
    rows: Sequence[Mapping[str, Any]] | RowSet,
    cap: int,
    hard_ceiling: int = HARD_CEILING,
    total_available: int | None = None,
    columns: Sequence[str] | None = None,
) -> RowSet:
    """
    Bound rows to min(cap, hard_ceiling) and wrap them in a RowSet.

    Shaping a RowSet again keeps its total_available, so re-shaping with an
    equal-or-larger cap returns an equal RowSet.

    Args:
        rows: Store rows (mappings) or an existing RowSet
        cap: Caller's requested cap
        hard_ceiling: Engine-wide maximum
        total_available: Rows the store produced (defaults to len(rows))
        columns: Column names in store order (defaults to keys of the first row)

    Returns:
        RowSet with returned_count == min(len(rows), cap, hard_ceiling)

    Raises:
        ValueError: If cap or hard_ceiling is negative
    """
    if cap < 0 or hard_ceiling < 0:
        msg = f"cap and hard_ceiling must be non-negative (got {cap}, {hard_ceiling})"
        raise ValueError(msg)

    if isinstance(rows, RowSet):
        if total_available is None:
            total_available = rows.total_available
        if columns is None:
            columns = rows.columns
        rows = rows.rows

    limit = min(cap, hard_ceiling)
    kept = [_jsonable_row(row) for row in rows[:limit]]

    if total_available is None:
        total_available = len(rows)
    if columns is None:
        columns = list(kept[0].keys()) if kept else []

    return RowSet(
        rows=kept,
        columns=list(columns),
        returned_count=len(kept),
        total_available=max(total_available, len(kept)),
    )


def _jsonable_row(row: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key): to_jsonable(value) for key, value in row.items()}


def to_jsonable(value: Any) -> Any:
    """
    Convert a value into something json.dumps accepts without a default hook.

    Store-specific scalars become strings or floats; NaN and infinities
    become None; anything unrecognised degrades to str(value).
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Decimal):
        return to_jsonable(float(value))
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, np.generic):
        return to_jsonable(value.item())
    if isinstance(value, np.ndarray):
        return [to_jsonable(v) for v in value.tolist()]
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return str(value)


def normalize_analysis(value: Any) -> Any:
    """
    Reduce an analysis return value to a transportable form.

    - DataFrame -> {type, shape, columns, sample} with the first PREVIEW_ROWS rows
    - Series -> {type, name, length, index, values} with the first SERIES_DISPLAY_CAP entries
    - list/tuple/set/ndarray -> first DISPLAY_CAP items
    - everything else -> to_jsonable(value)
    """
    if isinstance(value, pd.DataFrame):
        return {
            "type": "DataFrame",
            "shape": list(value.shape),
            "columns": [str(c) for c in value.columns],
            "sample": to_jsonable(
                value.head(PREVIEW_ROWS).to_dict(orient="records")
            ),
        }

    if isinstance(value, pd.Series):
        head = value.head(SERIES_DISPLAY_CAP)
        return {
            "type": "Series",
            "name": to_jsonable(value.name),
            "length": int(value.shape[0]),
            "index": to_jsonable(list(head.index)),
            "values": to_jsonable(head.tolist()),
        }

    if isinstance(value, np.ndarray):
        value = value.tolist()

    if isinstance(value, (set, frozenset)):
        value = sorted(value, key=repr)

    if isinstance(value, (list, tuple)):
        return [normalize_analysis(item) for item in list(value)[:DISPLAY_CAP]]

    return to_jsonable(value)

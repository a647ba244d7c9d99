"""Bytes touched by the buffers of columns, tables and aggregation results.

These counts feed the global-memory read/write counters of a benchmark
and are computed from shapes only, never from timings.
"""

from __future__ import annotations

from functools import singledispatch

import polars as pl

from groupby_bench.aggregation import AggregationResult, GroupKeyTable
from groupby_bench.column import Column
from groupby_bench.dtypes import dtype_width
from groupby_bench.errors import InvalidParameter


def validity_bytes(num_rows: int) -> int:
    """One bit per row, rounded up to whole bytes."""
    return (num_rows + 7) // 8


def _column_bytes(num_rows: int, width: int, has_validity: bool) -> int:
    total = num_rows * width
    if has_validity:
        total += validity_bytes(num_rows)
    return total


@singledispatch
def required_bytes(obj) -> int:
    raise InvalidParameter(f"Cannot account memory for {type(obj).__name__}")


@required_bytes.register
def _(obj: Column) -> int:
    return _column_bytes(len(obj), obj.width, obj.has_validity)


@required_bytes.register
def _(obj: pl.Series) -> int:
    return _column_bytes(obj.len(), dtype_width(obj.dtype), obj.null_count() > 0)


@required_bytes.register
def _(obj: GroupKeyTable) -> int:
    return sum(required_bytes(c) for c in obj.columns)


@required_bytes.register
def _(obj: AggregationResult) -> int:
    return required_bytes(obj.keys) + sum(
        required_bytes(c) for per_request in obj.results for c in per_request
    )


@required_bytes.register(list)
@required_bytes.register(tuple)
def _(obj) -> int:
    return sum(required_bytes(item) for item in obj)

"""Closed set of element types and aggregation kinds the benchmarks support."""

from __future__ import annotations

from enum import Enum

import numpy as np
import polars as pl

from groupby_bench.errors import InvalidParameter


class ElementType(Enum):
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @classmethod
    def parse(cls, name: str | ElementType) -> ElementType:
        """Resolve a type name; accepts C-style aliases ('float', 'double')."""
        if isinstance(name, ElementType):
            return name
        key = str(name).strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise InvalidParameter(f"Unknown element type: {name!r}") from None

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @property
    def polars_dtype(self) -> pl.DataType:
        return _POLARS_DTYPES[self]

    @property
    def width(self) -> int:
        return self.numpy_dtype.itemsize

    @property
    def is_integer(self) -> bool:
        return self in (ElementType.INT32, ElementType.INT64)


_ALIASES = {"float": "float32", "double": "float64", "int": "int32", "long": "int64"}

_POLARS_DTYPES = {
    ElementType.INT32: pl.Int32,
    ElementType.INT64: pl.Int64,
    ElementType.FLOAT32: pl.Float32,
    ElementType.FLOAT64: pl.Float64,
}


class AggregationKind(Enum):
    MAX = "max"
    MIN = "min"
    SUM = "sum"
    COUNT = "count"

    @classmethod
    def parse(cls, name: str | AggregationKind) -> AggregationKind:
        if isinstance(name, AggregationKind):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise InvalidParameter(f"Unknown aggregation: {name!r}") from None

    def result_dtype(self, values_dtype: pl.DataType) -> pl.DataType:
        """Polars dtype of this aggregation's output for values of ``values_dtype``."""
        if self in (AggregationKind.MAX, AggregationKind.MIN):
            return values_dtype
        if self is AggregationKind.SUM:
            return pl.Int64 if values_dtype.is_integer() else pl.Float64
        return pl.UInt32


# Byte widths of every dtype a column or aggregation result can carry.
DTYPE_WIDTHS: dict[pl.DataType, int] = {
    pl.Int8: 1,
    pl.Int16: 2,
    pl.Int32: 4,
    pl.Int64: 8,
    pl.UInt8: 1,
    pl.UInt16: 2,
    pl.UInt32: 4,
    pl.UInt64: 8,
    pl.Float32: 4,
    pl.Float64: 8,
}


def dtype_width(dtype: pl.DataType) -> int:
    """Byte width of a fixed-width Polars dtype."""
    for known, width in DTYPE_WIDTHS.items():
        if dtype == known:
            return width
    raise InvalidParameter(f"No fixed byte width for dtype {dtype}")

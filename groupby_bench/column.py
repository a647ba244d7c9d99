"""Owned, typed, fixed-length column used as benchmark input and output."""

from __future__ import annotations

from dataclasses import dataclass, replace

import polars as pl

from groupby_bench.dtypes import ElementType, dtype_width


@dataclass(frozen=True, eq=False)
class Column:
    """A Polars Series plus whether it carries a validity channel.

    Polars drops the null bitmap of a series without nulls, so the
    presence of a validity channel is tracked explicitly: a column
    generated with a null probability keeps ``has_validity`` even if no
    row happened to come out null.
    """

    values: pl.Series
    has_validity: bool = False

    @classmethod
    def from_series(cls, values: pl.Series, has_validity: bool | None = None) -> Column:
        if has_validity is None:
            has_validity = values.null_count() > 0
        return cls(values=values, has_validity=has_validity or values.null_count() > 0)

    @property
    def name(self) -> str:
        return self.values.name

    @property
    def dtype(self) -> pl.DataType:
        return self.values.dtype

    @property
    def element_type(self) -> ElementType | None:
        """Benchmark element type of the values; None for e.g. COUNT outputs."""
        for t in ElementType:
            if self.values.dtype == t.polars_dtype:
                return t
        return None

    @property
    def width(self) -> int:
        return dtype_width(self.values.dtype)

    @property
    def null_count(self) -> int:
        return self.values.null_count()

    def __len__(self) -> int:
        return self.values.len()

    def renamed(self, name: str) -> Column:
        return replace(self, values=self.values.alias(name))

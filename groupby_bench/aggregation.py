"""Grouping key tables, aggregation requests and results."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import polars as pl

from groupby_bench.column import Column
from groupby_bench.dtypes import AggregationKind
from groupby_bench.errors import InvalidParameter

DEFAULT_KEY_REPLICAS = 3


@dataclass(frozen=True, eq=False)
class GroupKeyTable:
    """Ordered key columns whose value combinations define the groups."""

    columns: tuple[Column, ...]

    def __post_init__(self) -> None:
        columns = tuple(self.columns)
        if not columns:
            raise InvalidParameter("A key table needs at least one column")
        lengths = {len(c) for c in columns}
        if len(lengths) != 1:
            raise InvalidParameter(f"Key columns differ in length: {sorted(lengths)}")
        object.__setattr__(self, "columns", columns)

    @property
    def num_rows(self) -> int:
        return len(self.columns[0])

    @property
    def names(self) -> list[str]:
        names = [c.name for c in self.columns]
        if len(set(names)) != len(names):
            return [f"key_{i}" for i in range(len(names))]
        return names

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            [c.renamed(name).values for c, name in zip(self.columns, self.names)]
        )


def replicate_keys(column: Column, count: int = DEFAULT_KEY_REPLICAS) -> GroupKeyTable:
    """Use ``column`` ``count`` times as a multi-column grouping key.

    No extra randomness is drawn: the replicas are the same column, so the
    realised key cardinality equals the cardinality of ``column`` while the
    engine still compares ``count`` key columns per row.
    """
    if count < 1:
        raise InvalidParameter(f"count must be >= 1, got {count}")
    return GroupKeyTable(columns=(column,) * count)


@dataclass(frozen=True, eq=False)
class AggregationRequest:
    values: Column
    aggregations: tuple[AggregationKind, ...]

    def __post_init__(self) -> None:
        aggs = tuple(AggregationKind.parse(a) for a in self.aggregations)
        if not aggs:
            raise InvalidParameter("An aggregation request needs at least one aggregation")
        object.__setattr__(self, "aggregations", aggs)


def build_requests(
    values_columns: Iterable[Column],
    aggregations: Sequence[AggregationKind | str],
) -> list[AggregationRequest]:
    """One request per distinct values column, each carrying ``aggregations``.

    Passing the same column object twice yields a single request. Column
    order and aggregation order are preserved.
    """
    requests: list[AggregationRequest] = []
    seen: set[int] = set()
    for column in values_columns:
        if id(column) in seen:
            continue
        seen.add(id(column))
        requests.append(AggregationRequest(values=column, aggregations=tuple(aggregations)))
    return requests


@dataclass(frozen=True, eq=False)
class AggregationResult:
    """Grouped keys plus, per request, one result column per aggregation."""

    keys: GroupKeyTable
    results: tuple[tuple[Column, ...], ...]

    @property
    def num_groups(self) -> int:
        return self.keys.num_rows

    def to_frame(self) -> pl.DataFrame:
        cols = list(self.keys.to_frame().get_columns())
        for per_request in self.results:
            cols.extend(c.values for c in per_request)
        return pl.DataFrame(cols)

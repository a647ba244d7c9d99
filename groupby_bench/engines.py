"""Aggregation engines and the execution stream they run on.

Two engines implement the synchronous ``aggregate(keys, requests, stream)``
contract: Polars (default) and DuckDB. Results are fully materialised
before ``aggregate`` returns.
"""

from __future__ import annotations

import duckdb
import polars as pl

from groupby_bench.aggregation import (
    AggregationRequest,
    AggregationResult,
    GroupKeyTable,
)
from groupby_bench.column import Column
from groupby_bench.config import ENGINES
from groupby_bench.dtypes import AggregationKind
from groupby_bench.errors import (
    AllocationFailure,
    BenchmarkError,
    EngineFailure,
    InvalidParameter,
)

_INPUT_VIEW = "groupby_input"


def duckdb_set_threads(con: duckdb.DuckDBPyConnection, threads: int | None) -> None:
    if threads and threads > 0:
        con.execute(f"SET threads={int(threads)};")


# -----------------------------
# Execution stream
# -----------------------------
class ExecutionStream:
    """Explicit execution context handed to every aggregate call.

    Use as a context manager around the work it should own. Entering is
    reentrant; the engine resources (a DuckDB in-memory connection) are
    opened on the outermost enter and closed on the matching exit.
    """

    def __init__(self, engine: str = "polars", threads: int | None = None):
        engine = engine.lower()
        if engine not in ENGINES:
            raise InvalidParameter(f"Unknown engine: {engine!r}")
        self.engine = engine
        self.threads = threads
        self._depth = 0
        self._con: duckdb.DuckDBPyConnection | None = None
        # (id of key table, ids of requests) -> (view name, keys, requests)
        self.input_views: dict[tuple, tuple] = {}

    def __enter__(self) -> ExecutionStream:
        if self._depth == 0:
            self._acquire()
        self._depth += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._release()

    @property
    def active(self) -> bool:
        return self._depth > 0

    def _acquire(self) -> None:
        # Polars threads are fixed at import; see groupby_bench.isolate.
        if self.engine == "duckdb":
            self._con = duckdb.connect(database=":memory:")
            duckdb_set_threads(self._con, self.threads)

    def _release(self) -> None:
        self.input_views.clear()
        if self._con is not None:
            self._con.close()
            self._con = None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self._con is None:
            raise EngineFailure("DuckDB stream used outside its scope", engine=self.engine)
        return self._con

    def synchronize(self) -> None:
        """Block until all work submitted on this stream has completed.

        Both engines hand back materialised frames, so by the time an
        aggregate call returns nothing is left in flight.
        """
        if not self.active:
            raise EngineFailure("synchronize() on a released stream", engine=self.engine)

    def effective_threads(self) -> int:
        """Thread count the engine actually runs this stream with."""
        if self.engine == "duckdb":
            (threads,) = self.connection.execute(
                "SELECT current_setting('threads')"
            ).fetchone()
            return int(threads)
        return pl.thread_pool_size()


# -----------------------------
# Engines
# -----------------------------
def _value_name(index: int) -> str:
    return f"v{index}"


def _result_name(index: int, kind: AggregationKind) -> str:
    return f"v{index}_{kind.value}"


def _input_frame(keys: GroupKeyTable, requests: list[AggregationRequest]) -> pl.DataFrame:
    return keys.to_frame().with_columns(
        [r.values.values.alias(_value_name(i)) for i, r in enumerate(requests)]
    )


def _to_result(
    out: pl.DataFrame, key_names: list[str], requests: list[AggregationRequest]
) -> AggregationResult:
    keys = GroupKeyTable(columns=tuple(Column.from_series(out[n]) for n in key_names))
    results = []
    for i, request in enumerate(requests):
        per_request = []
        for kind in request.aggregations:
            series = out[_result_name(i, kind)].cast(
                kind.result_dtype(request.values.dtype)
            )
            nullable = request.values.has_validity and kind is not AggregationKind.COUNT
            per_request.append(Column.from_series(series, has_validity=nullable))
        results.append(tuple(per_request))
    return AggregationResult(keys=keys, results=tuple(results))


class AggregationEngine:
    """Base class; subclasses implement ``_aggregate``."""

    name = "base"
    out_of_memory_errors: tuple[type[BaseException], ...] = ()
    engine_errors: tuple[type[BaseException], ...] = ()

    def aggregate(
        self,
        keys: GroupKeyTable,
        requests: list[AggregationRequest],
        stream: ExecutionStream,
    ) -> AggregationResult:
        """Group ``requests`` by ``keys`` and aggregate.

        Groups whose values are all null produce a null result (COUNT
        produces 0). Group order in the output is unspecified.
        """
        if not requests:
            raise InvalidParameter("aggregate() needs at least one request")
        for request in requests:
            if len(request.values) != keys.num_rows:
                raise InvalidParameter(
                    f"values column has {len(request.values)} rows, keys have {keys.num_rows}"
                )
        try:
            return self._aggregate(keys, requests, stream)
        except BenchmarkError:
            raise
        except MemoryError as exc:
            raise AllocationFailure(f"{self.name}: out of memory") from exc
        except self.out_of_memory_errors as exc:
            raise AllocationFailure(f"{self.name}: {exc}") from exc
        except self.engine_errors as exc:
            raise EngineFailure(f"{self.name}: {exc}", engine=self.name) from exc

    def _aggregate(self, keys, requests, stream) -> AggregationResult:
        raise NotImplementedError


def _polars_agg(kind: AggregationKind, col: str) -> pl.Expr:
    c = pl.col(col)
    if kind is AggregationKind.MAX:
        return c.max()
    if kind is AggregationKind.MIN:
        return c.min()
    if kind is AggregationKind.SUM:
        # Polars sums an all-null group to 0; report null instead.
        return pl.when(c.count() > 0).then(c.sum())
    return c.count()


class PolarsEngine(AggregationEngine):
    name = "polars"
    engine_errors = (pl.exceptions.PolarsError,)

    def _aggregate(self, keys, requests, stream) -> AggregationResult:
        key_names = keys.names
        aggs = []
        for i, request in enumerate(requests):
            for kind in request.aggregations:
                aggs.append(_polars_agg(kind, _value_name(i)).alias(_result_name(i, kind)))
        out = _input_frame(keys, requests).group_by(key_names).agg(aggs)
        return _to_result(out, key_names, requests)


_SQL_AGGS = {
    AggregationKind.MAX: "MAX",
    AggregationKind.MIN: "MIN",
    AggregationKind.SUM: "SUM",
    AggregationKind.COUNT: "COUNT",
}

_SQL_RESULT_TYPES = {
    pl.Int32: "INTEGER",
    pl.Int64: "BIGINT",
    pl.Float32: "FLOAT",
    pl.Float64: "DOUBLE",
    pl.UInt32: "UINTEGER",
}


def _sql_type(dtype: pl.DataType) -> str:
    for known, sql in _SQL_RESULT_TYPES.items():
        if dtype == known:
            return sql
    raise InvalidParameter(f"No DuckDB type for {dtype}")


def _input_view(
    stream: ExecutionStream, keys: GroupKeyTable, requests: list[AggregationRequest]
) -> str:
    """Register the inputs with the stream's connection once per scope.

    Repeated calls on the same key table and requests reuse the view, so
    the Arrow conversion stays out of the timed iterations.
    """
    cache_key = (id(keys), tuple(id(r) for r in requests))
    cached = stream.input_views.get(cache_key)
    if cached is not None:
        return cached[0]
    view = f"{_INPUT_VIEW}_{len(stream.input_views)}"
    stream.connection.register(view, _input_frame(keys, requests).to_arrow())
    # Holding the inputs keeps their ids from being reused in this scope.
    stream.input_views[cache_key] = (view, keys, requests)
    return view


class DuckDBEngine(AggregationEngine):
    name = "duckdb"
    out_of_memory_errors = (duckdb.OutOfMemoryException,)
    engine_errors = (duckdb.Error,)

    def _aggregate(self, keys, requests, stream) -> AggregationResult:
        con = stream.connection
        key_names = keys.names
        key_sql = ", ".join(f'"{n}"' for n in key_names)
        agg_sql = ", ".join(
            f'CAST({_SQL_AGGS[kind]}("{_value_name(i)}") AS '
            f'{_sql_type(kind.result_dtype(request.values.dtype))}) '
            f'AS "{_result_name(i, kind)}"'
            for i, request in enumerate(requests)
            for kind in request.aggregations
        )

        view = _input_view(stream, keys, requests)
        out = con.execute(f"SELECT {key_sql}, {agg_sql} FROM {view} GROUP BY {key_sql}").pl()
        return _to_result(out, key_names, requests)


def make_engine(name: str) -> AggregationEngine:
    name = name.lower()
    if name == "polars":
        return PolarsEngine()
    if name == "duckdb":
        return DuckDBEngine()
    raise InvalidParameter(f"Unknown engine: {name!r}")

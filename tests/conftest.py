import os

import polars as pl
import pytest

from groupby_bench.column import Column


@pytest.fixture(autouse=True)
def _clean_bench_env(monkeypatch):
    # bench.env or a developer shell must not leak into assertions.
    for key in list(os.environ):
        if key.startswith("BENCH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_column():
    def _make(values, dtype=pl.Int32, name="v", has_validity=None) -> Column:
        return Column.from_series(
            pl.Series(name, values, dtype=dtype), has_validity=has_validity
        )

    return _make

"""Group-by aggregation micro-benchmarks on Polars and DuckDB."""

__version__ = "0.1.0"

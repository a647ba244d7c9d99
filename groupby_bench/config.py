"""Shared configuration for the group-by benchmarks.

Defaults reproduce the full groupby_max sweep:
- row counts 2^12, 2^18, 2^24
- null probabilities 0, 0.1, 0.9
- element types int32, int64, float32, float64

Configuration is loaded from bench.env (if it exists) and can be
overridden by environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path


def _load_bench_env() -> None:
    """Load configuration from bench.env if it exists.

    Values are only set if not already present in environment,
    allowing environment variables to override bench.env.
    """
    # groupby_bench/config.py -> bench.env
    config_dir = Path(__file__).resolve().parent.parent
    bench_env_path = config_dir / "bench.env"

    if not bench_env_path.exists():
        return

    with open(bench_env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            if value and value[0] in ('"', "'") and value[-1] == value[0]:
                value = value[1:-1]
            if key and value and key not in os.environ:
                os.environ[key] = value


# Load bench.env before reading any configuration
_load_bench_env()

# ============================================================
# Defaults
# ============================================================
DEFAULT_ENGINE = "polars"
ENGINES = ("polars", "duckdb")

DEFAULT_NUM_ROWS_LOG2 = [12, 18, 24]
DEFAULT_NULL_PROBABILITIES = [0.0, 0.1, 0.9]
DEFAULT_ELEMENT_TYPES = ["int32", "int64", "float32", "float64"]

DEFAULT_ITERATIONS = 10
DEFAULT_WARMUP_ITERATIONS = 1
DEFAULT_TIMEOUT_S = 0.0  # 0 disables the per-combination timeout
DEFAULT_SEED = 42
DEFAULT_SAMPLE_INTERVAL_S = 0.05

DEFAULT_OUT_DIR = "results_groupby"


def _parse_env_list(key: str, default: list[float]) -> list[float]:
    """Parse space-separated float list from env var, or return default."""
    val = os.environ.get(key)
    if not val:
        return default
    return [float(x) for x in val.split()]


def _parse_env_float(key: str, default: float) -> float:
    """Parse float from env var, or return default."""
    val = os.environ.get(key)
    if not val:
        return default
    return float(val)


def _parse_env_int(key: str, default: int) -> int:
    """Parse int from env var, or return default."""
    val = os.environ.get(key)
    if not val:
        return default
    return int(val)


def get_engine() -> str:
    """Aggregation engine from environment ('polars' or 'duckdb')."""
    return os.environ.get("BENCH_GROUPBY_ENGINE", DEFAULT_ENGINE).lower()


def get_num_rows_log2() -> list[int]:
    return [
        int(x)
        for x in _parse_env_list(
            "BENCH_NUM_ROWS_LOG2", [float(x) for x in DEFAULT_NUM_ROWS_LOG2]
        )
    ]


def get_null_probabilities() -> list[float]:
    return _parse_env_list("BENCH_NULL_PROBABILITIES", DEFAULT_NULL_PROBABILITIES)


def get_element_types() -> list[str]:
    val = os.environ.get("BENCH_ELEMENT_TYPES")
    if not val:
        return list(DEFAULT_ELEMENT_TYPES)
    return [x.lower() for x in val.split()]


def get_iterations() -> int:
    return _parse_env_int("BENCH_ITERATIONS", DEFAULT_ITERATIONS)


def get_warmup_iterations() -> int:
    return _parse_env_int("BENCH_WARMUP_ITERATIONS", DEFAULT_WARMUP_ITERATIONS)


def get_timeout_s() -> float:
    return _parse_env_float("BENCH_TIMEOUT_S", DEFAULT_TIMEOUT_S)


def get_seed() -> int:
    return _parse_env_int("BENCH_SEED", DEFAULT_SEED)


def get_threads() -> int | None:
    threads = _parse_env_int("BENCH_THREADS", 0)
    return threads if threads > 0 else None


def resolve_sequence(values: list | None, default_fn) -> list:
    """Resolve CLI-provided values or fall back to env-configured/default values."""
    return default_fn() if values is None else values

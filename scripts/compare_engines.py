#!/usr/bin/env python3
"""Run groupby_max on a single datapoint per element type with both engines."""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from groupby_bench.harness import BenchSettings, get_benchmark, run_combination  # noqa: E402

NUM_ROWS = 1 << 18
NULL_PROBABILITY = 0.1
ELEMENT_TYPES = ["int32", "int64", "float32", "float64"]


def main() -> None:
    print("=" * 60)
    print(f"groupby_max - {NUM_ROWS:,} rows, nulls={NULL_PROBABILITY}")
    print("=" * 60)

    benchmark = get_benchmark("groupby_max")
    times: dict[tuple[str, str], float] = {}
    for engine in ("duckdb", "polars"):
        settings = BenchSettings.from_env(engine=engine)
        for axes in benchmark.combinations(
            {
                "element_type": ELEMENT_TYPES,
                "num_rows": [NUM_ROWS],
                "null_probability": [NULL_PROBABILITY],
            }
        ):
            res = run_combination(benchmark, axes, settings)
            if not res.ok:
                print(f"[{engine}] {axes['element_type'].value}: {res.error}")
                continue
            times[(engine, axes["element_type"].value)] = res.mean_time_s

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(f"{'Type':<20} {'DuckDB':>10} {'Polars':>10} {'Ratio':>10}")
    print("-" * 50)
    for t in ELEMENT_TYPES:
        duck, polar = times.get(("duckdb", t)), times.get(("polars", t))
        if duck is None or polar is None:
            print(f"{t:<20} {'n/a':>10} {'n/a':>10}")
            continue
        print(f"{t:<20} {duck:>9.4f}s {polar:>9.4f}s {polar / duck:>9.1f}x")


if __name__ == "__main__":
    main()

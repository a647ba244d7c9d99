#!/usr/bin/env python3
"""Grouped MAX aggregation micro-benchmark (Polars vs DuckDB).

Generates synthetic key/value columns in memory, runs a grouped MAX over
three replicated key columns for every (element type, row count, null
probability) combination, and records time, derived bandwidth and peak
RSS growth.

Commands:
- run: run a registered benchmark and write CSV results
- plot: recreate time / bandwidth / memory plots from the CSVs
- list: show registered benchmarks and their axes

Axes and settings come from CLI flags, then environment / bench.env
(BENCH_* variables, see groupby_bench/config.py), then built-in defaults.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from groupby_bench import config
from groupby_bench.errors import InvalidParameter
from groupby_bench.harness import (
    BenchSettings,
    get_benchmark,
    load_benchmarks,
    run_benchmark,
)
from groupby_bench.report import plot_benchmark, write_results


def die(msg: str) -> None:
    raise SystemExit(msg)


def axis_overrides(args: argparse.Namespace) -> dict[str, list]:
    """Axis values from CLI flags, falling back to env-configured/default values."""
    rows_log2 = config.resolve_sequence(args.num_rows_log2, config.get_num_rows_log2)
    null_probabilities = config.resolve_sequence(
        args.null_probability, config.get_null_probabilities
    )
    for p in null_probabilities:
        if not 0.0 <= float(p) <= 1.0:
            raise InvalidParameter(f"--null-probability must be within [0, 1], got {p}")
    return {
        "element_type": config.resolve_sequence(args.types, config.get_element_types),
        "num_rows": [1 << int(e) for e in rows_log2],
        "null_probability": null_probabilities,
    }


def cmd_run(args: argparse.Namespace) -> None:
    benchmark = get_benchmark(args.benchmark)
    engines = list(config.ENGINES) if args.engine == "all" else [args.engine]
    out_dir = Path(args.out_dir)

    overrides = axis_overrides(args)
    overrides = {k: v for k, v in overrides.items() if any(a.name == k for a in benchmark.axes)}

    results = []
    for engine in engines:
        settings = BenchSettings.from_env(
            engine=engine,
            iterations=args.iterations,
            warmup_iterations=args.warmup,
            timeout_s=args.timeout,
            seed=args.seed,
            threads=args.threads,
        )
        results.extend(
            run_benchmark(
                benchmark,
                settings,
                overrides=overrides,
                isolate=args.isolate,
                verbose=not args.quiet,
            )
        )

    write_results(results, out_dir, benchmark.name)
    failed = [r for r in results if r.status == "failed"]
    print(f"\nWrote CSVs to: {out_dir}")
    if failed:
        print(f"{len(failed)} of {len(results)} combination(s) failed")


def cmd_plot(args: argparse.Namespace) -> None:
    out_dir = Path(args.out_dir)
    written = plot_benchmark(out_dir, args.benchmark)
    if written:
        print(f"Wrote PNG files to: {out_dir}")


def cmd_list(args: argparse.Namespace) -> None:
    if args.benchmark:
        benchmarks = [get_benchmark(args.benchmark)]
    else:
        benchmarks = [b for _, b in sorted(load_benchmarks().items())]
    for benchmark in benchmarks:
        print(benchmark.name)
        for axis in benchmark.axes:
            values = [getattr(v, "value", v) for v in axis.values]
            if axis.power_of_two:
                values = [f"2^{v.bit_length() - 1}" for v in axis.values]
            print(f"  {axis.name} ({axis.kind}): {', '.join(str(v) for v in values)}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    sub = ap.add_subparsers(dest="cmd", required=True)

    # run
    apr = sub.add_parser("run", help="Run a benchmark and write CSV results.")
    apr.add_argument("--benchmark", default="groupby_max")
    apr.add_argument(
        "--engine",
        choices=[*config.ENGINES, "all"],
        default=None,
        help="Aggregation engine (default: BENCH_GROUPBY_ENGINE or polars).",
    )
    apr.add_argument(
        "--types",
        nargs="+",
        default=None,
        help="Element types (int32 int64 float32 float64).",
    )
    apr.add_argument(
        "--num-rows-log2",
        type=int,
        nargs="+",
        default=None,
        help="Row counts as powers of two (default: 12 18 24).",
    )
    apr.add_argument(
        "--null-probability",
        type=float,
        nargs="+",
        default=None,
        help="Null probabilities of the value column (default: 0 0.1 0.9).",
    )
    apr.add_argument("--iterations", type=int, default=None)
    apr.add_argument("--warmup", type=int, default=None)
    apr.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop measuring a combination after this many seconds (0 = never).",
    )
    apr.add_argument("--seed", type=int, default=None)
    apr.add_argument("--threads", type=int, default=None)
    apr.add_argument(
        "--isolate",
        action="store_true",
        help="Run every combination in a fresh process.",
    )
    apr.add_argument(
        "--out-dir",
        default=config.DEFAULT_OUT_DIR,
        help="Local directory for CSV+PNG outputs.",
    )
    apr.add_argument(
        "--quiet", action="store_true", help="Only print one line per combination."
    )
    apr.set_defaults(func=cmd_run)

    # plot
    app = sub.add_parser("plot", help="Generate plots from CSVs.")
    app.add_argument("--benchmark", default="groupby_max")
    app.add_argument("--out-dir", default=config.DEFAULT_OUT_DIR)
    app.set_defaults(func=cmd_plot)

    # list
    apl = sub.add_parser("list", help="List registered benchmarks and their axes.")
    apl.add_argument("--benchmark", default=None)
    apl.set_defaults(func=cmd_list)

    return ap


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if getattr(args, "engine", "unset") is None:
        args.engine = config.get_engine()
    try:
        args.func(args)
    except InvalidParameter as exc:
        die(f"error: {exc}")


if __name__ == "__main__":
    main()

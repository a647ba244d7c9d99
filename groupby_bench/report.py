"""CSV output and matplotlib plots for benchmark results."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from groupby_bench.harness import BenchResult  # noqa: E402


def results_frames(results: list[BenchResult]) -> tuple[pd.DataFrame, pd.DataFrame]:
    """(raw per-iteration frame, one-row-per-combination summary frame)."""
    raw = pd.DataFrame([row for r in results for row in r.raw_rows()])
    summary = pd.DataFrame([r.summary_row() for r in results])
    return raw, summary


def write_results(results: list[BenchResult], out_dir: Path, benchmark: str) -> list[Path]:
    """Write raw and per-engine summary CSVs; returns the written paths."""
    out_dir.mkdir(parents=True, exist_ok=True)
    raw, summary = results_frames(results)
    written = []

    raw_path = out_dir / f"results_raw_{benchmark}.csv"
    raw.to_csv(raw_path, index=False)
    written.append(raw_path)

    if summary.empty:
        return written
    for engine in sorted(summary["engine"].unique()):
        sub = summary[summary["engine"] == engine]
        path = out_dir / f"{engine}_{benchmark}.csv"
        sub.to_csv(path, index=False)
        written.append(path)
    return written


def load_summaries(out_dir: Path, benchmark: str) -> pd.DataFrame:
    paths = [
        p
        for p in sorted(out_dir.glob(f"*_{benchmark}.csv"))
        if not p.name.startswith("results_raw_")
    ]
    frames = [pd.read_csv(p) for p in paths]
    frames = [f for f in frames if not f.empty and "engine" in f.columns]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


_METRICS = [
    ("time_s", "Time (s)", "time"),
    ("bandwidth_gbps", "Bandwidth (GB/s)", "bandwidth"),
    ("memory_mb", "Peak RSS delta (MB)", "memory"),
]


def plot_benchmark(out_dir: Path, benchmark: str) -> list[Path]:
    """Plot time, bandwidth and memory vs row count, one figure per element type.

    Returns the PNG paths written; empty if no summaries were found.
    """
    df = load_summaries(out_dir, benchmark)
    if df.empty:
        print(f"Skipping {benchmark}: missing CSVs")
        return []
    df = df[df["status"] == "ok"]

    written = []
    for element_type, by_type in df.groupby("element_type"):
        for column, ylabel, suffix in _METRICS:
            plt.figure(figsize=(10, 6))
            for (engine, nulls), sub in by_type.groupby(["engine", "null_probability"]):
                sub = sub.sort_values("num_rows")
                plt.plot(
                    sub["num_rows"],
                    sub[column],
                    marker="o",
                    label=f"{engine} nulls={nulls:g}",
                )
            plt.xscale("log", base=2)
            plt.xlabel("Number of Rows")
            plt.ylabel(ylabel)
            plt.title(f"{benchmark} {element_type} - {suffix}")
            plt.legend()
            plt.grid(True, alpha=0.3)
            plt.tight_layout()
            path = out_dir / f"{benchmark}_{element_type}_{suffix}.png"
            plt.savefig(path)
            plt.close()
            written.append(path)
    return written

"""Parameterized benchmark runner.

A ``Benchmark`` is a named closure plus a set of parameter axes. For every
point of the cartesian product of its axes the runner builds a fresh
``BenchState`` and calls the closure with it. The closure sets up its
inputs, records global-memory read/write byte counts once, and hands the
call to measure to ``BenchState.exec``, which runs warmup and timed
iterations on the state's execution stream.
"""

from __future__ import annotations

import itertools
import os
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import psutil

from groupby_bench import config
from groupby_bench.dtypes import ElementType
from groupby_bench.engines import ExecutionStream
from groupby_bench.errors import BenchmarkError, InvalidParameter


# -----------------------------
# Settings
# -----------------------------
@dataclass(frozen=True)
class BenchSettings:
    engine: str = config.DEFAULT_ENGINE
    iterations: int = config.DEFAULT_ITERATIONS
    warmup_iterations: int = config.DEFAULT_WARMUP_ITERATIONS
    timeout_s: float = config.DEFAULT_TIMEOUT_S
    seed: int = config.DEFAULT_SEED
    threads: int | None = None
    sample_interval_s: float = config.DEFAULT_SAMPLE_INTERVAL_S

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise InvalidParameter(f"iterations must be >= 1, got {self.iterations}")
        if self.warmup_iterations < 0:
            raise InvalidParameter(
                f"warmup_iterations must be >= 0, got {self.warmup_iterations}"
            )
        if self.timeout_s < 0:
            raise InvalidParameter(f"timeout_s must be >= 0, got {self.timeout_s}")
        if self.engine not in config.ENGINES:
            raise InvalidParameter(f"Unknown engine: {self.engine!r}")

    @classmethod
    def from_env(cls, **overrides: Any) -> BenchSettings:
        values = {
            "engine": config.get_engine(),
            "iterations": config.get_iterations(),
            "warmup_iterations": config.get_warmup_iterations(),
            "timeout_s": config.get_timeout_s(),
            "seed": config.get_seed(),
            "threads": config.get_threads(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# -----------------------------
# Axes + registry
# -----------------------------
@dataclass
class Axis:
    name: str
    kind: str  # "type", "int64" or "float64"
    values: list
    power_of_two: bool = False


class Benchmark:
    """A named benchmark closure and its parameter axes.

    Type axes are passed to the closure positionally after the state, in
    the order they were added; every other axis is read from the state.
    """

    def __init__(self, name: str, fn: Callable[..., None]):
        self.name = name
        self.fn = fn
        self.axes: list[Axis] = []

    def _add(self, axis: Axis) -> Benchmark:
        if any(a.name == axis.name for a in self.axes):
            raise InvalidParameter(f"Duplicate axis {axis.name!r} on {self.name}")
        self.axes.append(axis)
        return self

    def add_type_axis(self, name: str, values: Sequence[str | ElementType]) -> Benchmark:
        return self._add(Axis(name, "type", [ElementType.parse(v) for v in values]))

    def add_int64_axis(self, name: str, values: Sequence[int]) -> Benchmark:
        return self._add(Axis(name, "int64", [int(v) for v in values]))

    def add_int64_power_of_two_axis(self, name: str, exponents: Sequence[int]) -> Benchmark:
        return self._add(
            Axis(name, "int64", [1 << int(e) for e in exponents], power_of_two=True)
        )

    def add_float64_axis(self, name: str, values: Sequence[float]) -> Benchmark:
        return self._add(Axis(name, "float64", [float(v) for v in values]))

    def axis(self, name: str) -> Axis:
        for a in self.axes:
            if a.name == name:
                return a
        raise InvalidParameter(f"{self.name} has no axis {name!r}")

    def combinations(self, overrides: dict[str, list] | None = None) -> Iterator[dict[str, Any]]:
        """Yield one {axis name: value} dict per parameter combination.

        ``overrides`` replaces the values of the named axes; values are
        taken as-is (already expanded from powers of two, already parsed).
        """
        overrides = overrides or {}
        unknown = set(overrides) - {a.name for a in self.axes}
        if unknown:
            raise InvalidParameter(f"{self.name} has no axis {sorted(unknown)}")
        names = [a.name for a in self.axes]
        value_lists = []
        for a in self.axes:
            values = overrides.get(a.name, a.values)
            if a.kind == "type":
                values = [ElementType.parse(v) for v in values]
            value_lists.append(list(values))
        for point in itertools.product(*value_lists):
            yield dict(zip(names, point))

    def parse_axes(self, axes: dict[str, Any]) -> dict[str, Any]:
        """Turn type-axis values given as strings back into ``ElementType``."""
        parsed = dict(axes)
        for a in self.axes:
            if a.kind == "type" and a.name in parsed:
                parsed[a.name] = ElementType.parse(parsed[a.name])
        return parsed

    def type_args(self, axes: dict[str, Any]) -> list[ElementType]:
        return [axes[a.name] for a in self.axes if a.kind == "type"]


BENCHMARKS: dict[str, Benchmark] = {}


def register(benchmark: Benchmark) -> Benchmark:
    BENCHMARKS[benchmark.name] = benchmark
    return benchmark


def load_benchmarks() -> dict[str, Benchmark]:
    # Importing the definitions registers them.
    import groupby_bench.groupby_max  # noqa: F401

    return BENCHMARKS


def get_benchmark(name: str) -> Benchmark:
    try:
        return load_benchmarks()[name]
    except KeyError:
        raise InvalidParameter(
            f"Unknown benchmark {name!r}; known: {sorted(BENCHMARKS)}"
        ) from None


# -----------------------------
# Peak RSS sampling
# -----------------------------
class PeakRSSSampler:
    """Samples this process's RSS on a daemon thread while active."""

    def __init__(self, interval_s: float = config.DEFAULT_SAMPLE_INTERVAL_S):
        self.interval_s = interval_s
        self.proc = psutil.Process(os.getpid())
        self.baseline_rss = 0
        self.peak_rss = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _sample(self) -> None:
        while not self._stop.is_set():
            try:
                rss = self.proc.memory_info().rss
            except psutil.Error:
                break
            if rss > self.peak_rss:
                self.peak_rss = rss
            time.sleep(self.interval_s)

    def __enter__(self) -> PeakRSSSampler:
        self.baseline_rss = self.proc.memory_info().rss
        self.peak_rss = self.baseline_rss
        self._stop.clear()
        self._thread = threading.Thread(target=self._sample, daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        rss = self.proc.memory_info().rss
        if rss > self.peak_rss:
            self.peak_rss = rss

    @property
    def delta_mb(self) -> float:
        return (self.peak_rss - self.baseline_rss) / (1024 * 1024)


# -----------------------------
# State + results
# -----------------------------
class BenchState:
    """Per-combination state handed to a benchmark closure."""

    def __init__(self, benchmark: str, axes: dict[str, Any], settings: BenchSettings):
        self.benchmark = benchmark
        self.axes = axes
        self.settings = settings
        self.global_memory_reads = 0
        self.global_memory_writes = 0
        self.stream: ExecutionStream | None = None
        self.times_s: list[float] = []
        self.memory_mb: float | None = None
        self.truncated = False
        self.threads: int | None = None

    def _get(self, name: str) -> Any:
        try:
            return self.axes[name]
        except KeyError:
            raise InvalidParameter(f"{self.benchmark} has no axis {name!r}") from None

    def get_int64(self, name: str) -> int:
        return int(self._get(name))

    def get_float64(self, name: str) -> float:
        return float(self._get(name))

    def get_type(self, name: str) -> ElementType:
        return ElementType.parse(self._get(name))

    @property
    def engine(self) -> str:
        return self.settings.engine

    @property
    def seed(self) -> int:
        return self.settings.seed

    def make_stream(self) -> ExecutionStream:
        return ExecutionStream(self.settings.engine, self.settings.threads)

    def add_global_memory_reads(self, nbytes: int) -> None:
        self.global_memory_reads += int(nbytes)

    def add_global_memory_writes(self, nbytes: int) -> None:
        self.global_memory_writes += int(nbytes)

    def set_stream(self, stream: ExecutionStream) -> None:
        self.stream = stream

    def exec(self, fn: Callable[[], Any], sync: bool = True) -> None:
        """Run ``fn`` for the warmup and measured iterations.

        With ``sync`` the stream is synchronized after every call so each
        sample covers completed work, not just submission.
        """
        stream = self.stream or self.make_stream()
        timeout_s = self.settings.timeout_s
        with stream:
            self.threads = stream.effective_threads()
            for _ in range(self.settings.warmup_iterations):
                fn()
                if sync:
                    stream.synchronize()

            with PeakRSSSampler(self.settings.sample_interval_s) as sampler:
                for _ in range(self.settings.iterations):
                    t0 = time.perf_counter()
                    fn()
                    if sync:
                        stream.synchronize()
                    self.times_s.append(time.perf_counter() - t0)
                    if timeout_s and sum(self.times_s) > timeout_s:
                        self.truncated = True
                        break
            self.memory_mb = sampler.delta_mb


@dataclass
class BenchResult:
    benchmark: str
    engine: str
    axes: dict[str, Any]
    status: str = "ok"
    error: str | None = None
    times_s: list[float] = field(default_factory=list)
    reads_bytes: int = 0
    writes_bytes: int = 0
    memory_mb: float | None = None
    truncated: bool = False
    threads: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def mean_time_s(self) -> float | None:
        if not self.times_s:
            return None
        return sum(self.times_s) / len(self.times_s)

    @property
    def bandwidth_gbps(self) -> float | None:
        mean = self.mean_time_s
        if not mean:
            return None
        return (self.reads_bytes + self.writes_bytes) / mean / 1e9

    def axis_columns(self) -> dict[str, Any]:
        return {
            k: (v.value if isinstance(v, ElementType) else v) for k, v in self.axes.items()
        }

    def summary_row(self) -> dict[str, Any]:
        return {
            "benchmark": self.benchmark,
            "engine": self.engine,
            **self.axis_columns(),
            "status": self.status,
            "error": self.error,
            "samples": len(self.times_s),
            "truncated": self.truncated,
            "time_s": self.mean_time_s,
            "min_time_s": min(self.times_s) if self.times_s else None,
            "max_time_s": max(self.times_s) if self.times_s else None,
            "reads_bytes": self.reads_bytes,
            "writes_bytes": self.writes_bytes,
            "bandwidth_gbps": self.bandwidth_gbps,
            "memory_mb": self.memory_mb,
            "threads": self.threads,
        }

    def raw_rows(self) -> list[dict[str, Any]]:
        base = {"benchmark": self.benchmark, "engine": self.engine, **self.axis_columns()}
        return [{**base, "iteration": it, "time_s": t} for it, t in enumerate(self.times_s)]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def run_combination(
    benchmark: Benchmark, axes: dict[str, Any], settings: BenchSettings
) -> BenchResult:
    """Run one parameter combination on a fresh state.

    Benchmark errors (bad parameters, allocation or engine failures) end
    this combination only and come back as a ``failed`` result.
    """
    state = BenchState(benchmark.name, axes, settings)
    result = BenchResult(benchmark=benchmark.name, engine=settings.engine, axes=dict(axes))
    try:
        benchmark.fn(state, *benchmark.type_args(axes))
    except BenchmarkError as exc:
        result.status = "failed"
        result.error = f"{type(exc).__name__}: {exc}"
        return result

    result.times_s = list(state.times_s)
    result.reads_bytes = state.global_memory_reads
    result.writes_bytes = state.global_memory_writes
    result.memory_mb = state.memory_mb
    result.truncated = state.truncated
    result.threads = state.threads
    if not result.times_s:
        result.status = "skipped"
        result.error = "benchmark did not call exec()"
    return result


def format_axes(axes: dict[str, Any]) -> str:
    parts = []
    for k, v in axes.items():
        if isinstance(v, ElementType):
            parts.append(v.value)
        else:
            parts.append(f"{k}={v}")
    return " ".join(parts)


def run_benchmark(
    benchmark: Benchmark,
    settings: BenchSettings,
    overrides: dict[str, list] | None = None,
    isolate: bool = False,
    verbose: bool = True,
) -> list[BenchResult]:
    """Run every combination of ``benchmark``; failures do not stop the sweep."""
    results: list[BenchResult] = []
    if settings.engine == "polars" and settings.threads and not isolate:
        print(
            f"[polars {benchmark.name}] threads={settings.threads} ignored without "
            "--isolate (thread pool size is fixed at import)"
        )
    for axes in benchmark.combinations(overrides):
        if isolate:
            from groupby_bench.isolate import run_in_fresh_process

            res = run_in_fresh_process(benchmark.name, axes, settings)
        else:
            res = run_combination(benchmark, axes, settings)
        results.append(res)

        tag = f"[{settings.engine:6s} {benchmark.name} {format_axes(axes)}]"
        if not res.ok:
            print(f"{tag} {res.status.upper()}: {res.error}")
            continue
        if verbose:
            for it, t in enumerate(res.times_s):
                print(f"{tag} it={it:02d} time={t:.6f}s")
        bw = res.bandwidth_gbps or 0.0
        print(
            f"{tag} mean={res.mean_time_s:.6f}s "
            f"bw={bw:.3f}GB/s mem={res.memory_mb:.1f}MB"
            + (" (truncated)" if res.truncated else "")
        )
    return results

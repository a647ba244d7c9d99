"""Run a single benchmark combination in a fresh child process.

Polars sizes its thread pool once, when it is first imported. The child
is therefore started with ``POLARS_MAX_THREADS`` already in its
environment, and the payload carries only plain values: unpickling a
``BenchSettings`` or an ``ElementType`` would import Polars before the
worker runs. Settings and type axes are rebuilt inside the child.
"""

from __future__ import annotations

import multiprocessing as mp
import os
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


@contextmanager
def _child_env(threads: int | None):
    """Set POLARS_MAX_THREADS for processes started inside the block."""
    if not threads or threads <= 0:
        yield
        return
    previous = os.environ.get("POLARS_MAX_THREADS")
    os.environ["POLARS_MAX_THREADS"] = str(int(threads))
    try:
        yield
    finally:
        if previous is None:
            os.environ.pop("POLARS_MAX_THREADS", None)
        else:
            os.environ["POLARS_MAX_THREADS"] = previous


def worker_entry(conn, payload: dict[str, Any]) -> None:
    try:
        threads = payload["settings"]["threads"]
        if threads and threads > 0:
            os.environ["POLARS_MAX_THREADS"] = str(int(threads))

        from groupby_bench.harness import BenchSettings, get_benchmark, run_combination

        benchmark = get_benchmark(payload["benchmark"])
        settings = BenchSettings(**payload["settings"])
        axes = benchmark.parse_axes(payload["axes"])

        res = run_combination(benchmark, axes, settings)
        result = res.to_dict()
        result["axes"] = {k: _plain(v) for k, v in result["axes"].items()}
        conn.send({"ok": True, "result": result})
    except Exception as e:
        conn.send({"ok": False, "error": repr(e)})
    finally:
        conn.close()


def run_in_fresh_process(benchmark: str, axes: dict[str, Any], settings):
    """Run one combination in a spawned process and return its ``BenchResult``.

    A child that dies without answering (e.g. killed for exhausting memory)
    yields a failed result rather than an exception, so the sweep goes on.
    """
    from groupby_bench.harness import BenchResult, get_benchmark

    payload = {
        "benchmark": benchmark,
        "axes": {k: _plain(v) for k, v in axes.items()},
        "settings": asdict(settings),
    }
    ctx = mp.get_context("spawn")
    parent_conn, child_conn = ctx.Pipe()
    p = ctx.Process(target=worker_entry, args=(child_conn, payload))
    with _child_env(settings.threads):
        p.start()
    child_conn.close()
    try:
        msg = parent_conn.recv()
    except EOFError:
        msg = None
    p.join()

    if msg is None:
        msg = {"ok": False, "error": f"child exited with code {p.exitcode}"}
    if not msg.get("ok"):
        return BenchResult(
            benchmark=benchmark,
            engine=settings.engine,
            axes=dict(axes),
            status="failed",
            error=f"Child failed: {msg.get('error')}",
        )
    result = msg["result"]
    result["axes"] = get_benchmark(benchmark).parse_axes(result["axes"])
    return BenchResult(**result)

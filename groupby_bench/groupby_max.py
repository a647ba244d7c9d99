"""Group-by benchmark: MAX of one value column grouped by three key columns.

Keys: int32 uniform [0, 100], no nulls, used three times as the key table.
Values: the element type under test, uniform [0, 1000], optionally nullable.
For larger row counts the group count converges to the 101 distinct keys.
"""

from __future__ import annotations

from groupby_bench.aggregation import build_requests, replicate_keys
from groupby_bench.dtypes import AggregationKind, ElementType
from groupby_bench.engines import make_engine
from groupby_bench.errors import InvalidParameter
from groupby_bench.generate import create_key_column, create_random_column
from groupby_bench.harness import Benchmark, BenchState, register
from groupby_bench.memory import required_bytes
from groupby_bench.profile import DataProfile, DistributionKind

NAME = "groupby_max"

KEY_LOW, KEY_HIGH = 0, 100
VALUE_LOW, VALUE_HIGH = 0, 1000
KEY_REPLICAS = 3

# Offsets from the base seed so keys and values are independent but
# reproducible per combination.
KEY_SEED_OFFSET = 0
VALUE_SEED_OFFSET = 1


def value_profile(element_type: ElementType, null_probability: float) -> DataProfile:
    if not 0.0 <= null_probability <= 1.0:
        raise InvalidParameter(
            f"null_probability must be within [0, 1], got {null_probability}"
        )
    profile = DataProfile(
        element_type=element_type,
        distribution=DistributionKind.UNIFORM,
        low=VALUE_LOW,
        high=VALUE_HIGH,
        cardinality=0,
    )
    if null_probability > 0:
        return profile.with_null_probability(null_probability)
    return profile.no_validity()


def build_inputs(
    element_type: ElementType, num_rows: int, null_probability: float, seed: int
):
    """Key table and request list for one combination."""
    keys = create_key_column(
        num_rows, low=KEY_LOW, high=KEY_HIGH, seed=seed + KEY_SEED_OFFSET
    )
    vals = create_random_column(
        value_profile(element_type, null_probability),
        num_rows,
        seed=seed + VALUE_SEED_OFFSET,
    )
    # The same key column three times, not three independent columns.
    keys_table = replicate_keys(keys, KEY_REPLICAS)
    requests = build_requests([vals], [AggregationKind.MAX])
    return keys_table, requests


def bench_groupby_max(state: BenchState, element_type: ElementType) -> None:
    num_rows = state.get_int64("num_rows")
    null_probability = state.get_float64("null_probability")

    keys_table, requests = build_inputs(
        element_type, num_rows, null_probability, state.seed
    )
    engine = make_engine(state.engine)
    stream = state.make_stream()

    state.add_global_memory_reads(required_bytes(requests[0].values))
    state.add_global_memory_reads(required_bytes(keys_table))

    # Written bytes depend on how many distinct keys the sample hit.
    with stream:
        result = engine.aggregate(keys_table, requests, stream)
    state.add_global_memory_writes(required_bytes(result.keys))
    state.add_global_memory_writes(required_bytes(list(result.results)))

    state.set_stream(stream)
    state.exec(lambda: engine.aggregate(keys_table, requests, stream), sync=True)


GROUPBY_MAX = register(
    Benchmark(NAME, bench_groupby_max)
    .add_type_axis("element_type", ["int32", "int64", "float32", "float64"])
    .add_int64_power_of_two_axis("num_rows", [12, 18, 24])
    .add_float64_axis("null_probability", [0, 0.1, 0.9])
)

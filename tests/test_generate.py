import polars as pl
import pytest

from groupby_bench.dtypes import ElementType
from groupby_bench.errors import InvalidParameter
from groupby_bench.generate import create_key_column, create_random_column
from groupby_bench.memory import required_bytes
from groupby_bench.profile import DataProfile, DistributionKind

ALL_TYPES = list(ElementType)


@pytest.mark.parametrize("element_type", ALL_TYPES)
@pytest.mark.parametrize("num_rows", [0, 1, 4096, 10_001])
def test_length_and_dtype(element_type, num_rows):
    profile = DataProfile(element_type, low=0, high=1000, null_probability=0.3)
    col = create_random_column(profile, num_rows, seed=1)
    assert len(col) == num_rows
    assert col.dtype == element_type.polars_dtype
    assert col.element_type is element_type


@pytest.mark.parametrize("p", [None, 0.0])
def test_no_validity_without_null_probability(p):
    profile = DataProfile(ElementType.INT64, null_probability=p)
    col = create_random_column(profile, 1000, seed=2)
    assert not col.has_validity
    assert col.null_count == 0
    assert required_bytes(col) == 1000 * 8


def test_validity_kept_even_without_realised_nulls():
    profile = DataProfile(ElementType.INT32, null_probability=1e-9)
    col = create_random_column(profile, 100, seed=3)
    assert col.has_validity
    assert required_bytes(col) == 100 * 4 + 13


@pytest.mark.parametrize("p", [0.1, 0.5, 0.9])
def test_null_fraction_converges(p):
    n = 100_000
    col = create_random_column(DataProfile(ElementType.FLOAT64, null_probability=p), n, seed=4)
    assert abs(col.null_count / n - p) < 0.01


def test_all_null_column():
    col = create_random_column(DataProfile(ElementType.INT32, null_probability=1.0), 50, seed=5)
    assert col.null_count == 50


def test_uniform_integers_cover_inclusive_range():
    col = create_random_column(DataProfile(ElementType.INT32, low=0, high=100), 100_000, seed=6)
    assert col.values.min() == 0
    assert col.values.max() == 100
    assert col.values.n_unique() == 101


def test_uniform_floats_within_range():
    col = create_random_column(
        DataProfile(ElementType.FLOAT32, low=0, high=1000), 50_000, seed=7
    )
    assert col.values.min() >= 0
    assert col.values.max() <= 1000


def test_normal_is_clipped_and_centered():
    col = create_random_column(
        DataProfile(ElementType.FLOAT64, DistributionKind.NORMAL, -10, 10), 50_000, seed=8
    )
    assert col.values.min() >= -10
    assert col.values.max() <= 10
    assert abs(col.values.mean()) < 0.1


def test_geometric_favours_low_values():
    col = create_random_column(
        DataProfile(ElementType.INT64, DistributionKind.GEOMETRIC, 0, 1000), 50_000, seed=9
    )
    assert col.values.min() >= 0
    assert col.values.max() <= 1000
    assert col.values.median() < 250


def test_degenerate_range():
    col = create_random_column(DataProfile(ElementType.INT32, low=7, high=7), 100, seed=10)
    assert col.values.unique().to_list() == [7]


def test_integer_range_without_integers_rejected():
    with pytest.raises(InvalidParameter):
        create_random_column(DataProfile(ElementType.INT32, low=0.2, high=0.8), 10)


def test_cardinality_cap_limits_distinct_values():
    profile = DataProfile(ElementType.FLOAT64, low=0, high=1e6, cardinality=10)
    col = create_random_column(profile, 10_000, seed=11)
    assert col.values.n_unique() <= 10


def test_uncapped_cardinality_uses_raw_distribution():
    col = create_random_column(DataProfile(ElementType.FLOAT64, low=0, high=1e6), 10_000, seed=11)
    assert col.values.n_unique() > 9_000


def test_negative_length_rejected():
    with pytest.raises(InvalidParameter):
        create_random_column(DataProfile(ElementType.INT32), -1)


def test_same_seed_reproduces_column():
    profile = DataProfile(ElementType.FLOAT32, null_probability=0.2)
    a = create_random_column(profile, 5000, seed=12)
    b = create_random_column(profile, 5000, seed=12)
    c = create_random_column(profile, 5000, seed=13)
    assert a.values.equals(b.values)
    assert not a.values.equals(c.values)


def test_key_column_defaults():
    keys = create_key_column(4096, seed=14)
    assert keys.name == "key"
    assert keys.dtype == pl.Int32
    assert not keys.has_validity
    assert 0 <= keys.values.min() and keys.values.max() <= 100


def test_element_type_unknown_for_other_dtypes(make_column):
    assert make_column([1, 2], dtype=pl.UInt32).element_type is None

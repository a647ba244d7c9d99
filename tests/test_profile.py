import pytest

from groupby_bench.dtypes import AggregationKind, ElementType
from groupby_bench.errors import InvalidParameter
from groupby_bench.profile import DataProfile, DistributionKind


def test_element_type_aliases():
    assert ElementType.parse("float") is ElementType.FLOAT32
    assert ElementType.parse("double") is ElementType.FLOAT64
    assert ElementType.parse(" INT64 ") is ElementType.INT64
    assert ElementType.parse(ElementType.INT32) is ElementType.INT32
    assert ElementType.INT64.width == 8
    assert ElementType.FLOAT32.width == 4


def test_unknown_element_type():
    with pytest.raises(InvalidParameter):
        ElementType.parse("string")


def test_unknown_aggregation():
    assert AggregationKind.parse("MAX") is AggregationKind.MAX
    with pytest.raises(InvalidParameter):
        AggregationKind.parse("median")


def test_profile_accepts_names():
    p = DataProfile("int32", "normal", 0, 10)
    assert p.element_type is ElementType.INT32
    assert p.distribution is DistributionKind.NORMAL


def test_low_greater_than_high_rejected():
    with pytest.raises(InvalidParameter):
        DataProfile(ElementType.INT32, low=10, high=1)


@pytest.mark.parametrize("p", [-0.1, 1.01])
def test_null_probability_out_of_range_rejected(p):
    with pytest.raises(InvalidParameter):
        DataProfile(ElementType.FLOAT64, null_probability=p)


def test_negative_cardinality_rejected():
    with pytest.raises(InvalidParameter):
        DataProfile(ElementType.INT64, cardinality=-1)


def test_unknown_distribution_rejected():
    with pytest.raises(InvalidParameter):
        DataProfile(ElementType.INT64, distribution="zipf")


def test_validity_only_with_positive_null_probability():
    base = DataProfile(ElementType.INT32)
    assert not base.has_validity
    assert not base.with_null_probability(0.0).has_validity
    assert base.with_null_probability(0.1).has_validity
    assert not base.with_null_probability(0.1).no_validity().has_validity


def test_copy_helpers_do_not_mutate():
    base = DataProfile(ElementType.INT32)
    changed = base.with_distribution("geometric", 5, 6).with_cardinality(3)
    assert (base.low, base.high, base.cardinality) == (0, 100, 0)
    assert changed.distribution is DistributionKind.GEOMETRIC
    assert (changed.low, changed.high, changed.cardinality) == (5, 6, 3)
    with pytest.raises(InvalidParameter):
        base.with_distribution("uniform", 7, 6)

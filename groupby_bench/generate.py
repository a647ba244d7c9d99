"""Synthetic column generation from a DataProfile.

Values are drawn i.i.d. with numpy's ``default_rng`` and stored as Polars
series. A column is only given a validity channel when its profile sets a
non-zero null probability.
"""

from __future__ import annotations

import math

import numpy as np
import polars as pl

from groupby_bench.column import Column
from groupby_bench.dtypes import ElementType
from groupby_bench.errors import InvalidParameter
from groupby_bench.profile import DataProfile, DistributionKind

# GEOMETRIC: exponential scale as a fraction of the range; ~0.03% of draws
# land past ``high`` and get clipped.
_GEOMETRIC_SCALE_FRACTION = 1 / 8


def _integer_bounds(profile: DataProfile) -> tuple[int, int]:
    low, high = math.ceil(profile.low), math.floor(profile.high)
    if low > high:
        raise InvalidParameter(
            f"No {profile.element_type.value} value in [{profile.low}, {profile.high}]"
        )
    return low, high


def _draw(rng: np.random.Generator, profile: DataProfile, size: int) -> np.ndarray:
    """Draw ``size`` values restricted to the profile range, cast to its type."""
    et = profile.element_type
    low, high = float(profile.low), float(profile.high)
    if et.is_integer:
        ilow, ihigh = _integer_bounds(profile)
        low, high = float(ilow), float(ihigh)

    if profile.distribution is DistributionKind.UNIFORM:
        if et.is_integer:
            return rng.integers(
                int(low), int(high), size=size, endpoint=True, dtype=et.numpy_dtype
            )
        raw = rng.uniform(low, high, size=size)
    elif profile.distribution is DistributionKind.NORMAL:
        raw = rng.normal((low + high) / 2, (high - low) / 6, size=size)
    else:
        raw = low + rng.exponential((high - low) * _GEOMETRIC_SCALE_FRACTION, size=size)

    raw = np.clip(raw, low, high)
    if et.is_integer:
        raw = np.rint(raw)
    return raw.astype(et.numpy_dtype)


def create_random_column(
    profile: DataProfile,
    num_rows: int,
    seed: int | None = None,
    name: str = "values",
) -> Column:
    """Generate a column of exactly ``num_rows`` rows shaped by ``profile``.

    Args:
        profile: Distribution, range, null probability and cardinality cap.
        num_rows: Requested length; negative values are rejected.
        seed: Seed for numpy's generator; the same seed reproduces the column.
        name: Name of the resulting series.
    """
    if num_rows < 0:
        raise InvalidParameter(f"num_rows must be >= 0, got {num_rows}")

    rng = np.random.default_rng(seed)
    if profile.cardinality > 0:
        pool = _draw(rng, profile, profile.cardinality)
        values = pool[rng.integers(0, profile.cardinality, size=num_rows)]
    else:
        values = _draw(rng, profile, num_rows)

    series = pl.Series(name, values, dtype=profile.element_type.polars_dtype)
    if not profile.has_validity:
        return Column(values=series, has_validity=False)

    null_mask = rng.random(num_rows) < profile.null_probability
    series = (
        pl.DataFrame({"v": series, "is_null": null_mask})
        .select(
            pl.when(pl.col("is_null"))
            .then(None)
            .otherwise(pl.col("v"))
            .cast(profile.element_type.polars_dtype)
            .alias(name)
        )
        .to_series()
    )
    return Column(values=series, has_validity=True)


def create_key_column(
    num_rows: int,
    low: int = 0,
    high: int = 100,
    seed: int | None = None,
    element_type: ElementType = ElementType.INT32,
) -> Column:
    """Uniform, null-free key column, uncapped cardinality."""
    profile = DataProfile(
        element_type=element_type,
        distribution=DistributionKind.UNIFORM,
        low=low,
        high=high,
    ).no_validity()
    return create_random_column(profile, num_rows, seed=seed, name="key")

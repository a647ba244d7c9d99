"""Statistical shape of a synthetic column."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum

from groupby_bench.dtypes import ElementType
from groupby_bench.errors import InvalidParameter


class DistributionKind(Enum):
    UNIFORM = "uniform"
    NORMAL = "normal"
    GEOMETRIC = "geometric"


@dataclass(frozen=True)
class DataProfile:
    """Distribution, value range, null probability and cardinality cap.

    ``null_probability=None`` (or 0) means the generated column has no
    validity channel at all. ``cardinality=0`` leaves the value domain
    uncapped.
    """

    element_type: ElementType
    distribution: DistributionKind = DistributionKind.UNIFORM
    low: float = 0
    high: float = 100
    null_probability: float | None = None
    cardinality: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "element_type", ElementType.parse(self.element_type))
        if not isinstance(self.distribution, DistributionKind):
            try:
                object.__setattr__(
                    self, "distribution", DistributionKind(str(self.distribution).lower())
                )
            except ValueError:
                raise InvalidParameter(
                    f"Unknown distribution: {self.distribution!r}"
                ) from None
        if not (math.isfinite(self.low) and math.isfinite(self.high)):
            raise InvalidParameter(f"Non-finite range [{self.low}, {self.high}]")
        if self.low > self.high:
            raise InvalidParameter(f"low ({self.low}) > high ({self.high})")
        p = self.null_probability
        if p is not None and not (0.0 <= p <= 1.0):
            raise InvalidParameter(f"null_probability must be in [0, 1], got {p}")
        if self.cardinality < 0:
            raise InvalidParameter(f"cardinality must be >= 0, got {self.cardinality}")

    @property
    def has_validity(self) -> bool:
        return bool(self.null_probability)

    def with_distribution(
        self, distribution: DistributionKind | str, low: float, high: float
    ) -> DataProfile:
        return replace(self, distribution=distribution, low=low, high=high)

    def with_null_probability(self, probability: float | None) -> DataProfile:
        return replace(self, null_probability=probability)

    def no_validity(self) -> DataProfile:
        return replace(self, null_probability=None)

    def with_cardinality(self, cardinality: int) -> DataProfile:
        return replace(self, cardinality=cardinality)

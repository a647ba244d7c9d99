"""Exception hierarchy for benchmark setup and execution."""

from __future__ import annotations


class BenchmarkError(Exception):
    """Base exception for all benchmark-related errors."""


class InvalidParameter(BenchmarkError, ValueError):
    """Malformed profile, axis value or request. Raised at setup time."""


class AllocationFailure(BenchmarkError):
    """The engine ran out of host or device memory."""


class EngineFailure(BenchmarkError):
    """The aggregation call itself failed.

    Attributes:
        engine: Name of the engine that raised
    """

    def __init__(self, message: str, engine: str):
        super().__init__(message)
        self.engine = engine

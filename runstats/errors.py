"""Contract violations raised by the statistics code."""

from __future__ import annotations


class StatsContractError(AssertionError):
    """Base class: a caller broke a precondition of a statistic."""


class EmptyInputViolation(StatsContractError):
    """Raised when a statistic or an accumulator receives zero samples."""

    def __init__(self, what: str = "samples") -> None:
        super().__init__(f"{what} must not be empty")


class InsufficientSamplesForVariance(StatsContractError):
    """Raised when a standard deviation is requested over fewer than two samples.

    Args:
        n: Number of samples that were available.
    """

    def __init__(self, n: int) -> None:
        self.n = n
        super().__init__(
            f"standard deviation needs at least 2 samples (n - 1 denominator), got {n}"
        )

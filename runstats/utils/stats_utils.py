import math
from statistics import NormalDist
from typing import Sequence

from ..errors import EmptyInputViolation, InsufficientSamplesForVariance
from ..sample import Sample, into_float, into_index


def arithmetic_mean(samples: Sequence[Sample]) -> float:
    """Mean of the integral values of ``samples``."""
    if len(samples) == 0:
        raise EmptyInputViolation()

    total = 0
    for s in samples:
        total += into_index(s)

    # float division, the integral sum must not truncate
    return total / float(len(samples))


def standard_deviation(samples: Sequence[Sample]) -> float:
    """Two-pass sample standard deviation (n - 1 denominator)."""
    if len(samples) == 0:
        raise EmptyInputViolation()
    if len(samples) < 2:
        raise InsufficientSamplesForVariance(len(samples))

    m = arithmetic_mean(samples)

    sq = 0.0  # sum of squared differences
    for s in samples:
        sq += (into_float(s) - m) ** 2

    return math.sqrt(sq / (len(samples) - 1))


def z_from_confidence(ci_confidence: float) -> float:
    """Two-sided normal z for given confidence, e.g. 0.95 -> 1.9599..."""
    if not (0.0 < ci_confidence < 1.0):
        raise ValueError("ci_confidence must be in (0, 1)")
    alpha = 1.0 - float(ci_confidence)
    return NormalDist().inv_cdf(1.0 - alpha / 2.0)


def normal_mean_bounds(
    mean: float, var: float, n: int, z: float
) -> tuple[float, float, float]:
    """Return (low, high, se) for mean under normal approx."""
    if n <= 1 or not var > 0.0 or z <= 0.0:
        return mean, mean, 0.0
    se = math.sqrt(var / n)
    return mean - z * se, mean + z * se, se

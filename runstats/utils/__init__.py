from .stats_utils import (
    arithmetic_mean,
    normal_mean_bounds,
    standard_deviation,
    z_from_confidence,
)

__all__ = [
    "arithmetic_mean",
    "standard_deviation",
    "z_from_confidence",
    "normal_mean_bounds",
]

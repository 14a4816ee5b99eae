"""Batch and running (incremental) mean / standard deviation."""

from .config import Config, get_default_config, get_legacy_config
from .errors import (
    EmptyInputViolation,
    InsufficientSamplesForVariance,
    StatsContractError,
)
from .running import RunningStatistics, VarianceFormula
from .sample import Sample, identity, into_float, into_index, is_sample, zero_of
from .utils.stats_utils import arithmetic_mean, standard_deviation

__version__ = "0.1.0"

__all__ = [
    "Config",
    "get_default_config",
    "get_legacy_config",
    "EmptyInputViolation",
    "InsufficientSamplesForVariance",
    "StatsContractError",
    "RunningStatistics",
    "VarianceFormula",
    "Sample",
    "identity",
    "is_sample",
    "into_float",
    "into_index",
    "zero_of",
    "arithmetic_mean",
    "standard_deviation",
]

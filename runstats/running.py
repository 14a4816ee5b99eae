import math
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import torch
from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from .errors import EmptyInputViolation, InsufficientSamplesForVariance
from .sample import Sample, into_float, into_index


class VarianceFormula(str, Enum):
    """Single-pass variance estimator used by the running engine."""

    computational = "computational"
    legacy = "legacy"


def computational_variance(total: int, sum_of_squares: float, n: float) -> float:
    """(sum_sq - sum**2 / n) / (n - 1), clamped at zero."""
    if n < 2.0:
        return math.nan
    t = float(total)
    v = (sum_of_squares - t * t / n) / (n - 1.0)
    # round-off can push a zero variance slightly negative
    return max(0.0, v)


def legacy_variance(total: int, sum_of_squares: float, n: float) -> float:
    """(sum_sq - sum / n) / n - 1, the grouping of the first released version."""
    return (sum_of_squares - float(total) / n) / n - 1.0


_VARIANCE_BY_FORMULA: Dict[VarianceFormula, Callable[[int, float, float], float]] = {
    VarianceFormula.computational: computational_variance,
    VarianceFormula.legacy: legacy_variance,
}


def _sqrt_or_nan(v: float) -> float:
    return math.sqrt(v) if v >= 0.0 else math.nan


def _plain(x: Any) -> Union[int, float]:
    """Plain int/float for a snapshot; tensors and rationals lose their type."""
    if isinstance(x, torch.Tensor):
        x = x.item()
    if isinstance(x, bool):
        return int(x)
    if isinstance(x, int):
        return x
    return float(x)


class RunningStatisticsState(BaseModel):
    """JSON-serializable snapshot of a RunningStatistics accumulator."""

    model_config = ConfigDict(extra="forbid", ser_json_inf_nan="constants")

    variance_formula: VarianceFormula = VarianceFormula.computational
    samples: List[Union[StrictInt, float]] = Field(min_length=1)
    processed_count: int = Field(default=0, ge=0)
    running_sum: int = 0
    sum_of_squares: float = 0.0
    mean: float = 0.0
    std_dev: float = 0.0

    @model_validator(mode="after")
    def _check_cursor(self) -> "RunningStatisticsState":
        if self.processed_count > len(self.samples):
            raise ValueError(
                f"processed_count={self.processed_count} exceeds "
                f"{len(self.samples)} stored samples"
            )
        return self


class RunningStatistics:
    """Mean and standard deviation that update as samples arrive.

    Samples are appended to an owned, append-only store. A processing pass
    folds only the samples after ``processed_count`` into running sums, so
    its cost is proportional to the new samples and work can be resumed
    whenever more samples are added. Nothing is processed unless ``run_now``
    is passed or :meth:`run` is called; reads return the values of the last
    pass.

    The single-pass estimator trades numerical robustness for
    incrementality: compare with
    :func:`runstats.utils.stats_utils.standard_deviation`.
    """

    def __init__(
        self,
        samples: Iterable[Sample],
        run_now: bool = False,
        *,
        variance_formula: Union[VarianceFormula, str] = VarianceFormula.computational,
    ) -> None:
        self._samples: List[Sample] = list(samples)
        if not self._samples:
            raise EmptyInputViolation("initial samples")

        self.variance_formula = VarianceFormula(variance_formula)
        self._variance = _VARIANCE_BY_FORMULA[self.variance_formula]

        self._processed = 0  # cursor into _samples
        self._sum = 0
        self._sum_of_squares = 0.0
        self._mean = 0.0
        self._std_dev = 0.0

        if run_now:
            self.run()

    def add_samples(self, samples: Iterable[Sample], run_now: bool = False) -> None:
        self._samples.extend(samples)
        if run_now:
            self.run()

    def add_sample(self, sample: Sample, run_now: bool = False) -> None:
        self._samples.append(sample)
        if run_now:
            self.run()

    def run(self, limit: Optional[int] = None) -> int:
        """Fold pending samples into the aggregates, one at a time.

        Args:
            limit: Stop after this many samples; ``None`` processes all.

        Returns:
            Number of samples folded by this call.
        """
        end = len(self._samples)
        if limit is not None:
            end = min(end, self._processed + max(int(limit), 0))

        folded = 0
        for s in self._samples[self._processed : end]:
            n = float(self._processed + 1)
            total = self._sum + into_index(s)
            f = into_float(s)
            sos = self._sum_of_squares + f * f

            self._mean = total / n
            self._std_dev = _sqrt_or_nan(self._variance(total, sos, n))

            self._processed = int(n)
            self._sum = total
            self._sum_of_squares = sos
            folded += 1
        return folded

    @property
    def samples(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    @property
    def processed_count(self) -> int:
        return self._processed

    @property
    def pending_count(self) -> int:
        return len(self._samples) - self._processed

    @property
    def running_sum(self) -> int:
        return self._sum

    @property
    def sum_of_squares(self) -> float:
        return self._sum_of_squares

    @property
    def mean(self) -> float:
        """Mean as of the last processing pass."""
        return self._mean

    @property
    def std_dev(self) -> float:
        """Standard deviation as of the last processing pass."""
        if self._processed < 2:
            raise InsufficientSamplesForVariance(self._processed)
        return self._std_dev

    @property
    def variance(self) -> float:
        return self.std_dev**2

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(samples={len(self._samples)}, "
            f"processed={self._processed}, mean={self._mean!r}, "
            f"formula={self.variance_formula.value})"
        )

    def to_state(self) -> Dict[str, Any]:
        """Export a snapshot restorable with :meth:`from_state`."""
        state = RunningStatisticsState(
            variance_formula=self.variance_formula,
            samples=[_plain(s) for s in self._samples],
            processed_count=self._processed,
            running_sum=self._sum,
            sum_of_squares=self._sum_of_squares,
            mean=self._mean,
            std_dev=self._std_dev,
        )
        return state.model_dump(mode="json")

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "RunningStatistics":
        s = RunningStatisticsState.model_validate(state)
        rs = cls(s.samples, variance_formula=s.variance_formula)
        rs._processed = s.processed_count
        rs._sum = s.running_sum
        rs._sum_of_squares = s.sum_of_squares
        rs._mean = s.mean
        rs._std_dev = s.std_dev
        return rs

from decimal import Decimal
from fractions import Fraction
from functools import singledispatch
from typing import Any, Protocol, TypeVar, runtime_checkable

import torch


@runtime_checkable
class Sample(Protocol):
    """Structural contract for a scalar that can take part in statistics.

    Conversions are provided per type by the singledispatch functions below
    rather than by a base class.
    """

    def __int__(self) -> int: ...

    def __float__(self) -> float: ...


S = TypeVar("S")


@singledispatch
def into_index(x: Any) -> int:
    """Integral value used for running sums."""
    raise TypeError(f"Unsupported sample type: {type(x).__name__}")


@singledispatch
def into_float(x: Any) -> float:
    """Double precision value used for squared terms."""
    raise TypeError(f"Unsupported sample type: {type(x).__name__}")


@singledispatch
def zero_of(x: Any) -> Any:
    """Default (zero) value of the sample's type."""
    raise TypeError(f"Unsupported sample type: {type(x).__name__}")


def identity(x: S) -> S:
    """Self conversion; samples are immutable values."""
    return x


def is_sample(x: Any) -> bool:
    """Return True if every conversion is registered for ``type(x)``."""
    return all(
        f.dispatch(type(x)) is not f.dispatch(object)
        for f in (into_index, into_float, zero_of)
    )


# int (bool is dispatched here as well, True/False count as 1/0)
@into_index.register
def _(x: int) -> int:
    return int(x)


@into_float.register
def _(x: int) -> float:
    return float(x)


@zero_of.register
def _(x: int) -> int:
    return type(x)(0)


# float truncates toward zero like a numeric cast
@into_index.register
def _(x: float) -> int:
    return int(x)


@into_float.register
def _(x: float) -> float:
    return x


@zero_of.register
def _(x: float) -> float:
    return 0.0


@into_index.register(Fraction)
@into_index.register(Decimal)
def _(x) -> int:
    return int(x)


@into_float.register(Fraction)
@into_float.register(Decimal)
def _(x) -> float:
    return float(x)


@zero_of.register(Fraction)
@zero_of.register(Decimal)
def _(x):
    return type(x)(0)


# 0-d tensors, keeping the fixed-width semantics of their dtype
@into_index.register
def _(x: torch.Tensor) -> int:
    return int(_scalar_item(x))


@into_float.register
def _(x: torch.Tensor) -> float:
    return float(_scalar_item(x))


@zero_of.register
def _(x: torch.Tensor) -> torch.Tensor:
    return torch.zeros((), dtype=x.dtype)


def _scalar_item(x: torch.Tensor):
    if x.numel() != 1:
        raise TypeError(f"Expected a scalar tensor, got shape {tuple(x.shape)}")
    return x.item()

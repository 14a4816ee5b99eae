import math
import re
import sys
from pathlib import Path
from typing import List, Optional, Union

import torch

Number = Union[int, float]

_DEFAULT_SPLIT = re.compile(r"[\s,;]+")


def parse_number(token: str) -> Number:
    """Parse a single token as int when possible, float otherwise."""
    try:
        return int(token)
    except ValueError:
        pass
    try:
        value = float(token)
    except ValueError:
        raise ValueError(f"Not a number: {token!r}") from None
    # inf and nan have no integral value
    if not math.isfinite(value):
        raise ValueError(f"Not a number: {token!r}")
    return value


def cast_samples(values: List[Number], dtype: Optional[torch.dtype]) -> List[Number]:
    """Round-trip values through a fixed-width torch dtype (e.g. uint8 wraps)."""
    if dtype is None or not values:
        return list(values)
    if dtype.is_floating_point or any(isinstance(v, float) for v in values):
        # float -> int casts truncate toward zero
        return torch.tensor(values, dtype=torch.float64).to(dtype).tolist()
    # integer narrowing wraps like a two's complement cast
    return torch.tensor(values, dtype=torch.int64).to(dtype).tolist()


def parse_samples(
    text: str,
    dtype: Optional[torch.dtype] = None,
    separator: Optional[str] = None,
) -> List[Number]:
    """Split text into numbers and optionally cast them to ``dtype``."""
    if separator is None:
        tokens = _DEFAULT_SPLIT.split(text)
    else:
        tokens = text.split(separator)
    values = [parse_number(t.strip()) for t in tokens if t.strip()]
    return cast_samples(values, dtype)


def read_samples(
    path: Union[str, Path],
    dtype: Optional[torch.dtype] = None,
    separator: Optional[str] = None,
) -> List[Number]:
    """Read samples from a file, ``-`` reads stdin."""
    if str(path) == "-":
        text = sys.stdin.read()
    else:
        text = Path(path).read_text(encoding="utf-8")
    return parse_samples(text, dtype=dtype, separator=separator)

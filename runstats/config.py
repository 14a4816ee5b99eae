import json
import os
from typing import Any, Dict, Optional

import torch
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from .running import VarianceFormula

SAMPLE_DTYPES = (
    torch.bool,
    torch.uint8,
    torch.int8,
    torch.int16,
    torch.int32,
    torch.int64,
    torch.float16,
    torch.bfloat16,
    torch.float32,
    torch.float64,
)


class EngineConfig(BaseModel):
    """Running engine parameters"""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    variance_formula: VarianceFormula = Field(
        default_factory=lambda: VarianceFormula(
            os.environ.get("RUNSTATS_FORMULA", VarianceFormula.computational.value)
        )
    )
    run_now: bool = True


class InputConfig(BaseModel):
    """How raw numbers become samples"""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    # Use suffix fields for JSON-serializable dtype representation.
    # None keeps Python ints/floats as parsed.
    sample_dtype_: Optional[str] = Field(
        default_factory=lambda: os.environ.get("RUNSTATS_DTYPE") or None
    )
    separator: Optional[str] = None

    @property
    def sample_dtype(self) -> Optional[torch.dtype]:
        if self.sample_dtype_ is None:
            return None
        return getattr(torch, self.sample_dtype_)

    @sample_dtype.setter
    def sample_dtype(self, v: Optional[torch.dtype]) -> None:
        self.sample_dtype_ = None if v is None else str(v).replace("torch.", "")

    @field_validator("sample_dtype_")
    @classmethod
    def _check_dtype_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        dtype = getattr(torch, v, None)
        if not isinstance(dtype, torch.dtype):
            raise ValueError(f"Unknown torch dtype name: {v}")
        # complex and quantized values have no integral sample value
        if dtype not in SAMPLE_DTYPES:
            raise ValueError(f"Unsupported sample dtype: {v}")
        return v


class DisplayConfig(BaseModel):
    """Console output parameters"""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    precision: int = Field(default=6, ge=0, le=17)
    # print every N-th recorded pass, 0 disables
    display_every: int = Field(default=1, ge=0)

    ci_enabled: bool = True
    ci_confidence: float = 0.95

    @field_validator("ci_confidence")
    @classmethod
    def _check_confidence(cls, v: float) -> float:
        if not (0.0 < v < 1.0):
            raise ValueError("ci_confidence must be in (0, 1)")
        return v


class Config(BaseModel):
    """Main configuration combining all sub-configs"""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        populate_by_name=True,
    )

    version: str = "0.1"
    engine: EngineConfig = Field(default_factory=EngineConfig)
    # `input` shadows a builtin as an attribute name
    inp: InputConfig = Field(default_factory=InputConfig, alias="input")
    display: DisplayConfig = Field(default_factory=DisplayConfig)

    def to_dict(self) -> Dict[str, Any]:
        """
        Export config to a JSON-serializable dict.
        """
        return self.model_dump(mode="json", by_alias=True)

    def to_json(
        self,
        indent: int = 2,
        ensure_ascii: bool = False,
    ) -> str:
        return json.dumps(
            self.to_dict(),
            indent=indent,
            ensure_ascii=ensure_ascii,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, s: str) -> "Config":
        return cls.from_dict(json.loads(s))


def get_default_config() -> Config:
    """Get default configuration"""
    return Config()


def get_legacy_config() -> Config:
    """Configuration reproducing the first released numbers (uint8, legacy variance)"""
    return Config(
        engine=EngineConfig(variance_formula=VarianceFormula.legacy),
        input=InputConfig(sample_dtype_="uint8"),
    )

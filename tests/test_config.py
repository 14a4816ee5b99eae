import pytest
import torch
from pydantic import ValidationError

from runstats.config import (
    Config,
    DisplayConfig,
    InputConfig,
    get_default_config,
    get_legacy_config,
)
from runstats.running import VarianceFormula


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("RUNSTATS_FORMULA", raising=False)
    monkeypatch.delenv("RUNSTATS_DTYPE", raising=False)


def test_defaults():
    conf = get_default_config()
    assert conf.engine.variance_formula is VarianceFormula.computational
    assert conf.engine.run_now is True
    assert conf.inp.sample_dtype is None
    assert conf.display.ci_confidence == 0.95


def test_legacy_preset():
    conf = get_legacy_config()
    assert conf.engine.variance_formula is VarianceFormula.legacy
    assert conf.inp.sample_dtype == torch.uint8


def test_env_defaults(monkeypatch):
    monkeypatch.setenv("RUNSTATS_FORMULA", "legacy")
    monkeypatch.setenv("RUNSTATS_DTYPE", "int16")
    conf = Config()
    assert conf.engine.variance_formula is VarianceFormula.legacy
    assert conf.inp.sample_dtype == torch.int16


def test_dtype_validation():
    with pytest.raises(ValidationError):
        InputConfig(sample_dtype_="uint9")
    # torch attribute that is not a dtype
    with pytest.raises(ValidationError):
        InputConfig(sample_dtype_="tensor")
    # no integral value for complex or quantized samples
    for name in ("complex64", "complex128", "qint8", "quint8"):
        with pytest.raises(ValidationError):
            InputConfig(sample_dtype_=name)
    for name in ("bool", "uint8", "int64", "bfloat16", "float64"):
        assert InputConfig(sample_dtype_=name).sample_dtype == getattr(torch, name)

    inp = InputConfig()
    inp.sample_dtype = torch.int32
    assert inp.sample_dtype_ == "int32"
    inp.sample_dtype = None
    assert inp.sample_dtype_ is None


def test_assignment_is_validated():
    conf = Config()
    with pytest.raises(ValidationError):
        conf.display.ci_confidence = 1.5
    with pytest.raises(ValidationError):
        conf.display.precision = -1
    with pytest.raises(ValidationError):
        conf.engine.variance_formula = "welford"

    conf.engine.variance_formula = "legacy"
    assert conf.engine.variance_formula is VarianceFormula.legacy


def test_extra_fields_forbidden():
    with pytest.raises(ValidationError):
        Config.from_dict({"engine": {"formula": "legacy"}})
    with pytest.raises(ValidationError):
        DisplayConfig(colour=True)


def test_json_round_trip():
    conf = get_legacy_config()
    conf.display.precision = 3

    text = conf.to_json()
    assert '"input"' in text
    assert '"legacy"' in text

    back = Config.from_json(text)
    assert back.engine.variance_formula is VarianceFormula.legacy
    assert back.display.precision == 3
    assert back.to_dict() == conf.to_dict()

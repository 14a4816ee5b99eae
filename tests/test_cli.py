import json

import pytest
from typer.testing import CliRunner

import cli
from cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # wide console so tables never fold numbers
    monkeypatch.setattr(cli.console, "width", 200)
    monkeypatch.delenv("RUNSTATS_FORMULA", raising=False)
    monkeypatch.delenv("RUNSTATS_DTYPE", raising=False)


def test_batch():
    result = runner.invoke(app, ["batch", "100", "12", "34", "73"])
    assert result.exit_code == 0, result.output
    assert "54.750000" in result.output
    assert "39.322385" in result.output


def test_batch_comma_separated_with_precision():
    result = runner.invoke(app, ["batch", "100,12,34,73", "--precision", "2"])
    assert result.exit_code == 0, result.output
    assert "54.75" in result.output
    assert "39.32" in result.output


def test_batch_single_sample_fails():
    result = runner.invoke(app, ["batch", "5"])
    assert result.exit_code == 1
    assert "at least 2 samples" in result.output


def test_batch_bad_token_fails():
    result = runner.invoke(app, ["batch", "1", "two"])
    assert result.exit_code == 1
    assert "Not a number" in result.output


def test_stream(tmp_path):
    a = tmp_path / "a.txt"
    b = tmp_path / "b.txt"
    a.write_text("100 12 34 73", encoding="utf-8")
    b.write_text("70 22 70 35 62", encoding="utf-8")
    out = tmp_path / "metrics.jsonl"

    result = runner.invoke(
        app,
        ["stream", str(a), str(b), "--formula", "legacy", "--metrics-out", str(out)],
    )
    assert result.exit_code == 0, result.output

    rows = [json.loads(line) for line in out.read_text().splitlines()]
    assert [r["processed_count"] for r in rows] == [4, 9]
    assert rows[0]["std_dev"] == 64.36274155130435
    assert rows[1]["mean"] == 53.111111111111114


def test_stream_chunks(tmp_path):
    a = tmp_path / "a.txt"
    a.write_text("1 2 3 4 5", encoding="utf-8")
    out = tmp_path / "metrics.jsonl"

    result = runner.invoke(
        app, ["stream", str(a), "--chunk", "2", "--metrics-out", str(out)]
    )
    assert result.exit_code == 0, result.output
    rows = [json.loads(line) for line in out.read_text().splitlines()]
    assert [r["processed_count"] for r in rows] == [2, 4, 5]


def test_stream_empty_file_fails(tmp_path):
    a = tmp_path / "a.txt"
    a.write_text("", encoding="utf-8")
    result = runner.invoke(app, ["stream", str(a)])
    assert result.exit_code == 1
    assert "No samples" in result.output


def test_stream_missing_file_fails(tmp_path):
    result = runner.invoke(app, ["stream", str(tmp_path / "nope.txt")])
    assert result.exit_code == 1


def test_demo():
    result = runner.invoke(app, ["demo"])
    assert result.exit_code == 0, result.output
    assert "54.75" in result.output
    assert "39.322385482063524" in result.output
    assert "64.362742" in result.output


def test_config_json(tmp_path):
    result = runner.invoke(app, ["config", "--legacy"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["engine"]["variance_formula"] == "legacy"
    assert data["input"]["sample_dtype_"] == "uint8"

    p = tmp_path / "conf.json"
    p.write_text(json.dumps({"display": {"precision": 3}}), encoding="utf-8")
    result = runner.invoke(app, ["config", "--config", str(p)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["display"]["precision"] == 3


def test_invalid_config_fails(tmp_path):
    p = tmp_path / "conf.json"
    p.write_text(json.dumps({"display": {"ci_confidence": 2}}), encoding="utf-8")
    result = runner.invoke(app, ["config", "--config", str(p)])
    assert result.exit_code == 1


def test_batch_infinite_sample_fails():
    result = runner.invoke(app, ["batch", "1", "inf"])
    assert result.exit_code == 1
    assert "Batch statistics failed" in result.output
    assert "Not a number" in result.output


def test_batch_complex_dtype_fails():
    result = runner.invoke(app, ["batch", "--dtype", "complex64", "1", "2"])
    assert result.exit_code == 1
    assert "Batch statistics failed" in result.output
    assert "complex64" in result.output


class _Answer:
    """Stands in for a questionary question object."""

    def __init__(self, value):
        self.value = value

    def ask(self):
        return self.value


@pytest.fixture
def answers(monkeypatch):
    """Queue answers for questionary.select / text / confirm, in call order."""
    queues = {"select": [], "text": [], "confirm": []}

    def make(kind):
        def prompt(*args, **kwargs):
            return _Answer(queues[kind].pop(0))

        return prompt

    for kind in queues:
        monkeypatch.setattr(cli.questionary, kind, make(kind))
    return queues


def test_interactive_add_run_snapshot(answers):
    answers["select"] += ["status", "add-samples", "run", "snapshot", "history", "exit"]
    answers["text"] += ["100 12 34 73 70", "3"]
    answers["confirm"] += [False]  # add without running

    result = runner.invoke(app, ["interactive"])
    assert result.exit_code == 0, result.output

    assert "No engine yet" in result.output
    assert "Folded 3 samples." in result.output
    # first three samples only: (100 + 12 + 34) / 3
    assert '"processed_count": 3' in result.output
    assert '"samples": [' in result.output
    assert "48.666667" in result.output
    assert "Bye." in result.output
    assert all(not q for q in answers.values())


def test_interactive_add_with_run_now(answers):
    answers["select"] += ["add-samples", "add-samples", "status", "exit"]
    answers["text"] += ["100 12", "34,73"]
    answers["confirm"] += [True, True]

    result = runner.invoke(app, ["interactive", "--formula", "legacy"])
    assert result.exit_code == 0, result.output
    assert "legacy" in result.output
    assert "64.362742" in result.output


def test_interactive_bad_limit_reports_failure(answers):
    answers["select"] += ["add-samples", "run", "exit"]
    answers["text"] += ["1 2", "abc"]
    answers["confirm"] += [True]

    result = runner.invoke(app, ["interactive"])
    assert result.exit_code == 0, result.output
    assert "Task failed" in result.output
    assert "abc" in result.output
    assert "Bye." in result.output


def test_interactive_cancelled_prompt_exits(answers):
    answers["select"] += [None]

    result = runner.invoke(app, ["interactive"])
    assert result.exit_code == 0, result.output
    assert "Bye." in result.output

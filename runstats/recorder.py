import math
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict
from rich import print
from rich.table import Table

from .config import Config
from .errors import InsufficientSamplesForVariance
from .running import RunningStatistics
from .utils.stats_utils import normal_mean_bounds, z_from_confidence


class PassMetrics(BaseModel):
    """
    Data model for the engine's figures after one processing pass.
    """

    model_config = ConfigDict(ser_json_inf_nan="constants")

    pass_idx: int
    label: str = ""
    processed_count: int
    pending_count: int
    mean: float
    # None until two samples have been processed
    std_dev: Optional[float] = None
    # Optional fields for Confidence Intervals
    mean_low: Optional[float] = None
    mean_high: Optional[float] = None


class Recorder:
    """
    Collects per-pass metrics of a RunningStatistics engine, prints them with
    rich and optionally appends them to a JSON lines file.
    """

    def __init__(self, config: Config, metrics_path: str | Path | None = None) -> None:
        self.config = config
        self.history: list[PassMetrics] = []

        self.metrics_path = Path(metrics_path) if metrics_path is not None else None
        if self.metrics_path is not None:
            self.metrics_path.parent.mkdir(parents=True, exist_ok=True)

        self.ci_z = (
            z_from_confidence(config.display.ci_confidence)
            if config.display.ci_enabled
            else 0.0
        )

    def _log_to_jsonl(self, file_path: Path, data: BaseModel) -> None:
        """
        Helper to write a Pydantic model as a JSON line to a file.
        """
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(data.model_dump_json() + "\n")

    def record(self, engine: RunningStatistics, label: str = "") -> PassMetrics:
        """
        Snapshot the engine after a pass, with a confidence interval of the
        mean if enabled.
        """
        try:
            sd: Optional[float] = engine.std_dev
        except InsufficientSamplesForVariance:
            sd = None

        ci_data = {}
        if self.config.display.ci_enabled and sd is not None and not math.isnan(sd):
            low, high, _ = normal_mean_bounds(
                engine.mean, sd * sd, engine.processed_count, self.ci_z
            )
            ci_data = {"mean_low": low, "mean_high": high}

        metrics = PassMetrics(
            pass_idx=len(self.history),
            label=label,
            processed_count=engine.processed_count,
            pending_count=engine.pending_count,
            mean=engine.mean,
            std_dev=sd,
            **ci_data,
        )
        self.history.append(metrics)

        if self.metrics_path is not None:
            self._log_to_jsonl(self.metrics_path, metrics)

        every = self.config.display.display_every
        if every > 0 and len(self.history) % every == 0:
            self._print_metrics(metrics)

        return metrics

    def _fmt(self, v: Optional[float]) -> str:
        if v is None:
            return "-"
        return f"{v:.{self.config.display.precision}f}"

    def _print_metrics(self, m: PassMetrics) -> None:
        """Helper to print one pass to the console."""
        header = f"Pass {m.pass_idx} {m.label}".rstrip()
        stats = (
            f"processed: {m.processed_count} (pending {m.pending_count})  "
            f"mean: {self._fmt(m.mean)}  sd: {self._fmt(m.std_dev)}"
        )
        if m.mean_low is not None:
            stats += (
                f"  [{self._fmt(m.mean_low)}, {self._fmt(m.mean_high)}]"
                f" (z={self.ci_z:.3f})"
            )
        print(f"[bold]{header}[/bold]\n{stats}")

    def summary_table(self) -> Table:
        t = Table(title="Passes", show_lines=False)
        t.add_column("pass", justify="right")
        t.add_column("label")
        t.add_column("processed", justify="right")
        t.add_column("mean", justify="right")
        t.add_column("sd", justify="right")
        if self.config.display.ci_enabled:
            t.add_column("mean CI", justify="right")

        for m in self.history:
            row = [
                str(m.pass_idx),
                m.label or "-",
                str(m.processed_count),
                self._fmt(m.mean),
                self._fmt(m.std_dev),
            ]
            if self.config.display.ci_enabled:
                row.append(
                    "-"
                    if m.mean_low is None
                    else f"{self._fmt(m.mean_low)} .. {self._fmt(m.mean_high)}"
                )
            t.add_row(*row)
        return t

    def reset(self) -> None:
        self.history = []

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import questionary
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from runstats.config import Config, get_default_config, get_legacy_config
from runstats.errors import StatsContractError
from runstats.reader import parse_samples, read_samples
from runstats.recorder import Recorder
from runstats.running import RunningStatistics, VarianceFormula
from runstats.utils.stats_utils import arithmetic_mean, standard_deviation

app = typer.Typer(add_completion=False)
console = Console()

DEMO_INITIAL = [100, 12, 34, 73]
DEMO_BATCH = [70, 22, 70, 35, 62]
DEMO_SINGLE = 240


# -------------------------
# Common helpers
# -------------------------
def _load_config(
    config_path: Optional[Path],
    formula: Optional[VarianceFormula],
    dtype: Optional[str],
    precision: Optional[int],
) -> Config:
    """Build the effective config: file (or defaults), then CLI overrides."""
    if config_path is not None:
        cfg = Config.from_json(config_path.read_text(encoding="utf-8"))
    else:
        cfg = get_default_config()
    if formula is not None:
        cfg.engine.variance_formula = formula
    if dtype is not None:
        cfg.inp.sample_dtype_ = dtype
    if precision is not None:
        cfg.display.precision = precision
    return cfg


def _fail(title: str, err: Exception) -> None:
    console.print(Panel.fit(f"[red]{title}[/red]"))
    console.print(str(err))
    raise typer.Exit(code=1)


def _fmt(cfg: Config, v: float) -> str:
    return f"{v:.{cfg.display.precision}f}"


def _print_engine(cfg: Config, rs: RunningStatistics) -> None:
    """Pretty-print engine status."""
    t = Table(title="Running statistics", show_lines=True)
    t.add_column("field")
    t.add_column("value", justify="right")
    t.add_row("formula", rs.variance_formula.value)
    t.add_row("samples", str(len(rs)))
    t.add_row("processed", str(rs.processed_count))
    t.add_row("pending", str(rs.pending_count))
    t.add_row("mean", _fmt(cfg, rs.mean))
    sd = "-" if rs.processed_count < 2 else _fmt(cfg, rs.std_dev)
    t.add_row("sd", sd)
    console.print(t)


ConfigOpt = typer.Option(None, "--config", "-c", help="JSON config file.")
FormulaOpt = typer.Option(None, "--formula", help="Running variance formula.")
DtypeOpt = typer.Option(None, "--dtype", help="Cast samples through a torch dtype.")
PrecisionOpt = typer.Option(None, "--precision", help="Digits after the point.")


# -------------------------
# Commands
# -------------------------
@app.command()
def batch(
    numbers: List[str] = typer.Argument(..., help="Samples, e.g. 1 2 3 or 1,2,3."),
    config_path: Optional[Path] = ConfigOpt,
    dtype: Optional[str] = DtypeOpt,
    precision: Optional[int] = PrecisionOpt,
) -> None:
    """Batch (two-pass) mean and standard deviation."""
    try:
        cfg = _load_config(config_path, None, dtype, precision)
        samples = parse_samples(
            " ".join(numbers), cfg.inp.sample_dtype, cfg.inp.separator
        )
        mean = arithmetic_mean(samples)
        sd = standard_deviation(samples)
    except (StatsContractError, ValueError, ValidationError) as e:
        _fail("Batch statistics failed", e)

    console.print(
        Panel.fit(
            f"n=[cyan]{len(samples)}[/cyan]  "
            f"mean=[green]{_fmt(cfg, mean)}[/green]  "
            f"sd=[green]{_fmt(cfg, sd)}[/green]"
        )
    )


@app.command()
def stream(
    files: List[Path] = typer.Argument(..., help="Sample files, '-' for stdin."),
    chunk: int = typer.Option(0, "--chunk", min=0, help="Run a pass every N samples."),
    metrics_out: Optional[Path] = typer.Option(
        None, "--metrics-out", help="Append per-pass metrics as JSON lines."
    ),
    config_path: Optional[Path] = ConfigOpt,
    formula: Optional[VarianceFormula] = FormulaOpt,
    dtype: Optional[str] = DtypeOpt,
    precision: Optional[int] = PrecisionOpt,
) -> None:
    """Feed files into one running engine, one pass per file (or chunk)."""
    try:
        cfg = _load_config(config_path, formula, dtype, precision)
        recorder = Recorder(cfg, metrics_out)
        rs: Optional[RunningStatistics] = None

        for path in files:
            samples = read_samples(path, cfg.inp.sample_dtype, cfg.inp.separator)
            step = chunk or max(len(samples), 1)
            for i in range(0, len(samples), step):
                part = samples[i : i + step]
                if rs is None:
                    rs = RunningStatistics(
                        part,
                        cfg.engine.run_now,
                        variance_formula=cfg.engine.variance_formula,
                    )
                else:
                    rs.add_samples(part, cfg.engine.run_now)
                recorder.record(rs, label=str(path))

        if rs is None:
            raise ValueError("No samples found in the given files")
    except (StatsContractError, ValueError, ValidationError, OSError) as e:
        _fail("Streaming failed", e)

    console.print(recorder.summary_table())


@app.command()
def demo(
    formula: VarianceFormula = typer.Option(
        VarianceFormula.legacy, "--formula", help="Running variance formula."
    ),
) -> None:
    """Replay the reference scenario with uint8 samples."""
    cfg = get_legacy_config()
    cfg.engine.variance_formula = formula
    dt = cfg.inp.sample_dtype
    initial = parse_samples(" ".join(map(str, DEMO_INITIAL)), dt)

    console.print(
        Panel.fit(
            f"batch mean=[green]{arithmetic_mean(initial)!r}[/green]  "
            f"batch sd=[green]{standard_deviation(initial)!r}[/green]"
        )
    )

    recorder = Recorder(cfg)
    rs = RunningStatistics(initial, True, variance_formula=formula)
    recorder.record(rs, label="initial")
    rs.add_samples(parse_samples(" ".join(map(str, DEMO_BATCH)), dt), True)
    recorder.record(rs, label="batch")
    rs.add_sample(parse_samples(str(DEMO_SINGLE), dt)[0], True)
    recorder.record(rs, label="single")
    console.print(recorder.summary_table())


@app.command("config")
def show_config(
    legacy: bool = typer.Option(False, "--legacy", help="Show the legacy preset."),
    config_path: Optional[Path] = ConfigOpt,
) -> None:
    """Print the effective configuration as JSON."""
    try:
        if legacy:
            cfg = get_legacy_config()
        else:
            cfg = _load_config(config_path, None, None, None)
    except (ValueError, ValidationError, OSError) as e:
        _fail("Config validation failed", e)
    console.print_json(cfg.to_json())


# -------------------------
# Interactive tasks
# -------------------------
class _Session:
    """State shared by interactive tasks."""

    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        self.rs: Optional[RunningStatistics] = None
        self.recorder = Recorder(cfg)


def _ask_samples(session: _Session, prompt: str) -> Optional[list]:
    txt = questionary.text(prompt, default="").ask()
    if txt is None:
        return None
    return parse_samples(txt, session.cfg.inp.sample_dtype, session.cfg.inp.separator)


def _task_status(session: _Session) -> None:
    """Show engine status."""
    if session.rs is None:
        console.print("[yellow]No engine yet; add samples first.[/yellow]")
        return
    _print_engine(session.cfg, session.rs)


def _task_add_samples(session: _Session) -> None:
    """Append a batch of samples (creates the engine on first use)."""
    samples = _ask_samples(session, "Samples (space/comma separated):")
    if samples is None:
        console.print("[yellow]Cancelled.[/yellow]")
        return
    run_now = bool(questionary.confirm("Run now?", default=True).ask())
    if session.rs is None:
        session.rs = RunningStatistics(
            samples, run_now, variance_formula=session.cfg.engine.variance_formula
        )
    else:
        session.rs.add_samples(samples, run_now)
    if run_now:
        session.recorder.record(session.rs, label="add")


def _task_run(session: _Session) -> None:
    """Process pending samples, optionally only a prefix."""
    if session.rs is None:
        console.print("[yellow]No engine yet; add samples first.[/yellow]")
        return
    txt = questionary.text("Max samples to fold (blank = all):", default="").ask()
    if txt is None:
        console.print("[yellow]Cancelled.[/yellow]")
        return
    limit = int(txt) if txt.strip() else None
    folded = session.rs.run(limit)
    console.print(f"[green]Folded {folded} samples.[/green]")
    session.recorder.record(session.rs, label="run")


def _task_snapshot(session: _Session) -> None:
    """Print the engine snapshot as JSON."""
    if session.rs is None:
        console.print("[yellow]No engine yet; add samples first.[/yellow]")
        return
    console.print_json(data=session.rs.to_state())


def _task_history(session: _Session) -> None:
    """Show recorded passes."""
    console.print(session.recorder.summary_table())


TASKS: List[Dict[str, Any]] = [
    {"name": "status", "desc": "Show engine status.", "fn": _task_status},
    {
        "name": "add-samples",
        "desc": "Append samples (optionally run a pass).",
        "fn": _task_add_samples,
    },
    {"name": "run", "desc": "Process pending samples.", "fn": _task_run},
    {"name": "snapshot", "desc": "Print engine snapshot JSON.", "fn": _task_snapshot},
    {"name": "history", "desc": "Show recorded passes.", "fn": _task_history},
    {"name": "exit", "desc": "Exit the CLI tool.", "fn": None},
]


@app.command()
def interactive(
    config_path: Optional[Path] = ConfigOpt,
    formula: Optional[VarianceFormula] = FormulaOpt,
    dtype: Optional[str] = DtypeOpt,
) -> None:
    """Start the interactive CLI."""
    console.print("[bold green]runstats CLI[/bold green]")
    try:
        cfg = _load_config(config_path, formula, dtype, None)
    except (ValueError, ValidationError, OSError) as e:
        _fail("Config validation failed", e)

    session = _Session(cfg)
    while True:
        options = [
            questionary.Choice(title=f"{t['name']} - {t['desc']}", value=t["name"])
            for t in TASKS
        ]
        selected = questionary.select("Choose a task:", choices=options).ask()
        if selected is None or selected == "exit":
            console.print("[bold blue]Bye.[/bold blue]")
            break

        task = next(x for x in TASKS if x["name"] == selected)
        fn: Callable[[_Session], None] = task["fn"]
        try:
            fn(session)
        except (StatsContractError, ValueError) as e:
            console.print(Panel.fit("[red]Task failed[/red]"))
            console.print(str(e))


if __name__ == "__main__":
    app()

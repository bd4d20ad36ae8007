"""Typer-based command line interface for running tariff impact simulations."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..config import EngineSettings
from ..core.errors import InvalidConfig
from ..core.validator import load_config, read_config_document
from ..engine import SimulationEngine
from ..evaluators import EVALUATORS, build_evaluator
from ..models.results import RunState, SimulationResult
from ..models.simulation import SimulationConfig

app = typer.Typer(help="Controllable Monte Carlo engine for tariff impact analysis")
console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_path: Path) -> tuple[dict, SimulationConfig]:
    try:
        document = read_config_document(config_path)
        config = load_config(document.get("simulation", document))
    except InvalidConfig as exc:
        console.print("[red]Invalid configuration:[/red]")
        for problem in exc.problems:
            console.print(f"  - {problem}")
        raise typer.Exit(code=2) from exc
    return document, config


def _display_parameters(config: SimulationConfig) -> None:
    table = Table(title=f"Parameters for {config.name}")
    table.add_column("Parameter")
    table.add_column("Distribution")
    table.add_column("Settings")
    for spec in config.parameter_specs:
        dist = spec.distribution.model_dump(exclude={"kind"})
        settings = ", ".join(f"{key}={value}" for key, value in dist.items())
        table.add_row(spec.name, spec.distribution.kind, settings)
    console.print(table)


def _display_result(result: SimulationResult) -> None:
    stats = result.final_statistics
    lower, upper = stats.confidence_interval
    summary = Table(title="Simulation Summary", show_header=False)
    summary.add_column("Metric")
    summary.add_column("Value", justify="right")
    summary.add_row("State", f"{result.state.value} ({result.stop_reason.value})")
    summary.add_row("Iterations", f"{result.iterations_required:,}")
    summary.add_row("Converged", "yes" if result.convergence_achieved else "no")
    summary.add_row("Mean outcome", f"{stats.mean:,.4f}")
    summary.add_row("Std deviation", f"{stats.std_dev:,.4f}")
    summary.add_row(
        f"{stats.confidence_level:.0%} confidence interval",
        f"[{lower:,.4f}, {upper:,.4f}]",
    )
    if result.risk_metrics is not None:
        summary.add_row("Value at risk", f"{result.risk_metrics.value_at_risk:,.4f}")
        summary.add_row("Probability of loss", f"{result.risk_metrics.probability_of_loss:.2%}")
    summary.add_row("Elapsed", f"{result.elapsed_ms / 1000:.2f}s")
    console.print(summary)

    if result.sensitivity_factors:
        table = Table(title="Sensitivity Factors")
        table.add_column("Rank", justify="right")
        table.add_column("Parameter")
        table.add_column("Score", justify="right")
        table.add_column("Correlation", justify="right")
        for factor in result.sensitivity_factors:
            table.add_row(
                str(factor.rank),
                factor.parameter_name,
                f"{factor.sensitivity_score:.3f}",
                f"{factor.correlation:+.3f}",
            )
        console.print(table)

    percentiles = result.percentile_table()
    if not percentiles.empty:
        ladder = Table(title="Outcome Percentiles")
        ladder.add_column("Percentile")
        ladder.add_column("Outcome", justify="right")
        for row in percentiles.itertuples(index=False):
            ladder.add_row(row.percentile, f"{row.outcome:,.4f}")
        console.print(ladder)

    if result.error is not None:
        console.print(
            f"[red]Run stopped at iteration {result.error.iteration_index}: "
            f"{result.error.message}[/red]"
        )


@app.command()
def validate(config_path: Path = typer.Argument(..., help="YAML or JSON simulation config")) -> None:
    """Validate a simulation config file."""
    _, config = _load(config_path)
    _display_parameters(config)
    console.print("[green]Configuration is valid.[/green]")


@app.command()
def run(
    config_path: Path = typer.Argument(..., help="YAML or JSON simulation config"),
    evaluator: Optional[str] = typer.Option(
        None, "--evaluator", "-e", help=f"Evaluator type ({', '.join(EVALUATORS)})"
    ),
    deadline: Optional[float] = typer.Option(
        None, "--deadline", min=0.0, help="Stop the run after this many seconds"
    ),
    steps: Optional[int] = typer.Option(
        None, "--steps", min=1, help="Run only this many iterations, then stop"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result as JSON"),
    include_samples: bool = typer.Option(False, help="Include raw samples in the JSON output"),
) -> None:
    """Run a simulation with live progress and print the aggregated result."""
    settings = EngineSettings.from_env()
    _configure_logging(settings.log_level)
    document, config = _load(config_path)
    evaluator_spec = dict(document.get("evaluator") or {})
    if evaluator:
        evaluator_spec["type"] = evaluator
    try:
        scorer = build_evaluator(evaluator_spec, config)
    except InvalidConfig as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    engine = SimulationEngine(scorer, settings=settings)
    handle = engine.start(config, start_paused=steps is not None)
    subscription = engine.subscribe_progress(handle)
    if steps is not None:
        engine.step(handle, steps)

    stop_at = time.monotonic() + deadline if deadline is not None else None
    with Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed:,.0f}/{task.total:,.0f}"),
        TextColumn("{task.fields[interval]}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(config.name, total=config.max_iterations, interval="")
        while True:
            snapshot = subscription.get(timeout=0.2)
            if snapshot is not None:
                lower, upper = snapshot.confidence_interval
                progress.update(
                    task,
                    completed=snapshot.iterations,
                    interval=f"CI [{lower:,.4f}, {upper:,.4f}]",
                )
            state = engine.state(handle)
            if state.is_terminal and subscription.closed:
                break
            if steps is not None and state is RunState.PAUSED:
                engine.stop(handle)
            if stop_at is not None and time.monotonic() >= stop_at and not state.is_terminal:
                console.log("Deadline reached, stopping run.")
                engine.stop(handle)
                stop_at = None

    result = engine.await_result(handle)
    _display_result(result)
    if output is not None:
        payload = result.to_payload(include_samples=include_samples)
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        console.print(f"Result written to {output}")
    if result.error is not None:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

from __future__ import annotations

import logging
import platform
from datetime import datetime
from importlib import metadata
from pathlib import Path
from typing import Optional

import numpy as np
import typer
from rich.console import Console

from backlog_forecaster.adapters.jira.jira_client import JiraApiError
from backlog_forecaster.adapters.jira.jira_source import JiraTaskSource
from backlog_forecaster.common.logging_config import configure_logging
from backlog_forecaster.config import ForecasterConfig, JiraConfig
from backlog_forecaster.forecasting.domain.models import TaskSource
from backlog_forecaster.forecasting.services.forecasting_service import (
    ForecastingError,
    ForecastingService,
)
from backlog_forecaster.reporting.terminal import render_analysis, render_forecast, render_scope

DISTRIBUTION_NAME = "backlog-forecaster"

app = typer.Typer(
    add_completion=False,
    help="Monte Carlo forecasts of when a Jira epic will be done, based on how long similar tasks took.",
)


def build_info() -> str:
    try:
        version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        version = "unknown"
    return (
        f"{DISTRIBUTION_NAME} {version} "
        f"(python {platform.python_version()}, numpy {np.__version__})"
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(build_info())
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print build information and exit.",
    ),
) -> None:
    """Estimate how long a backlog will take using historical task durations."""


def _load_settings(
    config: Optional[str],
    url: Optional[str],
    projects: Optional[str],
) -> ForecasterConfig:
    cfg = ForecasterConfig.load_or_default(Path(config) if config else None)
    if url:
        cfg.jira.url = url
    if projects:
        cfg.jira.projects = [p.strip() for p in projects.split(",") if p.strip()]
    return cfg


def _build_source(jira: JiraConfig, token: str) -> TaskSource:
    return JiraTaskSource.connect(jira, token=token)


def _service(cfg: ForecasterConfig, token: Optional[str], seed: Optional[int] = None) -> ForecastingService:
    token = token or cfg.jira.token_from_env()
    if not (cfg.jira.url and token and cfg.jira.projects):
        raise typer.BadParameter(
            "--url, --token and --projects are required (or set them in --config)"
        )
    if seed is not None:
        cfg.simulation.rng_seed = seed
    return ForecastingService(
        source=_build_source(cfg.jira, token),
        simulation=cfg.simulation,
        analytics=cfg.analytics,
    )


def _parse_deadline(deadline: Optional[str]) -> datetime | None:
    if not deadline:
        return None
    try:
        return datetime.strptime(deadline, "%Y-%m-%d")
    except ValueError as exc:
        raise typer.BadParameter(f"deadline must be YYYY-MM-DD, got {deadline!r}") from exc


@app.command()
def estimate(
    epic: str = typer.Option(..., help="Id of the epic to estimate, e.g. COMPASS-0000"),
    milestone: Optional[str] = typer.Option(
        None, help="Label of the milestone to estimate. Defaults to the entire epic."
    ),
    deadline: Optional[str] = typer.Option(
        None, help="Potential deadline of the delivery, YYYY-MM-DD."
    ),
    iterations: Optional[int] = typer.Option(
        None, help="Number of simulated trials. Defaults to 1000."
    ),
    parallel: Optional[int] = typer.Option(
        None,
        help="Tasks that can be done in parallel. Consider blocks and dependencies "
        "before setting this to the number of developers.",
    ),
    monthly_sp: Optional[float] = typer.Option(
        None,
        "--monthly-sp",
        help="Story points finished per month. If given, durations are guessed from it "
        "instead of the team history.",
    ),
    seed: Optional[int] = typer.Option(None, help="Random seed for a reproducible forecast."),
    verbose: bool = typer.Option(False, help="Print the tasks in the scope and debug logs."),
    url: Optional[str] = typer.Option(None, help='URL of the Jira server, e.g. "https://jira.company.org/".'),
    token: Optional[str] = typer.Option(None, help="Personal access token for Jira."),
    projects: Optional[str] = typer.Option(
        None, help="Comma-separated projects to sample history from, e.g. COMPASS,MONGOSH"
    ),
    config: Optional[str] = typer.Option(None, help="Path to a forecast_config.toml"),
) -> None:
    """Forecast when the given epic (and milestone) will be finished."""
    cfg = _load_settings(config, url, projects)
    configure_logging(logging.DEBUG if verbose else logging.INFO, log_dir=cfg.log_dir)
    deadline_dt = _parse_deadline(deadline)
    service = _service(cfg, token, seed=seed)

    try:
        report = service.estimate(
            cfg.jira.projects,
            epic,
            milestone=milestone,
            iterations=iterations,
            parallelism=parallel,
            monthly_story_points=monthly_sp,
        )
    except (ForecastingError, JiraApiError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    console = Console()
    render_forecast(console, report, deadline=deadline_dt)
    if verbose:
        render_scope(console, report.scope)


@app.command()
def analyse(
    url: Optional[str] = typer.Option(None, help='URL of the Jira server, e.g. "https://jira.company.org/".'),
    token: Optional[str] = typer.Option(None, help="Personal access token for Jira."),
    projects: Optional[str] = typer.Option(
        None, help="Comma-separated projects to sample history from, e.g. COMPASS,MONGOSH"
    ),
    config: Optional[str] = typer.Option(None, help="Path to a forecast_config.toml"),
    verbose: bool = typer.Option(False, help="Print debug logs."),
) -> None:
    """Summarise how long recently closed tasks took per story point size."""
    cfg = _load_settings(config, url, projects)
    configure_logging(logging.DEBUG if verbose else logging.INFO, log_dir=cfg.log_dir)
    service = _service(cfg, token)

    try:
        report = service.analyse(cfg.jira.projects)
    except (ForecastingError, JiraApiError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    render_analysis(Console(), report)


app.command("analyze", hidden=True)(analyse)


@app.command()
def init_config(
    path: str = typer.Argument(
        "forecast_config.toml",
        help="Where to write the forecaster configuration TOML",
    ),
) -> None:
    """Write an example forecast_config.toml."""
    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    template = Path(__file__).resolve().parent / "forecast_config.example.toml"
    if not template.exists():
        raise RuntimeError(f"Missing template file: {template}")

    out.write_text(template.read_text(encoding="utf-8"), encoding="utf-8")
    typer.echo(f"Wrote {out} (edit it, then run: backlog-forecaster estimate --config {out} --epic ...)")

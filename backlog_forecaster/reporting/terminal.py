from __future__ import annotations

import math
from datetime import datetime
from typing import Final, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from backlog_forecaster.forecasting.analytics.distribution import AnalysisReport, Severity
from backlog_forecaster.forecasting.domain.models import ForecastBand, Task
from backlog_forecaster.forecasting.services.forecasting_service import EstimateReport

NO_DEADLINE: Final[datetime] = datetime(2100, 1, 1)
BAR_WIDTH: Final[int] = 40
BAR_CHAR: Final[str] = "■"
WORKING_DAYS_PER_WEEK: Final[int] = 5

_SEVERITY_MARKERS: Final[dict[Severity, str]] = {
    Severity.HIGH: "🔴",
    Severity.MEDIUM: "🟠",
    Severity.LOW: "🟢",
}


def format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def effort_weeks(days: int, parallelism: int) -> int:
    return math.ceil(days / max(1, parallelism) / WORKING_DAYS_PER_WEEK)


def band_label(band: ForecastBand, parallelism: int) -> str:
    weeks = effort_weeks(band.days, parallelism)
    return (
        f"{band.label} in {band.days} days ({weeks} weeks effort) "
        f"by {format_date(band.finish_by)}"
    )


def render_forecast(
    console: Console,
    report: EstimateReport,
    deadline: datetime | None = None,
) -> None:
    """Bar chart of the forecast bands, red when a band misses the deadline."""
    limit = deadline if deadline is not None else NO_DEADLINE
    bands = list(report.result.bands.values())
    longest = max((b.days for b in bands), default=1) or 1

    title = f"📆 Probability of finishing the scope of {report.total_points} story points"
    if deadline is not None:
        title += f" before {format_date(deadline)}"
    console.print(f"{title}:")
    if report.synthetic_history:
        console.print("[dim](durations guessed from monthly story points)[/dim]")

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("band", no_wrap=True)
    table.add_column("bar", overflow="fold")
    for band in bands:
        color = "red" if band.finish_by > limit else "green"
        width = max(1, round(BAR_WIDTH * band.days / longest))
        table.add_row(
            Text(band_label(band, report.parallelism), style=color),
            Text(BAR_CHAR * width, style=color),
        )
    console.print(table)


def render_scope(console: Console, scope: Sequence[Task]) -> None:
    table = Table("Project", "Task", "Story Points", title="📦 Scope")
    for task in scope:
        table.add_row(task.project, task.task_id, str(task.estimation))
    console.print(table)


def render_analysis(console: Console, report: AnalysisReport) -> None:
    histogram = report.histogram
    dist = Table(
        "Story Points",
        *[f"{d} days" for d in histogram.columns],
        title="📊 Task duration distribution based on story points estimation (lower distribution better)",
    )
    for estimation, counts in histogram.rows.items():
        dist.add_row(str(estimation), *[str(c) for c in counts])
    console.print(dist)

    deviations = Table(
        "",
        "Story Points",
        "Median",
        "Deviation",
        title="📊 Task deviation by story points (lower better)",
    )
    for row in report.deviations:
        deviations.add_row(
            _SEVERITY_MARKERS[row.severity],
            str(row.estimation),
            str(row.median),
            str(row.deviation),
        )
    console.print(deviations)

    outliers = Table("Task Id", "Story Points", "Duration", title="📊 Outlier tasks")
    for o in report.outliers:
        outliers.add_row(o.task_id, str(o.estimation), str(o.duration))
    console.print(outliers)

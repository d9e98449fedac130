from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

import numpy as np

from backlog_forecaster.config import AnalyticsConfig, SimulationConfig
from backlog_forecaster.forecasting.analytics.distribution import AnalysisReport, analyse
from backlog_forecaster.forecasting.domain.models import (
    FinishedTask,
    ForecastResult,
    Task,
    TaskSource,
)
from backlog_forecaster.forecasting.priors.history import guess_history
from backlog_forecaster.forecasting.simulator.monte_carlo import (
    DEFAULT_ITERATIONS,
    DEFAULT_PARALLELISM,
    MonteCarloBacklogForecaster,
    coerce_count,
)


logger = logging.getLogger(__name__)


class ForecastingError(RuntimeError):
    pass


class EmptyHistoryError(ForecastingError):
    pass


class EmptyScopeError(ForecastingError):
    pass


@dataclass(frozen=True)
class EstimateReport:
    result: ForecastResult
    scope: list[Task]
    history: list[FinishedTask]
    total_points: int
    iterations: int
    parallelism: int
    synthetic_history: bool = False


@dataclass
class ForecastingService:
    """Fetches history and scope once, then runs the in-memory forecast."""

    source: TaskSource
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    rng: np.random.Generator | None = None

    def __post_init__(self) -> None:
        if self.rng is None:
            self.rng = np.random.default_rng(self.simulation.rng_seed)

    def _history(self, projects: Sequence[str]) -> list[FinishedTask]:
        history = self.source.sample_history(projects)
        if not history:
            raise EmptyHistoryError(
                f"Could not get historical data for projects: {','.join(projects)}"
            )
        return history

    def estimate(
        self,
        projects: Sequence[str],
        epic: str,
        milestone: str | None = None,
        iterations: int | None = None,
        parallelism: int | None = None,
        monthly_story_points: float | None = None,
        started_at: datetime | None = None,
    ) -> EstimateReport:
        history = self._history(projects)

        scope = self.source.query_scope(epic, milestone)
        if not scope:
            label = f"{epic} {milestone}" if milestone else epic
            raise EmptyScopeError(f"Could not get tasks in the scope: {label}")

        synthetic = monthly_story_points is not None
        if synthetic:
            logger.info("Using a synthetic history of %s story points per month", monthly_story_points)
            history = guess_history(monthly_story_points)

        n_iterations = coerce_count(
            iterations if iterations is not None else self.simulation.iterations,
            DEFAULT_ITERATIONS,
            "iterations",
        )
        lanes = coerce_count(
            parallelism if parallelism is not None else self.simulation.parallelism,
            DEFAULT_PARALLELISM,
            "parallelism",
        )

        forecaster = MonteCarloBacklogForecaster(
            days_per_point=self.simulation.days_per_point,
            rng=self.rng,
        )
        result = forecaster.forecast(
            history,
            scope,
            iterations=n_iterations,
            parallelism=lanes,
            started_at=started_at,
        )

        return EstimateReport(
            result=result,
            scope=list(scope),
            history=list(history),
            total_points=sum(t.estimation for t in scope),
            iterations=n_iterations,
            parallelism=lanes,
            synthetic_history=synthetic,
        )

    def analyse(self, projects: Sequence[str]) -> AnalysisReport:
        history = self._history(projects)
        return analyse(
            history,
            high_days=self.analytics.high_deviation_days,
            warn_days=self.analytics.warn_deviation_days,
            outlier_quantile=self.analytics.outlier_quantile,
        )

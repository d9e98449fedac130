from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Sequence

import numpy as np

from backlog_forecaster.forecasting.domain.models import (
    DAYS_PER_POINT,
    REPORT_QUANTILES,
    FinishedTask,
    ForecastBand,
    ForecastResult,
    Task,
)
from backlog_forecaster.forecasting.priors.history import build_weight_spec
from backlog_forecaster.forecasting.sampling.weighted import make_sampler
from backlog_forecaster.forecasting.stats.quantile import quantile

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 1000
DEFAULT_PARALLELISM = 1


def coerce_count(value: Any, default: int, name: str) -> int:
    """Best-effort positive integer; anything unusable becomes ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, using %s", name, value, default)
        return default
    if not math.isfinite(number) or number < 1:
        logger.warning("Invalid %s %r, using %s", name, value, default)
        return default
    return int(number)


@dataclass
class MonteCarloBacklogForecaster:
    """Monte Carlo forecaster of how many days a backlog takes to finish.

    Every trial draws one duration per scope task from the empirical
    history of tasks of the same size, sums them, spreads the total over
    ``parallelism`` lanes and rounds up to whole days (at least one).
    """

    days_per_point: int = DAYS_PER_POINT
    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    def trials(
        self,
        history: Sequence[FinishedTask],
        scope: Sequence[Task],
        iterations: Any = DEFAULT_ITERATIONS,
        parallelism: Any = DEFAULT_PARALLELISM,
    ) -> np.ndarray:
        """Per-trial outcomes in trial order (unsorted)."""
        n_sims = coerce_count(iterations, DEFAULT_ITERATIONS, "iterations")
        lanes = coerce_count(parallelism, DEFAULT_PARALLELISM, "parallelism")

        if not history:
            logger.warning("No history available, every size uses the fallback estimate")

        sampler = make_sampler(
            build_weight_spec(history),
            rng=self.rng,
            days_per_point=self.days_per_point,
        )

        # Trial i is column i: one vectorised draw of n_sims durations per task.
        totals = np.zeros(n_sims, dtype=np.int64)
        for task in scope:
            totals += sampler.sample(task.estimation, n_sims)

        # Ceiling division, floored at one day.
        outcomes = np.maximum(1, -(-totals // lanes))

        logger.debug(
            "Simulated %s trials over %s tasks (parallelism=%s): min=%s max=%s",
            n_sims,
            len(scope),
            lanes,
            int(outcomes.min()),
            int(outcomes.max()),
        )
        return outcomes

    def simulate(
        self,
        history: Sequence[FinishedTask],
        scope: Sequence[Task],
        iterations: Any = DEFAULT_ITERATIONS,
        parallelism: Any = DEFAULT_PARALLELISM,
    ) -> list[int]:
        outcomes = self.trials(history, scope, iterations=iterations, parallelism=parallelism)
        return sorted(int(x) for x in outcomes)

    def forecast(
        self,
        history: Sequence[FinishedTask],
        scope: Sequence[Task],
        iterations: Any = DEFAULT_ITERATIONS,
        parallelism: Any = DEFAULT_PARALLELISM,
        started_at: datetime | None = None,
    ) -> ForecastResult:
        start = started_at if started_at is not None else datetime.now()
        outcomes = self.simulate(history, scope, iterations=iterations, parallelism=parallelism)

        bands: dict[str, ForecastBand] = {}
        for label, q in REPORT_QUANTILES:
            days = quantile(outcomes, q)
            bands[label] = ForecastBand(
                label=label,
                quantile=q,
                days=days,
                finish_by=start + timedelta(days=days),
            )

        return ForecastResult(started_at=start, bands=bands)


def simulate(
    history: Sequence[FinishedTask],
    scope: Sequence[Task],
    iterations: Any = DEFAULT_ITERATIONS,
    parallelism: Any = DEFAULT_PARALLELISM,
    rng: np.random.Generator | None = None,
    days_per_point: int = DAYS_PER_POINT,
) -> list[int]:
    forecaster = MonteCarloBacklogForecaster(
        days_per_point=days_per_point,
        rng=rng if rng is not None else np.random.default_rng(),
    )
    return forecaster.simulate(history, scope, iterations=iterations, parallelism=parallelism)


def forecast(
    history: Sequence[FinishedTask],
    scope: Sequence[Task],
    iterations: Any = DEFAULT_ITERATIONS,
    parallelism: Any = DEFAULT_PARALLELISM,
    rng: np.random.Generator | None = None,
    started_at: datetime | None = None,
    days_per_point: int = DAYS_PER_POINT,
) -> ForecastResult:
    forecaster = MonteCarloBacklogForecaster(
        days_per_point=days_per_point,
        rng=rng if rng is not None else np.random.default_rng(),
    )
    return forecaster.forecast(
        history,
        scope,
        iterations=iterations,
        parallelism=parallelism,
        started_at=started_at,
    )

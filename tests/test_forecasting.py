from __future__ import annotations

from datetime import datetime, timedelta

import numpy as np

from backlog_forecaster.forecasting.domain.models import REPORT_QUANTILES, FinishedTask, Task
from backlog_forecaster.forecasting.simulator.monte_carlo import (
    MonteCarloBacklogForecaster,
    forecast,
    simulate,
)


def _history() -> list[FinishedTask]:
    return [
        FinishedTask(task_id="H-1", project="H", estimation=3, duration=5),
        FinishedTask(task_id="H-2", project="H", estimation=3, duration=5),
        FinishedTask(task_id="H-3", project="H", estimation=3, duration=9),
    ]


def _scope(*estimations: int) -> list[Task]:
    return [Task(task_id=f"S-{i}", project="S", estimation=e) for i, e in enumerate(estimations)]


def test_two_tasks_of_size_three() -> None:
    outcomes = simulate(_history(), _scope(3, 3), iterations=1000, rng=np.random.default_rng(7))

    assert len(outcomes) == 1000
    assert outcomes == sorted(outcomes)
    assert set(outcomes) <= {10, 14, 18}
    median = outcomes[len(outcomes) // 2]
    assert 10 <= median <= 14


def test_every_outcome_is_at_least_one_day() -> None:
    history = [FinishedTask(task_id="H-1", project="H", estimation=1, duration=1)]
    for parallelism in (1, 2, 5, 50):
        outcomes = simulate(history, _scope(1), iterations=200, parallelism=parallelism)
        assert min(outcomes) >= 1


def test_empty_scope_is_one_day() -> None:
    outcomes = simulate(_history(), [], iterations=50)
    assert outcomes == [1] * 50


def test_empty_history_uses_fallback_only() -> None:
    outcomes = simulate([], _scope(2, 3), iterations=20)
    assert outcomes == [15] * 20


def test_more_parallelism_never_increases_a_trial() -> None:
    scope = _scope(3, 3, 3, 1, 5)
    previous: list[int] | None = None
    for parallelism in (1, 2, 3, 4):
        forecaster = MonteCarloBacklogForecaster(rng=np.random.default_rng(123))
        # Same seed, same draws: only the divisor changes.
        trials = forecaster.trials(_history(), scope, iterations=500, parallelism=parallelism).tolist()
        assert len(trials) == 500
        if previous is not None:
            assert all(a <= b for a, b in zip(trials, previous))
        previous = trials


def test_trials_keep_trial_order_and_simulate_sorts_them() -> None:
    trials = MonteCarloBacklogForecaster(rng=np.random.default_rng(5)).trials(
        _history(), _scope(3, 3), iterations=200
    )
    outcomes = MonteCarloBacklogForecaster(rng=np.random.default_rng(5)).simulate(
        _history(), _scope(3, 3), iterations=200
    )
    assert outcomes == sorted(int(x) for x in trials)


def test_parallelism_divides_and_rounds_up() -> None:
    history = [FinishedTask(task_id="H-1", project="H", estimation=2, duration=7)]
    assert simulate(history, _scope(2), iterations=3, parallelism=2) == [4, 4, 4]
    assert simulate(history, _scope(2, 2), iterations=3, parallelism=3) == [5, 5, 5]


def test_invalid_inputs_are_sanitised() -> None:
    history = [FinishedTask(task_id="H-1", project="H", estimation=2, duration=4)]
    assert len(simulate(history, _scope(2), iterations=0)) == 1000
    assert len(simulate(history, _scope(2), iterations="lots")) == 1000
    assert len(simulate(history, _scope(2), iterations=-5)) == 1000
    assert simulate(history, _scope(2), iterations=2, parallelism=0) == [4, 4]
    assert simulate(history, _scope(2), iterations=2, parallelism=-3) == [4, 4]
    assert simulate(history, _scope(2), iterations=2, parallelism="x") == [4, 4]
    assert simulate(history, _scope(2), iterations=2, parallelism=None) == [4, 4]
    assert len(simulate(history, _scope(2), iterations=float("inf"))) == 1000
    assert len(simulate(history, _scope(2), iterations="inf")) == 1000
    assert len(simulate(history, _scope(2), iterations="-inf")) == 1000
    assert len(simulate(history, _scope(2), iterations=float("nan"))) == 1000
    assert simulate(history, _scope(2), iterations=2, parallelism=float("inf")) == [4, 4]
    assert simulate(history, _scope(2), iterations=2, parallelism="inf") == [4, 4]
    assert simulate(history, _scope(2), iterations=2, parallelism="-inf") == [4, 4]


def test_forecast_bands_and_finish_dates() -> None:
    start = datetime(2024, 1, 31, 9, 0)
    result = forecast(
        _history(),
        _scope(3, 3),
        iterations=1000,
        rng=np.random.default_rng(3),
        started_at=start,
    )

    assert list(result.bands) == [label for label, _ in REPORT_QUANTILES]
    assert result.started_at == start
    for band in result.bands.values():
        assert 10 <= band.days <= 18
        assert band.finish_by == start + timedelta(days=band.days)

    days = [result.band(label).days for label in ("60%", "70%", "90%", "95%", "99%")]
    assert days == sorted(days)


def test_forecast_of_empty_scope_is_one_day_everywhere() -> None:
    start = datetime(2024, 2, 28)
    result = forecast([], [], started_at=start)
    for band in result.bands.values():
        assert band.days == 1
        assert band.finish_by == datetime(2024, 2, 29)


def test_same_seed_same_outcomes() -> None:
    a = simulate(_history(), _scope(3, 3, 1), iterations=300, rng=np.random.default_rng(9))
    b = simulate(_history(), _scope(3, 3, 1), iterations=300, rng=np.random.default_rng(9))
    assert a == b

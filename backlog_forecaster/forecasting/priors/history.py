from __future__ import annotations

import logging
import math
from typing import Final, Iterable

from backlog_forecaster.forecasting.domain.models import FinishedTask, WeightSpecification

logger = logging.getLogger(__name__)


# Typical story point mix of a team when no history is available.
DISTRIBUTION_OF_SP: Final[dict[int, float]] = {
    1: 0.50,
    2: 0.25,
    3: 0.10,
    5: 0.10,
    8: 0.05,
}

DAYS_IN_A_MONTH: Final[int] = 30


def build_weight_spec(history: Iterable[FinishedTask]) -> WeightSpecification:
    """Group observed durations by estimation.

    Duplicates are kept: how often a duration was observed is its weight.
    """
    spec: WeightSpecification = {}
    for task in history:
        spec.setdefault(int(task.estimation), []).append(int(task.duration))
    return spec


def guess_history(story_points_in_a_month: float) -> list[FinishedTask]:
    """Synthesize a history from the story points a team closes per month.

    Each size of DISTRIBUTION_OF_SP gets its share of the monthly points as
    tasks, and the rest of the month is spread over those tasks as duration.
    """
    out: list[FinishedTask] = []
    for sp, ratio in DISTRIBUTION_OF_SP.items():
        n_tasks = max(1.0, float(story_points_in_a_month) * ratio)
        days_for_task = DAYS_IN_A_MONTH * (1.0 - ratio) / n_tasks
        duration = max(1, math.ceil(days_for_task))
        for i in range(math.ceil(n_tasks)):
            out.append(
                FinishedTask(
                    task_id=f"FAKE-{sp}-{i}",
                    project="FAKE",
                    estimation=sp,
                    duration=duration,
                )
            )

    logger.debug(
        "Guessed %s tasks from %s story points per month",
        len(out),
        story_points_in_a_month,
    )
    return out

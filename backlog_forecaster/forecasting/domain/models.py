from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Final, Mapping, Protocol, Sequence

import numpy as np

# Fallback days per story point for sizes with no history.
DAYS_PER_POINT: Final[int] = 3

# Report bands, highest confidence first: (label, quantile).
REPORT_QUANTILES: Final[tuple[tuple[str, float], ...]] = (
    ("99%", 0.99),
    ("95%", 0.95),
    ("90%", 0.90),
    ("70%", 0.70),
    ("60%", 0.60),
)

Days = int

# estimation (story points) -> observed durations in days
WeightSpecification = dict[int, list[Days]]


@dataclass(frozen=True)
class Task:
    task_id: str
    project: str
    estimation: int


@dataclass(frozen=True)
class FinishedTask(Task):
    duration: Days


@dataclass(frozen=True)
class ForecastBand:
    label: str
    quantile: float
    days: Days
    finish_by: datetime


@dataclass(frozen=True)
class ForecastResult:
    """Quantile bands of one Monte Carlo run."""

    started_at: datetime
    bands: Mapping[str, ForecastBand]

    def band(self, label: str) -> ForecastBand:
        return self.bands[label]


class Sampler(Protocol):
    def __call__(self, estimation: int) -> Days:
        """Draw one duration for a task of the given size."""
        ...

    def sample(self, estimation: int, n: int) -> np.ndarray:
        """Draw n independent durations for a task of the given size."""
        ...


class TaskSource(Protocol):
    """Where historical and pending tasks come from (e.g. Jira)."""

    def sample_history(self, projects: Sequence[str]) -> list[FinishedTask]:
        ...

    def query_scope(self, epic: str, milestone: str | None = None) -> list[Task]:
        ...

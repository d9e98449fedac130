from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from backlog_forecaster.forecasting.domain.models import (
    DAYS_PER_POINT,
    Days,
    Sampler,
    WeightSpecification,
)

logger = logging.getLogger(__name__)


@dataclass
class EmpiricalSampler(Sampler):
    """Bootstrap sampler over observed durations per estimation.

    Each size keeps a flat lookup table where every observed duration appears
    as many times as it was seen, so a uniform index into the table draws a
    duration with its empirical frequency (with replacement).

    Sizes without history get the constant ``estimation * days_per_point``.
    That keeps totals plausible but injects a non-random term into the
    simulation, so treat ``days_per_point`` as a tunable.
    """

    tables: dict[int, np.ndarray]
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    days_per_point: int = DAYS_PER_POINT

    @classmethod
    def from_spec(
        cls,
        spec: WeightSpecification,
        rng: np.random.Generator | None = None,
        days_per_point: int = DAYS_PER_POINT,
    ) -> "EmpiricalSampler":
        tables: dict[int, np.ndarray] = {}
        for estimation, durations in spec.items():
            if not durations:
                continue
            tables[int(estimation)] = np.asarray(durations, dtype=np.int64)
        return cls(
            tables=tables,
            rng=rng if rng is not None else np.random.default_rng(),
            days_per_point=int(days_per_point),
        )

    def fallback(self, estimation: int) -> Days:
        return int(estimation) * self.days_per_point

    def knows(self, estimation: int) -> bool:
        return int(estimation) in self.tables

    def __call__(self, estimation: int) -> Days:
        table = self.tables.get(int(estimation))
        if table is None:
            return self.fallback(estimation)
        idx = int(self.rng.integers(0, table.shape[0]))
        return int(table[idx])

    def sample(self, estimation: int, n: int) -> np.ndarray:
        table = self.tables.get(int(estimation))
        if table is None:
            return np.full(n, self.fallback(estimation), dtype=np.int64)
        idx = self.rng.integers(0, table.shape[0], size=n)
        return table[idx]


def make_sampler(
    spec: WeightSpecification,
    rng: np.random.Generator | None = None,
    days_per_point: int = DAYS_PER_POINT,
) -> EmpiricalSampler:
    sampler = EmpiricalSampler.from_spec(spec, rng=rng, days_per_point=days_per_point)
    logger.debug("Sampler built for estimations %s", sorted(sampler.tables))
    return sampler

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Final, Sequence

from backlog_forecaster.forecasting.domain.models import FinishedTask, WeightSpecification
from backlog_forecaster.forecasting.priors.history import build_weight_spec
from backlog_forecaster.forecasting.stats.quantile import quantile

logger = logging.getLogger(__name__)

DANGEROUS_DEVIATION_IN_DAYS: Final[int] = 10
WARN_DEVIATION_IN_DAYS: Final[int] = 5
OUTLIER_QUANTILE: Final[float] = 0.95


class Severity(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class DurationHistogram:
    """Count of tasks per (estimation, duration).

    ``columns`` is the sorted set of every duration seen across all sizes;
    ``rows[estimation][i]`` counts tasks of that size that took
    ``columns[i]`` days.
    """

    columns: tuple[int, ...]
    rows: dict[int, tuple[int, ...]]


@dataclass(frozen=True)
class EstimationDeviation:
    estimation: int
    median: int
    deviation: int
    severity: Severity


@dataclass(frozen=True)
class Outlier:
    task_id: str
    estimation: int
    duration: int


@dataclass(frozen=True)
class AnalysisReport:
    weight_spec: WeightSpecification
    histogram: DurationHistogram
    deviations: list[EstimationDeviation]
    outliers: list[Outlier]


def duration_histogram(spec: WeightSpecification) -> DurationHistogram:
    columns = tuple(sorted({d for durations in spec.values() for d in durations}))
    index = {d: i for i, d in enumerate(columns)}

    rows: dict[int, tuple[int, ...]] = {}
    for estimation in sorted(spec):
        counts = [0] * len(columns)
        for d in spec[estimation]:
            counts[index[d]] += 1
        rows[estimation] = tuple(counts)

    return DurationHistogram(columns=columns, rows=rows)


def classify_deviation(
    deviation: float,
    high_days: float = DANGEROUS_DEVIATION_IN_DAYS,
    warn_days: float = WARN_DEVIATION_IN_DAYS,
) -> Severity:
    if deviation > high_days:
        return Severity.HIGH
    if deviation > warn_days:
        return Severity.MEDIUM
    return Severity.LOW


def deviation_by_estimation(
    spec: WeightSpecification,
    high_days: float = DANGEROUS_DEVIATION_IN_DAYS,
    warn_days: float = WARN_DEVIATION_IN_DAYS,
) -> list[EstimationDeviation]:
    """Median and spread (distance from median to p99) per size."""
    out: list[EstimationDeviation] = []
    for estimation in sorted(spec):
        sample = sorted(spec[estimation])
        if not sample:
            continue
        median = quantile(sample, 0.5)
        deviation = abs(median - quantile(sample, 0.99))
        out.append(
            EstimationDeviation(
                estimation=estimation,
                median=median,
                deviation=deviation,
                severity=classify_deviation(deviation, high_days, warn_days),
            )
        )
    return out


def find_outliers(
    history: Sequence[FinishedTask],
    spec: WeightSpecification,
    threshold_quantile: float = OUTLIER_QUANTILE,
) -> list[Outlier]:
    thresholds = {
        estimation: quantile(sorted(durations), threshold_quantile)
        for estimation, durations in spec.items()
        if durations
    }

    out: list[Outlier] = []
    for task in history:
        threshold = thresholds.get(task.estimation)
        if threshold is not None and task.duration > threshold:
            out.append(
                Outlier(task_id=task.task_id, estimation=task.estimation, duration=task.duration)
            )
    return out


def analyse(
    history: Sequence[FinishedTask],
    high_days: float = DANGEROUS_DEVIATION_IN_DAYS,
    warn_days: float = WARN_DEVIATION_IN_DAYS,
    outlier_quantile: float = OUTLIER_QUANTILE,
) -> AnalysisReport:
    spec = build_weight_spec(history)
    report = AnalysisReport(
        weight_spec=spec,
        histogram=duration_histogram(spec),
        deviations=deviation_by_estimation(spec, high_days=high_days, warn_days=warn_days),
        outliers=find_outliers(history, spec, threshold_quantile=outlier_quantile),
    )
    logger.info(
        "Analysed %s tasks across %s estimations, %s outliers",
        len(history),
        len(spec),
        len(report.outliers),
    )
    return report

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from backlog_forecaster.forecasting.domain.models import DAYS_PER_POINT


def _expand(path: str) -> Path:
    return Path(os.path.expanduser(path)).resolve()


def _read_toml(path: Path) -> dict[str, Any]:
    """Read TOML into a dict, supporting Python 3.10+.

    Uses tomllib when available, falls back to tomli.
    """
    data = path.read_bytes()
    try:
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(data.decode("utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore[import-not-found]

        return tomli.loads(data.decode("utf-8"))


class JiraConfig(BaseModel):
    """Where and how to read tasks from Jira."""

    url: str = Field(default="", description="Base URL of the Jira server.")
    token_env_var: str = Field(default="JIRA_TOKEN")
    projects: list[str] = Field(default_factory=list)
    estimation_field: str = Field(
        default="customfield_10555",
        description="Custom field holding story points.",
    )
    history_issue_type: str = Field(default="Task")
    start_statuses: list[str] = Field(default_factory=lambda: ["in progress"])
    done_statuses: list[str] = Field(default_factory=lambda: ["closed"])
    max_history_issues: int = Field(default=50, description="Most recently closed tasks to sample.")
    page_size: int = Field(default=25)
    timeout_s: float = Field(default=60.0)

    def token_from_env(self) -> str:
        return os.environ.get(self.token_env_var, "")


class SimulationConfig(BaseModel):
    iterations: int = Field(default=1000)
    parallelism: int = Field(default=1, description="Tasks that can be worked on at the same time.")
    rng_seed: int | None = Field(default=None)
    days_per_point: int = Field(
        default=DAYS_PER_POINT,
        description="Fallback duration per story point for sizes without history.",
    )


class AnalyticsConfig(BaseModel):
    high_deviation_days: float = Field(default=10.0)
    warn_deviation_days: float = Field(default=5.0)
    outlier_quantile: float = Field(default=0.95)


class ForecasterConfig(BaseModel):
    jira: JiraConfig = Field(default_factory=JiraConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    log_dir: str | None = Field(default=None, description="Also write logs to <log_dir>/run.log.")

    @classmethod
    def load(cls, path: Path) -> "ForecasterConfig":
        raw = _read_toml(_expand(str(path)))
        return cls.model_validate(raw)

    @classmethod
    def load_or_default(cls, path: Path | None) -> "ForecasterConfig":
        if path is None:
            return cls()
        return cls.load(path)

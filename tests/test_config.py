from __future__ import annotations

from pathlib import Path

import pytest

from backlog_forecaster.config import ForecasterConfig, JiraConfig, _read_toml


def test_defaults() -> None:
    cfg = ForecasterConfig()
    assert cfg.simulation.iterations == 1000
    assert cfg.simulation.parallelism == 1
    assert cfg.simulation.days_per_point == 3
    assert cfg.simulation.rng_seed is None
    assert cfg.jira.done_statuses == ["closed"]
    assert cfg.jira.start_statuses == ["in progress"]
    assert cfg.analytics.high_deviation_days == 10
    assert cfg.analytics.warn_deviation_days == 5


def test_load_toml(tmp_path: Path) -> None:
    path = tmp_path / "forecast_config.toml"
    path.write_text(
        """
[jira]
url = "https://jira.example.org"
projects = ["COMPASS", "MONGOSH"]
estimation_field = "customfield_1"

[simulation]
iterations = 5000
rng_seed = 42
""",
        encoding="utf-8",
    )
    cfg = ForecasterConfig.load(path)

    assert cfg.jira.url == "https://jira.example.org"
    assert cfg.jira.projects == ["COMPASS", "MONGOSH"]
    assert cfg.jira.estimation_field == "customfield_1"
    assert cfg.simulation.iterations == 5000
    assert cfg.simulation.rng_seed == 42
    assert cfg.simulation.parallelism == 1


def test_example_config_is_valid() -> None:
    example = Path(__file__).resolve().parents[1] / "backlog_forecaster" / "forecast_config.example.toml"
    cfg = ForecasterConfig.load(example)
    assert cfg.jira.max_history_issues == 50


def test_example_config_ships_as_package_data() -> None:
    root = Path(__file__).resolve().parents[1]
    package_data = _read_toml(root / "pyproject.toml")["tool"]["setuptools"]["package-data"]
    template = root / "backlog_forecaster" / "forecast_config.example.toml"

    assert any(template.match(pattern) for pattern in package_data["backlog_forecaster"])


def test_token_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MY_JIRA_TOKEN", "abc")
    assert JiraConfig(token_env_var="MY_JIRA_TOKEN").token_from_env() == "abc"

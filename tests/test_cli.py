from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Sequence

import pytest
from typer.testing import CliRunner

from backlog_forecaster import cli
from backlog_forecaster.config import JiraConfig
from backlog_forecaster.forecasting.domain.models import FinishedTask, Task

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class _StaticSource:
    def __init__(self, history: list[FinishedTask], scope: list[Task]) -> None:
        self.history = history
        self.scope = scope

    def sample_history(self, projects: Sequence[str]) -> list[FinishedTask]:
        return list(self.history)

    def query_scope(self, epic: str, milestone: str | None = None) -> list[Task]:
        return list(self.scope)


def _use_source(monkeypatch: pytest.MonkeyPatch, source: _StaticSource) -> None:
    def build(jira: JiraConfig, token: str) -> _StaticSource:
        return source

    monkeypatch.setattr(cli, "_build_source", build)


def _history() -> list[FinishedTask]:
    return [FinishedTask(task_id=f"H-{i}", project="H", estimation=1, duration=2) for i in range(5)]


JIRA_ARGS = ["--url", "https://jira.example.org", "--token", "t", "--projects", "H"]


def test_version() -> None:
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert "backlog-forecaster" in result.stdout


def test_estimate(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_source(monkeypatch, _StaticSource(_history(), [Task(task_id="S-1", project="S", estimation=1)]))

    result = runner.invoke(
        cli.app,
        ["estimate", *JIRA_ARGS, "--epic", "S-0", "--seed", "1", "--verbose"],
    )

    assert result.exit_code == 0, result.output
    assert "99% in 2 days" in result.stdout
    assert "S-1" in result.stdout


def test_estimate_without_history_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_source(monkeypatch, _StaticSource([], [Task(task_id="S-1", project="S", estimation=1)]))

    result = runner.invoke(cli.app, ["estimate", *JIRA_ARGS, "--epic", "S-0"])

    assert result.exit_code == 1
    assert "Could not get historical data" in result.output


def test_estimate_requires_connection_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JIRA_TOKEN", raising=False)
    result = runner.invoke(cli.app, ["estimate", "--epic", "S-0"])
    assert result.exit_code == 2


def test_estimate_rejects_bad_deadline(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_source(monkeypatch, _StaticSource(_history(), []))
    result = runner.invoke(cli.app, ["estimate", *JIRA_ARGS, "--epic", "S-0", "--deadline", "soon"])
    assert result.exit_code == 2


def test_analyse(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_source(monkeypatch, _StaticSource(_history(), []))

    result = runner.invoke(cli.app, ["analyse", *JIRA_ARGS])

    assert result.exit_code == 0, result.output
    assert "2 days" in result.stdout


def test_init_config_refuses_to_overwrite(tmp_path: Path) -> None:
    target = tmp_path / "forecast_config.toml"
    target.write_text("", encoding="utf-8")

    result = runner.invoke(cli.app, ["init-config", str(target)])

    assert result.exit_code == 2
    assert target.read_text(encoding="utf-8") == ""


def test_init_config_writes_template(tmp_path: Path) -> None:
    target = tmp_path / "forecast_config.toml"

    result = runner.invoke(cli.app, ["init-config", str(target)])

    assert result.exit_code == 0, result.output
    assert "[simulation]" in target.read_text(encoding="utf-8")

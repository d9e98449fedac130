from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Protocol, Sequence

from backlog_forecaster.adapters.jira.jira_client import JiraClient
from backlog_forecaster.common.time_utils import elapsed_days, parse_iso8601
from backlog_forecaster.config import JiraConfig
from backlog_forecaster.forecasting.domain.models import FinishedTask, Task, TaskSource

logger = logging.getLogger(__name__)


class IssueSearch(Protocol):
    def paginate(
        self,
        jql: str,
        *,
        page_size: int = 25,
        max_issues: int | None = None,
        fields: Sequence[str] = ...,
        expand: Sequence[str] = ...,
    ) -> Iterable[dict[str, Any]]:
        ...


def _jql_list(values: Iterable[str]) -> str:
    return ", ".join(f'"{v}"' for v in values)


def _estimation(issue: dict[str, Any], field: str, default: int) -> int:
    raw = (issue.get("fields") or {}).get(field)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric estimation %r on %s", raw, issue.get("key"))
        return default
    if value <= 0:
        return default
    # Fractional story points count as the next whole point.
    return int(math.ceil(value))


def _first_transition(issue: dict[str, Any], statuses: set[str]) -> datetime | None:
    histories = (issue.get("changelog") or {}).get("histories") or []
    for history in histories:
        for change in history.get("items") or []:
            field = str(change.get("field") or "").lower()
            to_status = str(change.get("toString") or "").lower()
            if field == "status" and to_status in statuses:
                return parse_iso8601(history["created"])
    return None


def finished_task_from_issue(
    issue: dict[str, Any],
    *,
    estimation_field: str,
    start_statuses: Iterable[str],
    done_statuses: Iterable[str],
) -> FinishedTask | None:
    """Turn a closed Jira issue into a FinishedTask, or None if unusable.

    Duration runs from the first move into a start status to the first move
    into a done status, in whole days rounded up. Issues without both
    transitions or with a non-positive duration are skipped.
    """
    start = _first_transition(issue, {s.lower() for s in start_statuses})
    end = _first_transition(issue, {s.lower() for s in done_statuses})
    if start is None or end is None:
        return None

    duration = elapsed_days(start, end)
    if duration <= 0:
        return None

    return FinishedTask(
        task_id=str(issue["key"]),
        project=str(issue["fields"]["project"]["key"]),
        estimation=_estimation(issue, estimation_field, default=1),
        duration=duration,
    )


def task_from_issue(issue: dict[str, Any], *, estimation_field: str) -> Task:
    return Task(
        task_id=str(issue["key"]),
        project=str(issue["fields"]["project"]["key"]),
        estimation=_estimation(issue, estimation_field, default=0),
    )


@dataclass
class JiraTaskSource(TaskSource):
    client: IssueSearch
    config: JiraConfig

    @classmethod
    def connect(cls, config: JiraConfig, token: str) -> "JiraTaskSource":
        client = JiraClient(base_url=config.url, token=token, timeout_s=config.timeout_s)
        return cls(client=client, config=config)

    @property
    def _fields(self) -> tuple[str, ...]:
        return ("key", "project", self.config.estimation_field)

    def sample_history(self, projects: Sequence[str]) -> list[FinishedTask]:
        jql = (
            f"project IN ({', '.join(projects)}) "
            f"AND status IN ({_jql_list(self.config.done_statuses)}) "
            f"AND type = {self.config.history_issue_type} ORDER BY updated DESC"
        )
        issues = self.client.paginate(
            jql,
            page_size=self.config.page_size,
            max_issues=self.config.max_history_issues,
            fields=self._fields,
            expand=("changelog",),
        )

        out: list[FinishedTask] = []
        skipped = 0
        for issue in issues:
            task = finished_task_from_issue(
                issue,
                estimation_field=self.config.estimation_field,
                start_statuses=self.config.start_statuses,
                done_statuses=self.config.done_statuses,
            )
            if task is None:
                skipped += 1
                continue
            out.append(task)

        logger.info(
            "Sampled %s finished tasks from %s (%s skipped)",
            len(out),
            ",".join(projects),
            skipped,
        )
        return out

    def query_scope(self, epic: str, milestone: str | None = None) -> list[Task]:
        milestone_clause = f' AND labels = "{milestone}"' if milestone else ""
        jql = (
            f"\"Epic Link\" = '{epic}'{milestone_clause} "
            f"AND status NOT IN ({_jql_list(self.config.done_statuses)}) ORDER BY updated DESC"
        )
        parents = list(
            self.client.paginate(jql, page_size=self.config.page_size, fields=self._fields)
        )

        sub_tasks: list[dict[str, Any]] = []
        if parents:
            parent_ids = ", ".join(str(p["key"]) for p in parents)
            sub_tasks = list(
                self.client.paginate(
                    f'"Parent Link" IN ({parent_ids})',
                    page_size=self.config.page_size,
                    fields=self._fields,
                )
            )

        tasks = [
            task_from_issue(issue, estimation_field=self.config.estimation_field)
            for issue in parents + sub_tasks
        ]
        scope = [t for t in tasks if t.estimation != 0]
        logger.info(
            "Scope of %s%s: %s estimated tasks (%s without estimation)",
            epic,
            f" / {milestone}" if milestone else "",
            len(scope),
            len(tasks) - len(scope),
        )
        return scope

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterator, Sequence

import requests

logger = logging.getLogger(__name__)


class JiraApiError(RuntimeError):
    pass


DEFAULT_RETRY_AFTER_S = 10


def retry_after_seconds(value: str | None, default: int = DEFAULT_RETRY_AFTER_S) -> int:
    """Seconds to wait from a ``Retry-After`` header (delta-seconds or HTTP-date)."""
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning("Unparseable Retry-After %r, using %ss", value, default)
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return math.ceil((when - datetime.now(timezone.utc)).total_seconds())


@dataclass
class JiraClient:
    base_url: str
    token: str
    timeout_s: float = 60.0
    user_agent: str = "backlog-forecaster"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = self.base_url.rstrip("/") + path
        while True:
            try:
                resp = requests.get(
                    url, headers=self._headers(), params=params, timeout=self.timeout_s
                )
            except requests.RequestException as exc:
                raise JiraApiError(f"Could not access Jira Server at {url}: {exc}") from exc
            if resp.status_code == 429:
                wait_s = retry_after_seconds(resp.headers.get("Retry-After"))
                logger.warning("Jira rate limit hit. Sleeping %ss", wait_s)
                time.sleep(max(1, wait_s))
                continue
            if resp.status_code >= 400:
                raise JiraApiError(f"GET {path} failed: {resp.status_code} {resp.text}")
            return resp.json()

    def search(
        self,
        jql: str,
        *,
        start_at: int = 0,
        max_results: int = 25,
        fields: Sequence[str] = ("key", "project"),
        expand: Sequence[str] = (),
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "jql": jql,
            "startAt": start_at,
            "maxResults": max_results,
            "fields": ",".join(fields),
        }
        if expand:
            params["expand"] = ",".join(expand)
        logger.debug("JQL search: %s (startAt=%s)", jql, start_at)
        return self.get("/rest/api/2/search", params=params)

    def paginate(
        self,
        jql: str,
        *,
        page_size: int = 25,
        max_issues: int | None = None,
        fields: Sequence[str] = ("key", "project"),
        expand: Sequence[str] = (),
    ) -> Iterator[dict[str, Any]]:
        start_at = 0
        seen = 0
        while max_issues is None or seen < max_issues:
            size = page_size if max_issues is None else min(page_size, max_issues - seen)
            data = self.search(
                jql,
                start_at=start_at,
                max_results=size,
                fields=fields,
                expand=expand,
            )
            issues = data.get("issues") or []
            if not issues:
                return
            for issue in issues:
                yield issue
                seen += 1
                if max_issues is not None and seen >= max_issues:
                    return
            start_at += len(issues)
            total = data.get("total")
            if total is not None and start_at >= int(total):
                return

from __future__ import annotations

import math
import re
from datetime import datetime

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_iso8601(dt_str: str) -> datetime:
    # Jira uses e.g. 2024-01-01T09:30:00.000+0200, GitHub-style APIs use a Z suffix
    if dt_str.endswith("Z"):
        dt_str = dt_str[:-1] + "+00:00"
    dt_str = _COMPACT_OFFSET.sub(r"\1:\2", dt_str)
    return datetime.fromisoformat(dt_str)


def elapsed_days(start: datetime, end: datetime) -> int:
    """Whole days from start to end, partial days rounded up."""
    return math.ceil((end - start).total_seconds() / 86400)

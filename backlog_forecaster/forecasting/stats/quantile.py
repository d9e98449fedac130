from __future__ import annotations

import math
from typing import Sequence


def quantile(sorted_values: Sequence[float], q: float) -> int:
    """Linear-interpolation percentile of ascending values, rounded up.

    Rounding up is deliberate: a forecast should not understate the time
    required. ``sorted_values`` must be non-empty and sorted ascending; ``q`` must be within [0, 1].
    """
    if not sorted_values:
        raise ValueError("quantile of an empty sequence is undefined")
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"quantile must be within [0, 1], got {q}")

    pos = (len(sorted_values) - 1) * q
    base = math.floor(pos)
    rest = pos - base
    if base + 1 < len(sorted_values):
        lo = sorted_values[base]
        hi = sorted_values[base + 1]
        return math.ceil(lo + rest * (hi - lo))
    return math.ceil(sorted_values[base])

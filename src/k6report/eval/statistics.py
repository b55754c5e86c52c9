"""Distribution statistics for raw k6 samples."""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

PERCENTILE_METHODS = ("nearest", "linear")

# Percentiles computed for every trend, keyed as k6 names them.
TREND_PERCENTILES = (90, 95, 99)


@dataclass
class TrendStats:
    """Trend statistics over one metric's samples."""
    count: int
    avg: float
    min: float
    med: float
    max: float
    percentiles: Dict[int, float]

    def as_values(self) -> Dict[str, float]:
        """Stats keyed the way k6 summaries key them."""
        values = {
            "avg": self.avg,
            "min": self.min,
            "med": self.med,
            "max": self.max,
        }
        for p, value in self.percentiles.items():
            values[f"p({p})"] = value
        values["count"] = float(self.count)
        return values


def percentile(sorted_values: Sequence[float], p: float, method: str = "nearest") -> Optional[float]:
    """Percentile of an ascending sample list.

    ``nearest`` uses the nearest-rank method: the value at index
    ``ceil(p/100 * n) - 1``, clamped to the list bounds. ``linear``
    interpolates between the two closest ranks (numpy's default).

    Args:
        sorted_values: Samples sorted ascending
        p: Percentile in [0, 100]
        method: "nearest" or "linear"

    Returns:
        The percentile, or None for an empty list
    """
    if method not in PERCENTILE_METHODS:
        raise ValueError(f"method must be one of {PERCENTILE_METHODS}, got {method!r}")
    if not 0 <= p <= 100:
        raise ValueError(f"p must be within [0, 100], got {p}")

    n = len(sorted_values)
    if n == 0:
        return None
    if n == 1:
        return float(sorted_values[0])

    if method == "linear":
        return float(np.percentile(np.asarray(sorted_values, dtype=float), p))

    rank = math.ceil(p * n / 100) - 1
    rank = min(max(rank, 0), n - 1)
    return float(sorted_values[rank])


def trend_stats(samples: Sequence[float], method: str = "nearest") -> Optional[TrendStats]:
    """Compute avg/min/med/max and p(90)/p(95)/p(99) over ``samples``.

    Returns None when there are no samples.
    """
    if len(samples) == 0:
        return None

    ordered: List[float] = np.sort(np.asarray(samples, dtype=float)).tolist()

    return TrendStats(
        count=len(ordered),
        avg=float(np.mean(ordered)),
        min=ordered[0],
        med=percentile(ordered, 50, method),
        max=ordered[-1],
        percentiles={p: percentile(ordered, p, method) for p in TREND_PERCENTILES},
    )

"""Metric model shared by the ingest and report layers.

A ``TestRun`` is built once by the stream aggregator or the summary
normalizer and is read-only afterwards. Stats that the input did not provide
are ``None``, never zero.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


class MetricKind(str, Enum):
    """k6 metric types. Values match k6's lowercase ``type`` field."""

    COUNTER = "counter"
    RATE = "rate"
    GAUGE = "gauge"
    TREND = "trend"

    @classmethod
    def parse(cls, value) -> Optional["MetricKind"]:
        """Return the kind named by ``value``, or None if unrecognized."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class InputFormat(str, Enum):
    """Shape of the input the run was built from."""

    AGGREGATED_SUMMARY = "aggregated_summary"
    EVENT_STREAM = "event_stream"


# Trend stats every report lists, in display order.
TREND_STATS = ("avg", "min", "med", "max", "p(90)", "p(95)")


@dataclass(frozen=True)
class Metric:
    """One named metric with its aggregated stats."""

    name: str
    kind: MetricKind
    contains: str = "default"
    values: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, key: str) -> Optional[float]:
        return self.values.get(key)

    @property
    def is_time(self) -> bool:
        return self.contains == "time"

    @property
    def is_submetric(self) -> bool:
        """Tag-filtered sub-metrics look like ``http_req_duration{status:200}``."""
        return "{" in self.name

    @property
    def count(self) -> Optional[float]:
        return self.get("count")

    @property
    def rate(self) -> Optional[float]:
        return self.get("rate")

    @property
    def passes(self) -> Optional[float]:
        return self.get("passes")

    @property
    def fails(self) -> Optional[float]:
        return self.get("fails")

    @property
    def value(self) -> Optional[float]:
        return self.get("value")

    @property
    def avg(self) -> Optional[float]:
        return self.get("avg")

    @property
    def min(self) -> Optional[float]:
        return self.get("min")

    @property
    def max(self) -> Optional[float]:
        return self.get("max")

    @property
    def med(self) -> Optional[float]:
        return self.get("med")

    def percentile(self, p) -> Optional[float]:
        """Stat for ``p(<p>)``; accepts 95, 95.0 or "95"."""
        if isinstance(p, float) and p.is_integer():
            p = int(p)
        return self.get(f"p({p})")


@dataclass(frozen=True)
class Threshold:
    """Outcome of one threshold expression on a metric."""

    metric: str
    expression: str
    ok: bool


@dataclass(frozen=True)
class Check:
    """Named assertion with pass and fail counts."""

    name: str
    passes: int
    fails: int

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def success_rate(self) -> Optional[float]:
        if self.total == 0:
            return None
        return self.passes / self.total


@dataclass(frozen=True)
class TestRun:
    """Everything the renderer needs from one k6 test run."""

    __test__ = False  # not a pytest test class

    source_format: InputFormat
    duration_seconds: Optional[float] = None
    metrics: Mapping[str, Metric] = field(default_factory=dict)
    thresholds: Tuple[Threshold, ...] = ()
    checks: Tuple[Check, ...] = ()
    thresholds_available: bool = True
    declared_thresholds: Tuple[Tuple[str, str], ...] = ()
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise ValueError(f"duration_seconds must be non-negative, got {self.duration_seconds}")
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))
        object.__setattr__(self, "thresholds", tuple(self.thresholds))
        object.__setattr__(self, "checks", tuple(self.checks))
        object.__setattr__(self, "declared_thresholds", tuple(self.declared_thresholds))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def metric(self, name: str) -> Optional[Metric]:
        return self.metrics.get(name)

    def metrics_of_kind(self, kind: MetricKind) -> List[Metric]:
        """Metrics of one kind in insertion order."""
        return [m for m in self.metrics.values() if m.kind == kind]


def build_metric_map(metrics: Iterable[Metric]) -> Dict[str, Metric]:
    """Index metrics by name, keeping first-seen order.

    Raises:
        ValueError: if two metrics share a name
    """
    result: Dict[str, Metric] = {}
    for metric in metrics:
        if metric.name in result:
            raise ValueError(f"Duplicate metric name: {metric.name}")
        result[metric.name] = metric
    return result

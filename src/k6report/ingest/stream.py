"""Aggregate a k6 ``--out json`` event stream into a TestRun."""

import json
import logging
import math
import numbers
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from k6report.config import ReportConfig
from k6report.errors import EmptyOrInvalidStream, MalformedJson
from k6report.eval.statistics import trend_stats
from k6report.model import Check, InputFormat, Metric, MetricKind, TestRun

logger = logging.getLogger(__name__)

CHECKS_METRIC = "checks"


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


class MetricCollector:
    """Samples and declaration of one metric seen in the stream."""

    def __init__(self, name: str):
        self.name = name
        self.kind: Optional[MetricKind] = None
        self.contains = "default"
        self.samples: List[float] = []

    def declare(self, kind: Optional[MetricKind], contains: Optional[str]):
        if kind is not None:
            self.kind = kind
        if contains:
            self.contains = contains

    def add(self, value: float):
        self.samples.append(float(value))

    def resolved_kind(self) -> MetricKind:
        if self.kind is not None:
            return self.kind
        if self.name == CHECKS_METRIC:
            return MetricKind.RATE
        return MetricKind.TREND

    def to_metric(self, duration_seconds: Optional[float], percentile_method: str) -> Metric:
        """Fold the collected samples into a Metric."""
        kind = self.resolved_kind()
        samples = self.samples
        values: Dict[str, float] = {}

        if kind == MetricKind.COUNTER:
            total = float(sum(samples))
            values["count"] = total
            if duration_seconds:
                values["rate"] = total / duration_seconds
        elif kind == MetricKind.RATE:
            passes = sum(1 for v in samples if v != 0)
            values["rate"] = passes / len(samples) if samples else 0.0
            values["passes"] = float(passes)
            values["fails"] = float(len(samples) - passes)
        elif kind == MetricKind.GAUGE:
            if samples:
                values["value"] = samples[-1]
                values["min"] = min(samples)
                values["max"] = max(samples)
        else:
            stats = trend_stats(samples, percentile_method)
            if stats is not None:
                values.update(stats.as_values())

        return Metric(name=self.name, kind=kind, contains=self.contains, values=values)


class StreamAggregator:
    """Fold k6 JSON records one at a time.

    Malformed records are skipped and remembered as warnings; the stream
    only fails when no record at all could be used.
    """

    def __init__(self, config: Optional[ReportConfig] = None):
        self.config = config or ReportConfig()
        self.collectors: Dict[str, MetricCollector] = {}
        self.checks: Dict[str, List[int]] = {}
        self.declared_thresholds: List[Tuple[str, str]] = []
        self.explicit_duration_ms: Optional[float] = None
        self.first_time: Optional[pd.Timestamp] = None
        self.last_time: Optional[pd.Timestamp] = None
        self.warnings: List[str] = []
        self.valid_records = 0
        self.skipped = 0
        self.records = 0

    def _warn(self, line_no: int, message: str):
        warning = f"line {line_no}: {message}"
        self.skipped += 1
        logger.warning("Skipping record at %s", warning)
        self.warnings.append(warning)

    def _collector(self, name: str) -> MetricCollector:
        if name not in self.collectors:
            self.collectors[name] = MetricCollector(name)
        return self.collectors[name]

    def feed(self, line: str, line_no: int):
        """Consume one raw line of the stream."""
        line = line.strip()
        if not line:
            return
        self.records += 1

        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            error = MalformedJson(f"invalid JSON: {e.msg}", f"column {e.colno}")
            self._warn(line_no, str(error))
            return

        if not isinstance(record, dict):
            self._warn(line_no, "record is not a JSON object")
            return

        record_type = record.get("type")
        data = record.get("data")
        if not isinstance(record_type, str):
            self._warn(line_no, "missing 'type' field")
            return
        if not isinstance(data, dict):
            self._warn(line_no, "missing 'data' object")
            return

        if record_type == "State":
            self._feed_state(data, line_no)
            return

        metric = record.get("metric")
        if not isinstance(metric, str) or not metric:
            self._warn(line_no, "missing 'metric' field")
            return

        if record_type == "Metric":
            self._feed_declaration(metric, data, line_no)
        elif record_type == "Point":
            self._feed_point(metric, data, line_no)
        else:
            logger.debug("Ignoring record type %s at line %d", record_type, line_no)
            self.valid_records += 1

    def _feed_state(self, data: dict, line_no: int):
        duration_ms = data.get("testRunDurationMs")
        if not _is_number(duration_ms) or duration_ms < 0:
            self._warn(line_no, "State record without a valid 'testRunDurationMs'")
            return
        self.explicit_duration_ms = float(duration_ms)
        self.valid_records += 1

    def _feed_declaration(self, metric: str, data: dict, line_no: int):
        kind = MetricKind.parse(data.get("type"))
        if kind is None:
            self._warn(line_no, f"unknown metric type {data.get('type')!r} for {metric}")
            return

        self._collector(metric).declare(kind, data.get("contains"))
        for expression in data.get("thresholds") or []:
            if isinstance(expression, str) and (metric, expression) not in self.declared_thresholds:
                self.declared_thresholds.append((metric, expression))
        self.valid_records += 1

    def _feed_point(self, metric: str, data: dict, line_no: int):
        value = data.get("value")
        if not _is_number(value):
            self._warn(line_no, f"point for {metric} has no finite numeric 'value'")
            return

        time = data.get("time")
        if time is not None:
            self._track_time(time, line_no)

        self._collector(metric).add(value)

        if metric == CHECKS_METRIC:
            tags = data.get("tags") or {}
            name = tags.get("check") if isinstance(tags, dict) else None
            if not isinstance(name, str) or not name:
                name = CHECKS_METRIC
            counts = self.checks.setdefault(name, [0, 0])
            counts[0 if value != 0 else 1] += 1

        self.valid_records += 1

    def _track_time(self, raw, line_no: int):
        try:
            stamp = pd.Timestamp(raw)
        except (TypeError, ValueError):
            self.warnings.append(f"line {line_no}: unparseable time {raw!r} ignored")
            logger.warning("Ignoring unparseable time %r at line %d", raw, line_no)
            return
        if pd.isna(stamp):
            return
        stamp = stamp.tz_localize("UTC") if stamp.tzinfo is None else stamp.tz_convert("UTC")

        if self.first_time is None or stamp < self.first_time:
            self.first_time = stamp
        if self.last_time is None or stamp > self.last_time:
            self.last_time = stamp

    def duration_seconds(self) -> Optional[float]:
        """Explicit State duration if given, else the timestamp span."""
        if self.explicit_duration_ms is not None:
            return self.explicit_duration_ms / 1000
        if self.first_time is None or self.last_time is None:
            return None
        return (self.last_time - self.first_time).total_seconds()

    def result(self) -> TestRun:
        """Build the TestRun from everything fed so far.

        Raises:
            EmptyOrInvalidStream: if no record could be used
        """
        if self.valid_records == 0:
            if self.records == 0:
                raise EmptyOrInvalidStream("Event stream contains no records")
            raise EmptyOrInvalidStream(
                f"All {self.records} records of the event stream are malformed",
                self.warnings[0] if self.warnings else None,
            )

        duration = self.duration_seconds()
        method = self.config.percentile_method
        metrics = {
            name: collector.to_metric(duration, method)
            for name, collector in self.collectors.items()
        }
        checks = [Check(name, passes, fails) for name, (passes, fails) in self.checks.items()]

        if self.skipped:
            logger.warning(
                "Skipped %d of %d records while aggregating the event stream",
                self.skipped, self.records,
            )

        return TestRun(
            source_format=InputFormat.EVENT_STREAM,
            duration_seconds=duration,
            metrics=metrics,
            thresholds=(),
            checks=checks,
            thresholds_available=False,
            declared_thresholds=self.declared_thresholds,
            warnings=self.warnings,
        )


def aggregate_stream(lines: Iterable[str], config: Optional[ReportConfig] = None) -> TestRun:
    """Aggregate k6 JSON lines into a TestRun.

    Args:
        lines: Raw lines of the stream, consumed lazily
        config: Report configuration (percentile method)

    Returns:
        TestRun with no threshold outcomes

    Raises:
        EmptyOrInvalidStream: if the stream is empty or entirely malformed
    """
    aggregator = StreamAggregator(config)
    for line_no, line in enumerate(lines, 1):
        aggregator.feed(line, line_no)
    return aggregator.result()

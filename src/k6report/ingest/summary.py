"""Normalize a k6 aggregated summary into a TestRun.

Handles both summary shapes k6 produces: ``handleSummary()`` data, where
stats live under ``values`` and thresholds are ``{expr: {"ok": bool}}``, and
``--summary-export`` files, where stats sit directly on the metric object
and thresholds are ``{expr: failed}`` booleans.
"""

import logging
import math
import numbers
from typing import Any, Dict, Iterator, List, Optional

from k6report.errors import InvalidValue, MalformedJson, MissingField, UnknownMetricType
from k6report.model import Check, InputFormat, Metric, MetricKind, TestRun, Threshold, build_metric_map

logger = logging.getLogger(__name__)

# Keys of a --summary-export metric that are not stats.
_NON_STAT_KEYS = ("type", "contains", "values", "thresholds")


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def _metric_values(name: str, body: Dict[str, Any]) -> Dict[str, float]:
    raw = body.get("values")
    if raw is None:
        raw = {k: v for k, v in body.items() if k not in _NON_STAT_KEYS}
    elif not isinstance(raw, dict):
        raise MalformedJson(f"'values' of metric {name} must be an object")

    values = {}
    for key, value in raw.items():
        if _is_number(value):
            values[key] = float(value)
        else:
            logger.debug("Dropping non-numeric stat %s of %s", key, name)
    return values


def _threshold_ok(metric: str, expression: str, outcome: Any) -> bool:
    # --summary-export stores whether the threshold failed
    if isinstance(outcome, bool):
        return not outcome
    if isinstance(outcome, dict) and isinstance(outcome.get("ok"), bool):
        return outcome["ok"]
    raise MissingField(
        f"Threshold '{expression}' of metric {metric} has no 'ok' outcome",
        f"metrics.{metric}.thresholds",
    )


def _thresholds(metric: str, raw: Any) -> List[Threshold]:
    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise MalformedJson(f"'thresholds' of metric {metric} must be an object")
    return [
        Threshold(metric, expression, _threshold_ok(metric, expression, outcome))
        for expression, outcome in raw.items()
    ]


def parse_metric(name: str, body: Any) -> Metric:
    """Build one Metric from its summary entry.

    Raises:
        UnknownMetricType: if ``type`` is absent or not a k6 metric type
        InvalidValue: if a rate lies outside [0, 1]
    """
    if not isinstance(body, dict):
        raise MalformedJson(f"Metric {name} must be an object")

    kind = MetricKind.parse(body.get("type"))
    if kind is None:
        raise UnknownMetricType(
            f"Metric {name} has an unknown type {body.get('type')!r}",
            f"metrics.{name}.type",
        )

    values = _metric_values(name, body)
    if kind == MetricKind.RATE:
        rate = values.get("rate", values.get("value"))
        if rate is not None and not 0 <= rate <= 1:
            raise InvalidValue(f"Rate metric {name} has rate {rate} outside [0, 1]")
        # --summary-export names the rate "value"
        if "rate" not in values and "value" in values:
            values = {("rate" if k == "value" else k): v for k, v in values.items()}

    contains = body.get("contains")
    return Metric(
        name=name,
        kind=kind,
        contains=contains if isinstance(contains, str) and contains else "default",
        values=values,
    )


def _parse_check(raw: Any, where: str, name: Optional[str] = None) -> Check:
    if not isinstance(raw, dict):
        raise MalformedJson(f"Check at {where} must be an object")
    name = raw.get("name", name)
    for field_name, value in (("name", name), ("passes", raw.get("passes")), ("fails", raw.get("fails"))):
        if value is None:
            raise MissingField(f"Check at {where} is missing '{field_name}'", where)
    if not isinstance(name, str):
        raise MalformedJson(f"Check name at {where} must be a string")
    if not _is_number(raw["passes"]) or not _is_number(raw["fails"]):
        raise MalformedJson(f"Check counts at {where} must be numbers")
    return Check(name=name, passes=int(raw["passes"]), fails=int(raw["fails"]))


def walk_group_checks(group: Any, path: str = "root_group") -> Iterator[Check]:
    """Yield the checks of a k6 group and its sub-groups, depth first."""
    if not isinstance(group, dict):
        raise MalformedJson(f"{path} must be an object")

    checks = group.get("checks") or []
    if isinstance(checks, dict):
        for name, raw in checks.items():
            yield _parse_check(raw, f"{path}.checks.{name}", name)
    else:
        for i, raw in enumerate(checks):
            yield _parse_check(raw, f"{path}.checks[{i}]")

    groups = group.get("groups") or []
    if isinstance(groups, dict):
        groups = list(groups.values())
    for i, subgroup in enumerate(groups):
        yield from walk_group_checks(subgroup, f"{path}.groups[{i}]")


def _duration_seconds(state: Any) -> Optional[float]:
    if not isinstance(state, dict):
        return None
    duration_ms = state.get("testRunDurationMs")
    if not _is_number(duration_ms):
        return None
    if duration_ms < 0:
        raise InvalidValue(f"state.testRunDurationMs is negative: {duration_ms}")
    return duration_ms / 1000


def normalize_summary(document: Dict[str, Any]) -> TestRun:
    """Map an aggregated k6 summary onto the metric model.

    Args:
        document: Decoded summary JSON object

    Returns:
        TestRun preserving the summary's metric, threshold and check order

    Raises:
        MissingField: if ``metrics`` or a threshold/check field is absent
        UnknownMetricType: if a metric's type is missing or unknown
    """
    if not isinstance(document, dict):
        raise MalformedJson("Summary must be a JSON object")

    raw_metrics = document.get("metrics")
    if raw_metrics is None:
        raise MissingField("Summary has no 'metrics' object", "metrics")
    if not isinstance(raw_metrics, dict):
        raise MalformedJson("'metrics' must be an object")

    metrics = build_metric_map(parse_metric(name, body) for name, body in raw_metrics.items())

    thresholds: List[Threshold] = []
    for name, body in raw_metrics.items():
        thresholds.extend(_thresholds(name, body.get("thresholds")))

    extra = document.get("thresholds")
    if extra is not None:
        if not isinstance(extra, dict):
            raise MalformedJson("Top-level 'thresholds' must be an object")
        for name, raw in extra.items():
            thresholds.extend(_thresholds(name, raw))

    checks: List[Check] = []
    top_level = document.get("checks")
    if top_level is not None:
        if not isinstance(top_level, list):
            raise MalformedJson("Top-level 'checks' must be an array")
        checks.extend(_parse_check(raw, f"checks[{i}]") for i, raw in enumerate(top_level))

    if document.get("root_group") is not None:
        checks.extend(walk_group_checks(document["root_group"]))

    logger.debug(
        "Normalized summary: %d metrics, %d thresholds, %d checks",
        len(metrics), len(thresholds), len(checks),
    )

    return TestRun(
        source_format=InputFormat.AGGREGATED_SUMMARY,
        duration_seconds=_duration_seconds(document.get("state")),
        metrics=metrics,
        thresholds=thresholds,
        checks=checks,
        thresholds_available=True,
    )

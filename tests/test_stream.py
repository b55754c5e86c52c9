"""Test aggregation of k6 --out json event streams."""

import json
import logging
from pathlib import Path

import pytest

from k6report.config import ReportConfig
from k6report.errors import EmptyOrInvalidStream
from k6report.ingest.stream import aggregate_stream
from k6report.model import InputFormat, MetricKind

DATA_DIR = Path(__file__).parent / "data"


def point(metric, value, time=None, tags=None):
    data = {"value": value, "tags": tags}
    if time is not None:
        data["time"] = time
    return json.dumps({"type": "Point", "metric": metric, "data": data})


def declare(metric, kind, contains="default", thresholds=()):
    return json.dumps({
        "type": "Metric",
        "metric": metric,
        "data": {"name": metric, "type": kind, "contains": contains, "thresholds": list(thresholds)},
    })


def test_aggregate_stream_file():
    """Aggregate the sample stream end to end."""
    with open(DATA_DIR / "stream.jsonl", encoding="utf-8") as f:
        run = aggregate_stream(f)

    assert run.source_format == InputFormat.EVENT_STREAM
    assert run.duration_seconds == pytest.approx(10.0)
    assert list(run.metrics) == ["http_reqs", "http_req_duration", "vus", "checks"]

    reqs = run.metric("http_reqs")
    assert reqs.kind == MetricKind.COUNTER
    assert reqs.count == 3.0
    assert reqs.rate == pytest.approx(0.3)

    duration = run.metric("http_req_duration")
    assert duration.is_time
    assert (duration.avg, duration.min, duration.med, duration.max) == (200.0, 100.0, 200.0, 300.0)
    assert duration.percentile(95) == 300.0

    vus = run.metric("vus")
    assert (vus.value, vus.min, vus.max) == (2.0, 1.0, 3.0)

    assert [(c.name, c.passes, c.fails) for c in run.checks] == [("status is 200", 1, 1)]
    assert run.metric("checks").rate == 0.5

    assert run.thresholds == ()
    assert not run.thresholds_available
    assert run.declared_thresholds == (("http_req_duration", "p(95)<500"),)
    assert len(run.warnings) == 1
    assert run.warnings[0].startswith("line 9:")


def test_counter_sum_invariant():
    """A counter's count equals the sum of its increments."""
    increments = [1, 1, 3, 0.5, 2, 10, 1]
    lines = [declare("data_sent", "counter", "data")]
    lines += [point("data_sent", v) for v in increments]

    run = aggregate_stream(lines)

    assert run.metric("data_sent").count == pytest.approx(sum(increments))


def test_counter_rate_unavailable_without_duration():
    run = aggregate_stream([declare("http_reqs", "counter"), point("http_reqs", 1)])

    assert run.duration_seconds is None
    assert run.metric("http_reqs").rate is None


def test_rate_metric():
    lines = [declare("http_req_failed", "rate")]
    lines += [point("http_req_failed", v) for v in (1, 0, 0, 0, 1)]

    metric = aggregate_stream(lines).metric("http_req_failed")

    assert metric.rate == pytest.approx(0.4)
    assert (metric.passes, metric.fails) == (2.0, 3.0)


def test_declared_rate_without_points():
    metric = aggregate_stream([declare("http_req_failed", "rate")]).metric("http_req_failed")

    assert metric.rate == 0.0


def test_gauge_last_write_wins():
    lines = [declare("vus", "gauge")] + [point("vus", v) for v in (5, 9, 2, 4)]

    gauge = aggregate_stream(lines).metric("vus")

    assert gauge.value == 4.0
    assert (gauge.min, gauge.max) == (2.0, 9.0)


def test_undeclared_points_are_trends():
    run = aggregate_stream([point("custom_latency", v) for v in (3, 1, 2)])

    metric = run.metric("custom_latency")
    assert metric.kind == MetricKind.TREND
    assert metric.med == 2.0


def test_percentile_method_from_config():
    lines = [point("latency", float(v)) for v in range(1, 11)]

    nearest = aggregate_stream(lines).metric("latency")
    linear = aggregate_stream(lines, ReportConfig(percentile_method="linear")).metric("latency")

    assert nearest.med == 5.0
    assert linear.med == pytest.approx(5.5)


def test_checks_without_declaration_or_check_tag():
    """Three check points (2 pass, 1 fail) with no check name."""
    lines = [point("checks", v) for v in (1, 1, 0)]

    run = aggregate_stream(lines)

    assert [(c.name, c.passes, c.fails) for c in run.checks] == [("checks", 2, 1)]
    assert run.metric("checks").kind == MetricKind.RATE


def test_checks_keep_first_seen_order():
    lines = [
        point("checks", 1, tags={"check": "b"}),
        point("checks", 0, tags={"check": "a"}),
        point("checks", 1, tags={"check": "b"}),
    ]

    run = aggregate_stream(lines)

    assert [(c.name, c.passes, c.fails) for c in run.checks] == [("b", 2, 0), ("a", 0, 1)]


def test_duration_from_timestamps_with_offsets():
    lines = [
        point("x", 1, "2017-05-09T14:34:45.625742514+02:00"),
        point("x", 1, "2017-05-09T12:34:50.125742514Z"),
        point("x", 1, "2017-05-09T14:34:47.000000000+02:00"),
    ]

    assert aggregate_stream(lines).duration_seconds == pytest.approx(4.5)


def test_explicit_duration_wins():
    lines = [
        point("x", 1, "2024-01-01T10:00:00Z"),
        point("x", 1, "2024-01-01T10:00:05Z"),
        json.dumps({"type": "State", "data": {"testRunDurationMs": 30000}}),
    ]

    assert aggregate_stream(lines).duration_seconds == 30.0


def test_malformed_records_are_skipped(caplog):
    lines = [
        "{broken",
        "[1, 2, 3]",
        json.dumps({"type": "Point", "data": {"value": 1}}),
        json.dumps({"type": "Point", "metric": "x", "data": {"value": "fast"}}),
        point("x", 7),
    ]

    with caplog.at_level(logging.WARNING, logger="k6report"):
        run = aggregate_stream(lines)

    assert run.metric("x").kind == MetricKind.TREND
    assert run.metric("x").avg == 7.0
    assert len(run.warnings) == 4
    assert [w.split(":")[0] for w in run.warnings] == ["line 1", "line 2", "line 3", "line 4"]
    assert "Skipped 4 of 5 records" in caplog.text


def test_all_records_malformed():
    with pytest.raises(EmptyOrInvalidStream, match="All 2 records"):
        aggregate_stream(["nope", '{"type": "Point"}'])


def test_empty_stream():
    with pytest.raises(EmptyOrInvalidStream, match="no records"):
        aggregate_stream(["", "   "])


def test_non_finite_values_are_skipped(caplog):
    """NaN and Infinity decode from JSON but would break the trend ordering."""
    lines = [
        point("latency", 1),
        point("latency", 5),
        '{"type": "Point", "metric": "latency", "data": {"value": NaN}}',
        '{"type": "Point", "metric": "latency", "data": {"value": -Infinity}}',
    ]

    with caplog.at_level(logging.WARNING, logger="k6report"):
        run = aggregate_stream(lines)

    metric = run.metric("latency")
    assert (metric.min, metric.max) == (1.0, 5.0)
    assert metric.min <= metric.med <= metric.percentile(95) <= metric.max
    assert [w.split(":")[0] for w in run.warnings] == ["line 3", "line 4"]


def test_non_string_check_tag_falls_back_to_checks():
    lines = [point("checks", 1, tags={"check": 5}), point("checks", 0, tags={"check": ""})]

    run = aggregate_stream(lines)

    assert [(c.name, c.passes, c.fails) for c in run.checks] == [("checks", 1, 1)]

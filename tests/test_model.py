"""Test the metric model."""

import pytest

from k6report.model import Check, InputFormat, Metric, MetricKind, TestRun, build_metric_map


def test_metric_kind_parse():
    assert MetricKind.parse("trend") == MetricKind.TREND
    assert MetricKind.parse("Counter") == MetricKind.COUNTER
    assert MetricKind.parse("histogram") is None
    assert MetricKind.parse(None) is None


def test_metric_accessors():
    metric = Metric("http_req_duration", MetricKind.TREND, "time", {"avg": 1.5, "p(95)": 3.0})

    assert metric.avg == 1.5
    assert metric.percentile(95) == 3.0
    assert metric.percentile(95.0) == 3.0
    assert metric.percentile(90) is None
    assert metric.is_time
    assert not metric.is_submetric
    assert Metric("http_req_duration{status:200}", MetricKind.TREND).is_submetric


def test_metric_values_are_read_only():
    metric = Metric("vus", MetricKind.GAUGE, values={"value": 3})

    with pytest.raises(TypeError):
        metric.values["value"] = 4


def test_check_success_rate():
    assert Check("ok", 3, 1).success_rate == 0.75
    assert Check("never ran", 0, 0).success_rate is None


def test_test_run_is_frozen():
    run = TestRun(InputFormat.EVENT_STREAM, duration_seconds=1.0)

    with pytest.raises(AttributeError):
        run.duration_seconds = 2.0
    with pytest.raises(TypeError):
        run.metrics["x"] = Metric("x", MetricKind.TREND)


def test_test_run_rejects_negative_duration():
    with pytest.raises(ValueError):
        TestRun(InputFormat.AGGREGATED_SUMMARY, duration_seconds=-1.0)


def test_metrics_of_kind_keeps_order():
    run = TestRun(
        InputFormat.AGGREGATED_SUMMARY,
        metrics=build_metric_map([
            Metric("b", MetricKind.COUNTER),
            Metric("a", MetricKind.TREND),
            Metric("c", MetricKind.COUNTER),
        ]),
    )

    assert [m.name for m in run.metrics_of_kind(MetricKind.COUNTER)] == ["b", "c"]


def test_build_metric_map_rejects_duplicates():
    with pytest.raises(ValueError, match="Duplicate"):
        build_metric_map([Metric("x", MetricKind.TREND), Metric("x", MetricKind.RATE)])

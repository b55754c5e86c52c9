"""Render a k6 TestRun to a Markdown report."""

from typing import Dict, List, Optional, Tuple

from k6report.config import ReportConfig
from k6report.model import InputFormat, Metric, MetricKind, TestRun, TREND_STATS
from k6report.report.formatting import (
    NOT_AVAILABLE,
    format_count,
    format_duration_ms,
    format_number,
    format_per_second,
    format_percent,
    format_seconds,
)

PASS = "✓ PASS"
FAIL = "✗ FAIL"

SOURCE_LABELS = {
    InputFormat.AGGREGATED_SUMMARY: "aggregated summary",
    InputFormat.EVENT_STREAM: "event stream",
}

# Stats listed first (as N/A when missing) in per-metric tables.
CANONICAL_STATS: Dict[MetricKind, Tuple[str, ...]] = {
    MetricKind.COUNTER: ("count", "rate"),
    MetricKind.RATE: ("rate", "passes", "fails"),
    MetricKind.GAUGE: ("value", "min", "max"),
    MetricKind.TREND: TREND_STATS,
}


def _cell(text: str) -> str:
    return text.replace("|", "\\|")


def format_stat(metric: Metric, key: str, value: Optional[float], config: ReportConfig) -> str:
    """Format one stat of ``metric`` according to its key and value kind."""
    if key in ("count", "passes", "fails"):
        return format_count(value, config.compact_counts)
    if key == "rate":
        if metric.kind == MetricKind.COUNTER:
            return format_per_second(value)
        if metric.kind == MetricKind.RATE:
            return format_percent(value)
        return format_number(value)
    if metric.is_time:
        return format_duration_ms(value, config.adaptive_durations)
    return format_number(value)


def _ordered_stats(metric: Metric) -> List[Tuple[str, Optional[float]]]:
    canonical = CANONICAL_STATS[metric.kind]
    stats = [(key, metric.get(key)) for key in canonical]
    stats.extend((key, value) for key, value in metric.values.items() if key not in canonical)
    return stats


def _is_http(metric: Metric, config: ReportConfig) -> bool:
    return metric.name.startswith(config.http_prefix) and not metric.is_submetric


def _failed_requests(run: TestRun, total: Optional[float], config: ReportConfig) -> str:
    failed = run.metric("http_req_failed")
    rate = failed.rate
    # a "pass" of http_req_failed is a failed request
    fails = failed.passes
    if fails is None and rate is not None and total is not None:
        fails = round(rate * total)
    if fails is None and rate is None:
        return NOT_AVAILABLE
    return f"{format_count(fails, config.compact_counts)} ({format_percent(rate)})"


def _summary_section(run: TestRun, config: ReportConfig) -> List[str]:
    rows: List[Tuple[str, str]] = []

    reqs = run.metric("http_reqs")
    total = reqs.count if reqs else None
    if reqs:
        rows.append(("Total Requests", format_count(total, config.compact_counts)))
        rows.append(("Request Rate", format_per_second(reqs.rate)))

    if run.metric("http_req_failed"):
        rows.append(("Failed Requests", _failed_requests(run, total, config)))

    duration = run.metric("http_req_duration")
    if duration:
        rows.append(("Avg Response Time", format_duration_ms(duration.avg, config.adaptive_durations)))
        rows.append(("P95 Response Time", format_duration_ms(duration.percentile(95), config.adaptive_durations)))

    iterations = run.metric("iterations")
    if iterations:
        rows.append(("Iterations", format_count(iterations.count, config.compact_counts)))

    vus = run.metric("vus")
    if vus:
        rows.append(("Virtual Users", format_count(vus.value)))

    if run.checks:
        passes = sum(c.passes for c in run.checks)
        fails = sum(c.fails for c in run.checks)
        total_checks = passes + fails
        rate = passes / total_checks if total_checks else None
        rows.append(("Checks", f"{passes} passed, {fails} failed ({format_percent(rate)})"))

    lines = ["## Summary", ""]
    if not rows:
        lines.extend(["_No request, iteration or check metrics were recorded._", ""])
        return lines

    lines.extend(["| Metric | Value |", "|--------|-------|"])
    lines.extend(f"| {label} | {value} |" for label, value in rows)
    lines.append("")
    return lines


def _thresholds_section(run: TestRun) -> List[str]:
    lines = ["## Thresholds", ""]

    if run.thresholds:
        lines.extend([
            "| Metric | Threshold | Status |",
            "|--------|-----------|--------|",
        ])
        for threshold in run.thresholds:
            status = PASS if threshold.ok else FAIL
            lines.append(f"| {_cell(threshold.metric)} | `{threshold.expression}` | {status} |")
        lines.append("")
        return lines

    if run.thresholds_available:
        lines.extend(["_No thresholds were defined for this test run._", ""])
        return lines

    lines.extend([
        "_Threshold results are not available: raw event streams do not record "
        "whether thresholds passed or failed._",
        "",
    ])
    if run.declared_thresholds:
        lines.extend(["Declared thresholds (not evaluated):", ""])
        lines.extend(
            f"- {_cell(metric)}: `{expression}`" for metric, expression in run.declared_thresholds
        )
        lines.append("")
    return lines


def _http_section(run: TestRun, config: ReportConfig) -> List[str]:
    lines = ["## HTTP Metrics", ""]
    http_metrics = [m for m in run.metrics.values() if _is_http(m, config)]

    if not http_metrics:
        lines.extend(["_No HTTP metrics were recorded._", ""])
        return lines

    for metric in http_metrics:
        lines.extend([
            f"### {metric.name} ({metric.kind.value})",
            "",
            "| Stat | Value |",
            "|------|-------|",
        ])
        for key, value in _ordered_stats(metric):
            lines.append(f"| {key} | {format_stat(metric, key, value, config)} |")
        lines.append("")
    return lines


def _checks_section(run: TestRun) -> List[str]:
    if not run.checks:
        return []

    lines = [
        "## Checks",
        "",
        "| Check | Result | Success Rate |",
        "|-------|--------|--------------|",
    ]
    for check in run.checks:
        icon = "✓" if check.fails == 0 else "✗"
        lines.append(
            f"| {icon} {_cell(check.name)} | {check.passes} passed, {check.fails} failed "
            f"| {format_percent(check.success_rate)} |"
        )
    lines.append("")
    return lines


def _all_metrics_section(run: TestRun, config: ReportConfig) -> List[str]:
    remaining = [m for m in run.metrics.values() if not _is_http(m, config)]
    lines = ["## All Metrics", ""]

    if not remaining:
        lines.extend(["_No other metrics were recorded._", ""])
        return lines

    def of_kind(kind: MetricKind) -> List[Metric]:
        return [m for m in remaining if m.kind == kind]

    def stat(metric: Metric, key: str) -> str:
        return format_stat(metric, key, metric.get(key), config)

    counters = of_kind(MetricKind.COUNTER)
    if counters:
        lines.extend(["### Counters", "", "| Metric | Count | Rate |", "|--------|-------|------|"])
        for m in counters:
            lines.append(f"| {_cell(m.name)} | {stat(m, 'count')} | {stat(m, 'rate')} |")
        lines.append("")

    rates = of_kind(MetricKind.RATE)
    if rates:
        lines.extend(["### Rates", "", "| Metric | Rate | Passes | Fails |", "|--------|------|--------|-------|"])
        for m in rates:
            lines.append(
                f"| {_cell(m.name)} | {stat(m, 'rate')} | {stat(m, 'passes')} | {stat(m, 'fails')} |"
            )
        lines.append("")

    gauges = of_kind(MetricKind.GAUGE)
    if gauges:
        lines.extend(["### Gauges", "", "| Metric | Value | Min | Max |", "|--------|-------|-----|-----|"])
        for m in gauges:
            lines.append(f"| {_cell(m.name)} | {stat(m, 'value')} | {stat(m, 'min')} | {stat(m, 'max')} |")
        lines.append("")

    trends = of_kind(MetricKind.TREND)
    if trends:
        # extra stats such as p(99) and count become columns after the canonical ones
        columns = list(TREND_STATS)
        for m in trends:
            columns.extend(key for key in m.values if key not in columns)
        header = " | ".join(key.upper() if key.startswith("p(") else key.capitalize() for key in columns)
        lines.extend([
            "### Trends",
            "",
            f"| Metric | {header} |",
            "|--------" + "|------" * len(columns) + "|",
        ])
        for m in trends:
            cells = " | ".join(stat(m, key) for key in columns)
            lines.append(f"| {_cell(m.name)} | {cells} |")
        lines.append("")

    return lines


def render_markdown_report(run: TestRun, config: Optional[ReportConfig] = None) -> str:
    """Generate the Markdown report for a test run.

    The output depends only on ``run`` and ``config``: rows follow the run's
    insertion order and nothing time- or environment-dependent is printed.

    Args:
        run: Aggregated or normalized test run
        config: Report configuration; defaults to ReportConfig()

    Returns:
        Markdown report as string
    """
    config = config or ReportConfig()

    report_lines = [f"# {config.title}", ""]
    if run.duration_seconds is not None:
        report_lines.extend([f"**Test Duration:** {format_seconds(run.duration_seconds)}", ""])
    report_lines.extend([f"**Source:** {SOURCE_LABELS[run.source_format]}", "", "---", ""])

    sections = [
        _summary_section(run, config),
        _thresholds_section(run),
        _http_section(run, config),
        _checks_section(run),
        _all_metrics_section(run, config),
    ]
    rendered = [section for section in sections if section]
    for i, section in enumerate(rendered):
        report_lines.extend(section)
        if i < len(rendered) - 1:
            report_lines.extend(["---", ""])

    return "\n".join(report_lines)

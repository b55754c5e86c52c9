"""Export a TestRun's metrics as tabular data."""

import logging
from pathlib import Path

import pandas as pd

from k6report.model import TestRun

logger = logging.getLogger(__name__)


def metrics_frame(run: TestRun) -> pd.DataFrame:
    """One row per metric, one column per stat.

    Stats a metric does not have are NaN. Rows keep the run's metric order.
    """
    rows = []
    for metric in run.metrics.values():
        row = {
            "metric": metric.name,
            "kind": metric.kind.value,
            "contains": metric.contains,
        }
        row.update(metric.values)
        rows.append(row)

    if not rows:
        return pd.DataFrame(columns=["metric", "kind", "contains"])

    return pd.DataFrame(rows)


def save_metrics(run: TestRun, output_dir: Path):
    """Save the metric table to CSV and JSON lines."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    df = metrics_frame(run)

    csv_file = output_dir / "metrics.csv"
    df.to_csv(csv_file, index=False)

    jsonl_file = output_dir / "metrics.jsonl"
    with open(jsonl_file, "w", encoding="utf-8") as f:
        for _, row in df.iterrows():
            f.write(row.dropna().to_json(force_ascii=False) + "\n")

    logger.info("Metrics exported to %s (%d metrics)", output_dir, len(df))
    return csv_file, jsonl_file

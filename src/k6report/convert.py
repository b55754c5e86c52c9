"""Run the full conversion: input text -> TestRun -> Markdown."""

import logging
from typing import Optional

from k6report.config import ReportConfig
from k6report.ingest.detect import detect_format
from k6report.ingest.stream import aggregate_stream
from k6report.ingest.summary import normalize_summary
from k6report.model import InputFormat, TestRun
from k6report.report.render_md import render_markdown_report

logger = logging.getLogger(__name__)


def load_test_run(text: str, config: Optional[ReportConfig] = None) -> TestRun:
    """Detect the input shape and build the TestRun.

    Raises:
        ReportError: if the input cannot be classified or parsed
    """
    detected = detect_format(text)

    if detected.format == InputFormat.AGGREGATED_SUMMARY:
        logger.info("Detected format: aggregated summary JSON")
        return normalize_summary(detected.document)

    logger.info("Detected format: JSON event stream (--out json)")
    return aggregate_stream(text.splitlines(), config)


def convert(text: str, config: Optional[ReportConfig] = None) -> str:
    """Convert k6 output text into a Markdown report."""
    config = config or ReportConfig()
    run = load_test_run(text, config)
    return render_markdown_report(run, config)

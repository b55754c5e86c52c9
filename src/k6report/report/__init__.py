"""Markdown rendering and export of k6 test runs."""

from .export import metrics_frame, save_metrics
from .render_md import render_markdown_report

__all__ = [
    "metrics_frame",
    "save_metrics",
    "render_markdown_report",
]

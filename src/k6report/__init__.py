"""k6-report: convert k6 results to Markdown reports."""

__version__ = "0.3.0"

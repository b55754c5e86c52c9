"""Readers turning k6 output into a TestRun."""

from .detect import DetectedInput, detect_format
from .stream import aggregate_stream
from .summary import normalize_summary

__all__ = [
    "DetectedInput",
    "detect_format",
    "aggregate_stream",
    "normalize_summary",
]

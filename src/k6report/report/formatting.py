"""Number formatting for reports, and parsers that read it back."""

import re
from typing import Optional

NOT_AVAILABLE = "N/A"


def format_duration_ms(ms: Optional[float], adaptive: bool = False) -> str:
    """Format a duration given in milliseconds.

    Fixed mode always prints milliseconds (``150.25ms``). Adaptive mode picks
    µs, ms, s or m depending on magnitude.
    """
    if ms is None:
        return NOT_AVAILABLE
    if not adaptive:
        return f"{ms:.2f}ms"
    if ms >= 60_000:
        return f"{ms / 60_000:.2f}m"
    if ms >= 1000:
        return f"{ms / 1000:.2f}s"
    if ms >= 1:
        return f"{ms:.2f}ms"
    return f"{ms * 1000:.2f}µs"


def format_seconds(seconds: Optional[float]) -> str:
    if seconds is None:
        return NOT_AVAILABLE
    return f"{seconds:.2f}s"


def format_percent(fraction: Optional[float]) -> str:
    """Format a 0..1 fraction as a percentage (``0.02`` -> ``2.00%``)."""
    if fraction is None:
        return NOT_AVAILABLE
    return f"{fraction * 100:.2f}%"


def format_per_second(rate: Optional[float]) -> str:
    if rate is None:
        return NOT_AVAILABLE
    return f"{rate:.2f}/s"


def format_count(count: Optional[float], compact: bool = False) -> str:
    """Format a count as an integer, or as ``1.50K`` / ``2.50M`` when compact."""
    if count is None:
        return NOT_AVAILABLE
    count = int(round(count))
    if compact:
        if count >= 1_000_000:
            return f"{count / 1_000_000:.2f}M"
        if count >= 1_000:
            return f"{count / 1_000:.2f}K"
    return str(count)


def format_number(value: Optional[float]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.2f}"


_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(µs|us|ms|s|m)\s*$")
_DURATION_SCALE = {"µs": 0.001, "us": 0.001, "ms": 1.0, "s": 1000.0, "m": 60_000.0}
_PERCENT_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*%\s*$")
_PER_SECOND_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*/s\s*$")
_COUNT_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KM]?)\s*$")


def _match(pattern, text: str, what: str):
    match = pattern.match(text)
    if match is None:
        raise ValueError(f"Not a formatted {what}: {text!r}")
    return match


def parse_duration_ms(text: str) -> Optional[float]:
    """Inverse of format_duration_ms; returns milliseconds, None for N/A."""
    if text.strip() == NOT_AVAILABLE:
        return None
    match = _match(_DURATION_RE, text, "duration")
    return float(match.group(1)) * _DURATION_SCALE[match.group(2)]


def parse_percent(text: str) -> Optional[float]:
    """Inverse of format_percent; returns a 0..1 fraction."""
    if text.strip() == NOT_AVAILABLE:
        return None
    return float(_match(_PERCENT_RE, text, "percentage").group(1)) / 100


def parse_per_second(text: str) -> Optional[float]:
    if text.strip() == NOT_AVAILABLE:
        return None
    return float(_match(_PER_SECOND_RE, text, "rate").group(1))


def parse_count(text: str) -> Optional[float]:
    if text.strip() == NOT_AVAILABLE:
        return None
    match = _match(_COUNT_RE, text, "count")
    scale = {"": 1, "K": 1_000, "M": 1_000_000}[match.group(2)]
    return float(match.group(1)) * scale

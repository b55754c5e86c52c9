"""Detect whether input text is a k6 summary or a k6 JSON event stream."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from k6report.errors import UnrecognizedFormat
from k6report.model import InputFormat

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()

SNIPPET_LENGTH = 40


@dataclass(frozen=True)
class DetectedInput:
    """Result of classifying the input.

    ``document`` holds the decoded summary object for aggregated summaries so
    the normalizer does not parse the text twice; it is None for streams.
    """
    format: InputFormat
    document: Optional[Dict[str, Any]] = None


def _snippet(text: str, offset: int = 0) -> str:
    chunk = text[offset:offset + SNIPPET_LENGTH].splitlines()
    return repr(chunk[0] if chunk else "")


def _is_event_record(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("type"), str)


def _has_stream_record(text: str) -> bool:
    """Whether any line of ``text`` decodes as an event record."""
    for i, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError:
            continue
        if _is_event_record(value):
            logger.debug("Detected event stream at line %d", i)
            return True
    return False


def detect_format(text: str) -> DetectedInput:
    """Classify ``text`` by decoding its first JSON value.

    When the first value is neither a summary nor an event record, later
    lines are scanned for an event record so that a stream with broken
    leading lines is still handed to the aggregator, which skips them.

    Args:
        text: Whole input file content

    Returns:
        DetectedInput tagged AGGREGATED_SUMMARY or EVENT_STREAM

    Raises:
        UnrecognizedFormat: for empty input, non-JSON text, or JSON of
            neither shape
    """
    start = len(text) - len(text.lstrip())
    if start == len(text):
        raise UnrecognizedFormat("Input is empty", "offset 0")

    if text[start] != "{":
        raise UnrecognizedFormat(
            "Input does not start with a JSON object",
            f"offset {start}: {_snippet(text, start)}",
        )

    try:
        first, end = _decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        if _has_stream_record(text):
            return DetectedInput(InputFormat.EVENT_STREAM)
        raise UnrecognizedFormat(
            f"Input is not valid JSON: {e.msg}",
            f"offset {e.pos}: {_snippet(text, e.pos)}",
        ) from e

    trailing = text[end:].strip()

    if isinstance(first.get("metrics"), dict) and not trailing:
        logger.debug("Detected aggregated summary")
        return DetectedInput(InputFormat.AGGREGATED_SUMMARY, first)

    if _is_event_record(first):
        logger.debug("Detected event stream")
        return DetectedInput(InputFormat.EVENT_STREAM)

    if "metrics" in first and trailing:
        trailing_at = len(text) - len(text[end:].lstrip())
        raise UnrecognizedFormat(
            "Unexpected data after the summary object",
            f"offset {trailing_at}: {_snippet(text, trailing_at)}",
        )

    if _has_stream_record(text):
        return DetectedInput(InputFormat.EVENT_STREAM)

    raise UnrecognizedFormat(
        "JSON object has neither a 'metrics' object nor a 'type' field",
        f"offset {start}: {_snippet(text, start)}",
    )

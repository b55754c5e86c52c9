"""Test input format detection."""

import pytest

from k6report.errors import UnrecognizedFormat
from k6report.ingest.detect import detect_format
from k6report.model import InputFormat


def test_detect_aggregated_summary():
    detected = detect_format('{"metrics":{"http_reqs":{"type":"counter"}}}')

    assert detected.format == InputFormat.AGGREGATED_SUMMARY
    assert detected.document["metrics"]["http_reqs"]["type"] == "counter"


def test_detect_summary_with_surrounding_whitespace():
    detected = detect_format('\n\n  {"metrics": {}, "root_group": {"name": ""}}\n')

    assert detected.format == InputFormat.AGGREGATED_SUMMARY


def test_detect_event_stream():
    content = (
        '{"type":"Point","metric":"http_req_duration","data":{"value":1}}\n'
        '{"type":"Point","metric":"http_req_duration","data":{"value":2}}\n'
    )
    detected = detect_format(content)

    assert detected.format == InputFormat.EVENT_STREAM
    assert detected.document is None


def test_detect_single_record_stream():
    detected = detect_format('{"type":"Metric","metric":"http_reqs","data":{"type":"counter"}}')

    assert detected.format == InputFormat.EVENT_STREAM


def test_detect_stream_does_not_parse_later_records():
    """Only the first record is decoded; broken later lines are left to the aggregator."""
    content = '{"type":"Metric","metric":"vus","data":{}}\n{not json at all\n'

    assert detect_format(content).format == InputFormat.EVENT_STREAM


@pytest.mark.parametrize("content", ["", "   \n\t\n"])
def test_detect_empty_input(content):
    with pytest.raises(UnrecognizedFormat, match="empty"):
        detect_format(content)


def test_detect_plain_text():
    with pytest.raises(UnrecognizedFormat) as excinfo:
        detect_format("running (0m30.0s), 00/10 VUs, 100 complete iterations")

    assert "offset 0" in str(excinfo.value)
    assert excinfo.value.diagnostic().startswith("UnrecognizedFormat:")


def test_detect_malformed_json_reports_offset():
    with pytest.raises(UnrecognizedFormat) as excinfo:
        detect_format('{"metrics": {"http_reqs": }')

    assert "offset 26" in excinfo.value.context


def test_detect_object_of_unknown_shape():
    with pytest.raises(UnrecognizedFormat):
        detect_format('{"hello": "world"}')


def test_detect_summary_followed_by_garbage():
    with pytest.raises(UnrecognizedFormat, match="after the summary"):
        detect_format('{"metrics": {}}\n{"metrics": {}}')


def test_detect_stream_with_malformed_first_line():
    content = (
        "{broken\n"
        '{"type":"Point","metric":"http_reqs","data":{"value":1}}\n'
    )

    assert detect_format(content).format == InputFormat.EVENT_STREAM


def test_detect_stream_starting_with_state_record():
    content = (
        '{"type":"State","data":{"testRunDurationMs":30000}}\n'
        '{"type":"Point","metric":"http_reqs","data":{"value":1}}\n'
    )

    assert detect_format(content).format == InputFormat.EVENT_STREAM


def test_detect_malformed_lines_without_any_record():
    with pytest.raises(UnrecognizedFormat, match="not valid JSON"):
        detect_format('{broken\n{"hello": "world"}\n')

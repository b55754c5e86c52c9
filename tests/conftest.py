import pytest


@pytest.fixture(autouse=True)
def clean_report_env(monkeypatch):
    """Keep K6R_* settings from the developer's shell out of the tests."""
    for name in ("K6R_TITLE", "K6R_PERCENTILE_METHOD", "K6R_COMPACT_COUNTS", "K6R_ADAPTIVE_DURATIONS"):
        monkeypatch.delenv(name, raising=False)

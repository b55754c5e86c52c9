"""Configuration management for k6-report."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from k6report.eval.statistics import PERCENTILE_METHODS

DEFAULT_TITLE = "K6 Load Test Report"

_TRUE = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE


@dataclass
class ReportConfig:
    """Report configuration with environment-based defaults."""

    title: str = field(default_factory=lambda: os.getenv("K6R_TITLE", DEFAULT_TITLE))
    percentile_method: str = field(
        default_factory=lambda: os.getenv("K6R_PERCENTILE_METHOD", "nearest")
    )
    compact_counts: bool = field(default_factory=lambda: _env_flag("K6R_COMPACT_COUNTS"))
    adaptive_durations: bool = field(default_factory=lambda: _env_flag("K6R_ADAPTIVE_DURATIONS"))
    http_prefix: str = "http_req"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        for name in ("title", "percentile_method", "http_prefix"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string, got {getattr(self, name)!r}")

        for name in ("compact_counts", "adaptive_durations"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false, got {getattr(self, name)!r}")

        if self.percentile_method not in PERCENTILE_METHODS:
            raise ValueError(
                f"percentile_method must be 'nearest' or 'linear', got {self.percentile_method}"
            )

        if not self.title or not self.title.strip():
            raise ValueError("title must not be empty")

        if not self.http_prefix:
            raise ValueError("http_prefix must not be empty")

    def with_overrides(self, **overrides: Any) -> "ReportConfig":
        """Copy of this config with the non-None overrides applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ReportConfig(**values)


def load_config(path: Optional[Union[str, Path]] = None) -> ReportConfig:
    """Build a ReportConfig from ``.env``, the environment and an optional YAML file.

    Values from the YAML file win over environment defaults.

    Args:
        path: Optional YAML file with ReportConfig keys

    Returns:
        Validated ReportConfig

    Raises:
        ValueError: if the file holds unknown keys or invalid values
    """
    load_dotenv()
    config = ReportConfig()

    if path is None:
        return config

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(ReportConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    overrides: Dict[str, Any] = dict(data)
    return config.with_overrides(**overrides)

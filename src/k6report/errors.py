"""Error taxonomy for k6-report.

Every fatal failure of the conversion pipeline is a ``ReportError``. The CLI
prints ``error: <Kind>: <message>`` for these and exits non-zero.
"""

from typing import Optional


class ReportError(ValueError):
    """Base class for conversion failures."""

    kind = "ReportError"

    def __init__(self, message: str, context: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} ({self.context})"
        return self.message

    def diagnostic(self) -> str:
        """One-line diagnostic naming the error kind."""
        return f"{self.kind}: {self}"


class UnrecognizedFormat(ReportError):
    """Input is neither an aggregated summary nor an event stream."""

    kind = "UnrecognizedFormat"


class MalformedJson(ReportError):
    """A JSON document or record could not be parsed."""

    kind = "MalformedJson"


class EmptyOrInvalidStream(ReportError):
    """An event stream had no usable record."""

    kind = "EmptyOrInvalidStream"


class UnknownMetricType(ReportError):
    """A summary metric has a missing or unrecognized ``type``."""

    kind = "UnknownMetricType"


class MissingField(ReportError):
    """A field required by the detected input shape is absent."""

    kind = "MissingField"


class InvalidValue(ReportError):
    """A value is present but violates the metric model (e.g. rate > 1)."""

    kind = "InvalidValue"

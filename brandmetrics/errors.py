from __future__ import annotations


class MetricsError(Exception):
    """Base class for failures the pipeline reports to its callers."""

    def __init__(self, message: str, identifier: str = "") -> None:
        super().__init__(message)
        self.identifier = identifier


class InvalidInput(MetricsError):
    """Empty pixel data or a metric record outside its valid ranges."""


class NotFound(MetricsError):
    """The requested image is not present in storage."""


class DecodeError(MetricsError):
    """Raw bytes could not be turned into a grayscale pixel buffer."""

"""
Error types for complexity analysis.

An analyzer refuses to start with an invalid configuration. Beyond that,
only two conditions are fatal to an analysis: the target cannot be turned
into an absolute path, or it does not exist when the scan starts. Problems
with individual files or directories inside the target are logged and
skipped, never raised.
"""


class ComplexityAnalysisError(Exception):
    """Base class for errors raised by the analyzer."""


class ResolutionError(ComplexityAnalysisError):
    """The target path could not be converted to an absolute path."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"failed to get absolute path for {target!r}: {reason}")


class TargetNotFoundError(ComplexityAnalysisError):
    """The target path does not exist at scan time."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"target path does not exist: {target}")


class CacheFormatError(ComplexityAnalysisError):
    """Serialized cache contents could not be decoded."""


class ConfigurationError(ComplexityAnalysisError):
    """The analyzer configuration failed validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"invalid analyzer configuration: {'; '.join(self.errors)}")

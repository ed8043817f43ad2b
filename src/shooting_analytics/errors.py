"""
errors.py
Failure taxonomy for the shooting incident analysis.

Every error carries enough context (source, column, row index, offending
predictor) to be actionable when the run log is read after the fact.
"""


class AnalysisError(Exception):
    """Base class for every failure raised by this package."""


class SourceUnavailable(AnalysisError, OSError):
    """The CSV resource could not be fetched or read."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not fetch {source}: {reason}")


class SchemaMismatch(AnalysisError, ValueError):
    """One or more expected columns are absent."""

    def __init__(self, missing):
        self.missing = sorted(missing)
        super().__init__(f"Dataset is missing expected columns: {self.missing}")


class MalformedValue(AnalysisError, ValueError):
    """A cell could not be parsed into its expected type."""

    def __init__(self, row, column: str, value):
        self.row = row
        self.column = column
        self.value = value
        super().__init__(f"Row {row}: cannot parse {column}={value!r}")


class InsufficientData(AnalysisError, ValueError):
    """The model fit is undefined for the data it was given."""

"""Errors surfaced by the analyzers and the hybrid engine."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base exception for analysis failures."""


class InsufficientDataError(AnalysisError):
    """Not enough records to analyze. Terminal, never retried."""

    def __init__(self, message: str = "Not enough records to analyze") -> None:
        super().__init__(message)


class ProcessingError(AnalysisError):
    """Unexpected internal inconsistency (e.g. a fetch yielded no usable data)."""


class RecordFetchError(AnalysisError):
    """A record store failed while fetching the records for an analysis."""

    def __init__(self, record_type: str, message: str) -> None:
        super().__init__(f"Fetching {record_type} records failed: {message}")
        self.record_type = record_type


class CloudAnalysisDisabledError(AnalysisError):
    """Cloud policy is false. Used internally to skip the cloud attempt."""

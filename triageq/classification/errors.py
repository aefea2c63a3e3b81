"""
Error kinds raised or surfaced by the triage core.

All of them are recoverable: callers keep their last good result and show the
error next to it.
"""

from __future__ import annotations


class TriageError(Exception):
    """Base class for triage core errors."""


class ConfigurationError(TriageError):
    """Invalid settings: custom weights not summing to 1.0, malformed threshold."""


class ClassificationInputError(TriageError):
    """Malformed raw item (missing identifier or timestamp)."""

    def __init__(self, message: str, item_id: str | None = None, index: int | None = None):
        super().__init__(message)
        self.item_id = item_id
        self.index = index


class DataSourceError(TriageError):
    """Failure reported by the data source. Propagated, never generated, by the core."""

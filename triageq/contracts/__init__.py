"""
Type Contracts for TriageQ

Protocol-based contracts for the collaborators the triage core talks to but
does not implement: the data source that delivers raw items and the opaque
blob store that keeps saved filter presets.

Protocols only, no logic. In-memory implementations used by tests and demos
live in triageq.storage.memory.
"""

from triageq.contracts.sources import DataSource
from triageq.contracts.storage import BlobStore

__all__ = [
    "BlobStore",
    "DataSource",
]

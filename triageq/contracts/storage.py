"""
Blob Store Protocol

Opaque key/value storage for saved filter presets. Keys are strings, blobs
are JSON text; the store never interprets either.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStore(Protocol):
    """Minimal key/value store."""

    def get(self, key: str) -> str | None:
        """Blob stored under key, or None."""
        ...

    def put(self, key: str, blob: str) -> None:
        """Store blob under key, replacing any previous value."""
        ...

    def delete(self, key: str) -> bool:
        """Remove key. Returns whether it existed."""
        ...

    def keys(self) -> Iterable[str]:
        """Every stored key."""
        ...

"""
In-memory collaborators for tests and demos.

StaticDataSource replays fixed batches (or a failure); InMemoryBlobStore is a
dict behind a lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from triageq.classification.errors import DataSourceError
from triageq.storage.models import Item


class StaticDataSource:
    """
    DataSource returning a fixed batch.

    ``set_batch`` swaps the batch; ``fail_next`` makes the next fetch raise
    DataSourceError once, like a dropped connection.
    """

    def __init__(self, items: Sequence[Item | Mapping[str, Any]] = ()) -> None:
        self._items = list(items)
        self._failure: str | None = None
        self.fetch_count = 0

    def set_batch(self, items: Sequence[Item | Mapping[str, Any]]) -> None:
        self._items = list(items)

    def fail_next(self, message: str = "data source unavailable") -> None:
        self._failure = message

    def fetch(self) -> list[Item | Mapping[str, Any]]:
        self.fetch_count += 1
        if self._failure is not None:
            message, self._failure = self._failure, None
            raise DataSourceError(message)
        return list(self._items)


class InMemoryBlobStore:
    """BlobStore backed by a dict."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._blobs.get(key)

    def put(self, key: str, blob: str) -> None:
        with self._lock:
            self._blobs[key] = blob

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._blobs.pop(key, None) is not None

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._blobs)

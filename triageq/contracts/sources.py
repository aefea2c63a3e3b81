"""
Data Source Protocol

The data source owns fetching, retries and refresh cadence. The core only
consumes what it returns.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from triageq.storage.models import Item


@runtime_checkable
class DataSource(Protocol):
    """Delivers the current batch of raw items."""

    def fetch(self) -> Sequence[Item | Mapping[str, Any]]:
        """Return every item currently known to the source.

        Raises:
            DataSourceError: If the source could not deliver a batch
        """
        ...

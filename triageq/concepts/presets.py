"""
Filter Presets

Quick filters (fixed, one click) and named saved filters (user-defined,
persisted through a BlobStore).

Philosophy:
- A preset is just a FilterSpec; loading one never touches classifications
- Quick filters layer on top of the current spec, like the dashboard's chips
- Saved filters are stored as JSON text so any key/value store can hold them

Usage:
    from triageq.concepts.presets import FilterPresetManager, apply_quick_filter
    from triageq.storage.memory import InMemoryBlobStore

    manager = FilterPresetManager(InMemoryBlobStore())
    manager.save("night shift", apply_quick_filter("needs_action"))
    spec = manager.load("night shift")
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from triageq.classification.filters import FilterSpec
from triageq.classification.types import TimeWindow, TriageCategory
from triageq.contracts.storage import BlobStore
from triageq.observability.logging import get_logger
from triageq.observability.telemetry import counter

logger = get_logger(__name__)

PRESET_KEY_PREFIX = "triageq:filter-preset:"

# Fields each quick filter sets on top of the current spec
QUICK_FILTERS: dict[str, dict[str, Any]] = {
    "critical_only": {
        "categories": frozenset({TriageCategory.CRITICAL}),
        "unread_only": True,
    },
    "needs_action": {
        "action_required_only": True,
        "unread_only": True,
    },
    "high_confidence": {
        "confidence_range": (0.9, 1.0),
    },
    "recent_unread": {
        "time_window": TimeWindow.TODAY,
        "custom_start": None,
        "custom_end": None,
        "unread_only": True,
    },
}


def apply_quick_filter(name: str, base: FilterSpec | None = None) -> FilterSpec:
    """
    Layer a quick filter over ``base`` (the default spec when omitted).

    Raises:
        KeyError: If no quick filter has that name
    """
    if name not in QUICK_FILTERS:
        raise KeyError(f"unknown quick filter: {name!r}")
    current = base if base is not None else FilterSpec()
    return FilterSpec.model_validate({**current.model_dump(), **QUICK_FILTERS[name]})


def active_filter_count(spec: FilterSpec) -> int:
    """Number of facets that differ from the default spec, for the filter badge."""
    default = FilterSpec()
    count = 0
    for name in (
        "priorities",
        "categories",
        "domains",
        "channels",
        "departments",
        "senders",
        "confidence_range",
        "keyword",
        "action_required_only",
        "online_only",
        "unread_only",
    ):
        if getattr(spec, name) != getattr(default, name):
            count += 1
    if spec.time_window is not default.time_window or spec.has_custom_bounds:
        count += 1
    return count


class FilterPresetManager:
    """Named saved filters stored in a BlobStore.

    Side Effects:
        - save()/delete() write to the blob store
    """

    def __init__(self, store: BlobStore, prefix: str = PRESET_KEY_PREFIX):
        self.store = store
        self.prefix = prefix

    def _key(self, name: str) -> str:
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("preset name must not be blank")
        return f"{self.prefix}{cleaned}"

    def save(self, name: str, spec: FilterSpec) -> None:
        """Save (or overwrite) a preset."""
        self.store.put(self._key(name), spec.model_dump_json())
        counter("presets.saved")
        logger.info("Saved filter preset %r", name.strip())

    def load(self, name: str) -> FilterSpec:
        """
        Load a preset.

        Raises:
            KeyError: If no preset has that name
            ValueError: If the stored blob is not a valid FilterSpec
        """
        blob = self.store.get(self._key(name))
        if blob is None:
            raise KeyError(f"no saved filter named {name.strip()!r}")
        try:
            return FilterSpec.model_validate_json(blob)
        except ValidationError as exc:
            logger.warning("Stored filter preset %r is invalid: %s", name.strip(), exc)
            raise ValueError(f"saved filter {name.strip()!r} is corrupt") from exc

    def delete(self, name: str) -> None:
        """
        Delete a preset.

        Raises:
            KeyError: If no preset has that name
        """
        if not self.store.delete(self._key(name)):
            raise KeyError(f"no saved filter named {name.strip()!r}")
        counter("presets.deleted")

    def names(self) -> list[str]:
        """Saved preset names, sorted."""
        return sorted(
            key[len(self.prefix) :] for key in self.store.keys() if key.startswith(self.prefix)
        )

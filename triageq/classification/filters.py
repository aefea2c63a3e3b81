"""
Classification Filters

Facet filtering over classified items:
- Accepted-set facets (tier, category, domain, channel, department, sender)
- Confidence range and keyword search
- Time window (preset or custom half-open interval)
- Flags (action required, online, unread)

All facets are AND-combined. An empty accepted set means "no restriction on
that facet", never "accept nothing".
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from triageq.classification.types import (
    ClinicalDomain,
    ItemChannel,
    PriorityTier,
    TimeWindow,
    TriageCategory,
)
from triageq.observability.logging import get_logger
from triageq.observability.telemetry import counter
from triageq.storage.models import ClassifiedItem

logger = get_logger(__name__)

# (start offset, end offset) back from now; None end means "up to now"
WINDOW_OFFSETS: dict[TimeWindow, tuple[timedelta, timedelta | None]] = {
    TimeWindow.TODAY: (timedelta(hours=24), None),
    TimeWindow.YESTERDAY: (timedelta(hours=48), timedelta(hours=24)),
    TimeWindow.WEEK: (timedelta(days=7), None),
    TimeWindow.MONTH: (timedelta(days=30), None),
    TimeWindow.QUARTER: (timedelta(days=90), None),
}


class FilterSpec(BaseModel):
    """
    User-chosen filter. The default accepts everything from the last 24h.

    Senders and departments compare case-insensitively.
    """

    model_config = ConfigDict(frozen=True)

    priorities: frozenset[PriorityTier] = frozenset()
    categories: frozenset[TriageCategory] = frozenset()
    domains: frozenset[ClinicalDomain] = frozenset()
    channels: frozenset[ItemChannel] = frozenset()
    departments: frozenset[str] = frozenset()
    senders: frozenset[str] = frozenset()
    confidence_range: tuple[float, float] = (0.0, 1.0)
    keyword: str = ""
    time_window: TimeWindow = TimeWindow.TODAY
    custom_start: datetime | None = None
    custom_end: datetime | None = None
    action_required_only: bool = False
    online_only: bool = False
    unread_only: bool = False

    @field_validator("departments", "senders")
    @classmethod
    def _casefold(cls, value: frozenset[str]) -> frozenset[str]:
        return frozenset(entry.strip().lower() for entry in value if entry.strip())

    @field_validator("keyword")
    @classmethod
    def _strip_keyword(cls, value: str) -> str:
        return value.strip()

    @field_validator("custom_start", "custom_end")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @model_validator(mode="after")
    def _check_ranges(self) -> FilterSpec:
        lo, hi = self.confidence_range
        if not 0.0 <= lo <= hi <= 1.0:
            raise ValueError(f"confidence_range must satisfy 0 <= lo <= hi <= 1, got {lo}, {hi}")
        if self.custom_start and self.custom_end and self.custom_start > self.custom_end:
            raise ValueError("custom_start must not be after custom_end")
        return self

    @property
    def has_custom_bounds(self) -> bool:
        return self.custom_start is not None or self.custom_end is not None


def window_bounds(
    spec: FilterSpec, now: datetime
) -> tuple[datetime | None, datetime | None]:
    """
    Half-open [start, end) bounds of the spec's time window.

    Custom bounds, when given, win over the preset. None means unbounded.

    Side Effects: None (pure function)
    """
    if spec.has_custom_bounds:
        return spec.custom_start, spec.custom_end
    if spec.time_window not in WINDOW_OFFSETS:
        # ALL, or CUSTOM without bounds
        return None, None
    start_offset, end_offset = WINDOW_OFFSETS[spec.time_window]
    end = now - end_offset if end_offset is not None else None
    return now - start_offset, end


def _keyword_haystack(entry: ClassifiedItem) -> str:
    item = entry.item
    parts = [item.sender, item.subject, item.content, *item.tags, *entry.classification.keywords]
    return " ".join(parts).lower()


def matches(
    entry: ClassifiedItem,
    spec: FilterSpec,
    now: datetime,
    bounds: tuple[datetime | None, datetime | None] | None = None,
) -> bool:
    """
    Whether one classified item passes every facet of the spec.

    Side Effects: None (pure function)
    """
    item = entry.item
    classification = entry.classification

    if spec.priorities and classification.tier not in spec.priorities:
        return False
    if spec.categories and classification.category not in spec.categories:
        return False
    if spec.domains and classification.domain not in spec.domains:
        return False
    if spec.channels and item.channel not in spec.channels:
        return False
    if spec.departments and (item.department or "").lower() not in spec.departments:
        return False
    if spec.senders and item.sender.lower() not in spec.senders:
        return False

    lo, hi = spec.confidence_range
    if not lo <= classification.confidence <= hi:
        return False

    if spec.action_required_only and not classification.action_required:
        return False
    if spec.online_only and not item.is_online:
        return False
    if spec.unread_only and item.is_read:
        return False

    start, end = bounds if bounds is not None else window_bounds(spec, now)
    if start is not None and item.created_at < start:
        return False
    if end is not None and item.created_at >= end:
        return False

    return not spec.keyword or spec.keyword.lower() in _keyword_haystack(entry)


def filter_items(
    items: Iterable[ClassifiedItem],
    spec: FilterSpec,
    *,
    now: datetime | None = None,
) -> list[ClassifiedItem]:
    """
    Items satisfying every facet of the spec, in input order.

    Side Effects:
        - Increments filters.applied counter

    Args:
        items: Classified items
        spec: Filter to apply
        now: Reference time for preset windows (defaults to the current time)

    Returns:
        New list; the input is not modified
    """
    entries = list(items)
    reference = now or datetime.now(UTC)
    bounds = window_bounds(spec, reference)
    kept = [entry for entry in entries if matches(entry, spec, reference, bounds)]
    counter("filters.applied")
    logger.debug("Filter kept %d of %d item(s)", len(kept), len(entries))
    return kept

"""
Insights aggregation over a set of classified items.

Feeds the dashboard header: counts per tier/category/domain, mean
confidence, unread and action-required counts, and the emergency banner.
Works over the full classified set or a filtered subset; never raises on
empty input.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from triageq.classification.types import (
    ACTIVE_CODES,
    ClinicalDomain,
    CodeStatus,
    PriorityTier,
    TriageCategory,
)
from triageq.storage.models import ClassifiedItem


@dataclass
class Insights:
    """Aggregate statistics of one item set."""

    total: int = 0
    by_tier: dict[PriorityTier, int] = field(default_factory=lambda: dict.fromkeys(PriorityTier, 0))
    by_category: dict[TriageCategory, int] = field(
        default_factory=lambda: dict.fromkeys(TriageCategory, 0)
    )
    by_domain: dict[ClinicalDomain, int] = field(
        default_factory=lambda: dict.fromkeys(ClinicalDomain, 0)
    )
    action_required_count: int = 0
    unread_count: int = 0
    mean_confidence: float = 0.0
    compliance_counts: dict[str, int] = field(default_factory=dict)
    read_rate: float = 0.0
    emergency_count: int = 0
    active_code_status: CodeStatus | None = None
    active_emergency: bool = False

    def as_dict(self) -> dict[str, object]:
        """JSON-friendly view with raw enum values as keys."""
        return {
            "total": self.total,
            "by_tier": {tier.value: count for tier, count in self.by_tier.items()},
            "by_category": {cat.value: count for cat, count in self.by_category.items()},
            "by_domain": {domain.value: count for domain, count in self.by_domain.items()},
            "action_required_count": self.action_required_count,
            "unread_count": self.unread_count,
            "mean_confidence": self.mean_confidence,
            "compliance_counts": dict(self.compliance_counts),
            "read_rate": self.read_rate,
            "emergency_count": self.emergency_count,
            "active_code_status": self.active_code_status.value if self.active_code_status else None,
            "active_emergency": self.active_emergency,
        }


# The emergency domain alone only counts on items triaged this high
EMERGENCY_TIERS = frozenset({PriorityTier.CRITICAL, PriorityTier.HIGH})


def is_emergency(entry: ClassifiedItem) -> bool:
    """
    An active code, or the emergency domain on a critical or high item.

    An all-clear cancels both.
    """
    classification = entry.classification
    if classification.code_status is CodeStatus.ALL_CLEAR:
        return False
    if classification.code_status in ACTIVE_CODES:
        return True
    return (
        classification.domain is ClinicalDomain.EMERGENCY
        and classification.tier in EMERGENCY_TIERS
    )


def aggregate(items: Iterable[ClassifiedItem]) -> Insights:
    """
    Compute Insights in a single pass.

    Side Effects: None (pure function)

    Args:
        items: Classified items (full set or a filtered view)

    Returns:
        Insights; on empty input every count is 0, mean confidence is 0.0 and
        active_emergency is False
    """
    insights = Insights()
    compliance: Counter[str] = Counter()
    confidence_sum = 0.0

    for entry in items:
        classification = entry.classification
        item = entry.item

        insights.total += 1
        insights.by_tier[classification.tier] += 1
        insights.by_category[classification.category] += 1
        insights.by_domain[classification.domain] += 1
        confidence_sum += classification.confidence

        if classification.action_required:
            insights.action_required_count += 1
        if not item.is_read:
            insights.unread_count += 1
        if item.compliance_level:
            compliance[item.compliance_level.lower()] += 1

        if insights.active_code_status is None and classification.code_status in ACTIVE_CODES:
            insights.active_code_status = classification.code_status
        if is_emergency(entry):
            insights.emergency_count += 1
            insights.active_emergency = True

    if insights.total:
        insights.mean_confidence = round(confidence_sum / insights.total, 4)
        insights.read_rate = round((insights.total - insights.unread_count) / insights.total, 4)
    insights.compliance_counts = dict(compliance)
    return insights

"""
Rule-based visual flags

A flag is a named badge the dashboard draws on an item ("Emergency",
"Time Sensitive", ...). An item carries a flag when every criterion the flag
sets holds; criteria left unset do not restrict. Hosts add their own flags by
passing ``(*DEFAULT_FLAGS, custom_flag)``.

Usage:
    for flag in flags_for(entry, now=now):
        render_badge(flag.name, alert=flag.alert)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from triageq.classification.types import ClinicalDomain, TriageCategory
from triageq.storage.models import ClassifiedItem


class FlagCriteria(BaseModel):
    """Conditions of one flag, AND-combined."""

    model_config = ConfigDict(frozen=True)

    urgencies: frozenset[int] = frozenset()
    categories: frozenset[TriageCategory] = frozenset()
    domains: frozenset[ClinicalDomain] = frozenset()
    keywords: tuple[str, ...] = ()
    min_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    max_age_minutes: int | None = Field(default=None, gt=0)

    @field_validator("urgencies")
    @classmethod
    def _urgency_range(cls, value: frozenset[int]) -> frozenset[int]:
        if any(not 1 <= urgency <= 5 for urgency in value):
            raise ValueError("flag urgencies must be between 1 and 5")
        return value

    @field_validator("keywords")
    @classmethod
    def _lower_keywords(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(keyword.strip().lower() for keyword in value if keyword.strip())


class VisualFlag(BaseModel):
    """Badge definition; ``alert`` asks the dashboard to animate it."""

    model_config = ConfigDict(frozen=True)

    flag_id: str
    name: str
    description: str = ""
    criteria: FlagCriteria = Field(default_factory=FlagCriteria)
    alert: bool = False


DEFAULT_FLAGS: tuple[VisualFlag, ...] = (
    VisualFlag(
        flag_id="emergency",
        name="Emergency",
        description="Life-threatening emergency requiring immediate action",
        criteria=FlagCriteria(
            urgencies=frozenset({5}),
            categories=frozenset({TriageCategory.CRITICAL}),
            keywords=("emergency", "code blue", "cardiac arrest", "stat", "urgent"),
            min_confidence=0.9,
        ),
        alert=True,
    ),
    VisualFlag(
        flag_id="urgent",
        name="Urgent",
        description="High priority requiring prompt attention",
        criteria=FlagCriteria(
            urgencies=frozenset({4}),
            categories=frozenset({TriageCategory.IMPORTANT}),
            keywords=("urgent", "asap", "priority", "critical"),
            min_confidence=0.8,
        ),
        alert=True,
    ),
    VisualFlag(
        flag_id="time-sensitive",
        name="Time Sensitive",
        description="Action required within the hour",
        criteria=FlagCriteria(
            keywords=("deadline", "schedule", "appointment", "surgery"),
            max_age_minutes=60,
        ),
    ),
    VisualFlag(
        flag_id="high-confidence",
        name="Verified",
        description="High confidence in the triage result",
        criteria=FlagCriteria(min_confidence=0.95),
    ),
    VisualFlag(
        flag_id="medical",
        name="Medical",
        description="Medical-related item",
        criteria=FlagCriteria(
            domains=frozenset({ClinicalDomain.MEDICAL}),
            keywords=("patient", "doctor", "surgery", "lab", "medication", "vitals"),
        ),
    ),
    VisualFlag(
        flag_id="administrative",
        name="Administrative",
        description="Administrative or system notice",
        criteria=FlagCriteria(
            categories=frozenset({TriageCategory.INFORMATIONAL}),
            keywords=("system", "admin", "policy", "announcement"),
        ),
    ),
    VisualFlag(
        flag_id="action-required",
        name="Action Required",
        description="Requires a response",
        criteria=FlagCriteria(
            keywords=("approve", "confirm", "review", "accept", "decline", "respond"),
        ),
        alert=True,
    ),
    VisualFlag(
        flag_id="patient-critical",
        name="Patient Critical",
        description="Critical patient condition",
        criteria=FlagCriteria(
            keywords=("critical condition", "deteriorating", "unstable", "intensive care"),
        ),
        alert=True,
    ),
)


def flag_matches(entry: ClassifiedItem, flag: VisualFlag, now: datetime) -> bool:
    """
    Whether one flag applies to an item.

    Keywords are a case-insensitive substring search over subject and
    content; one hit is enough. Items newer than ``now`` are never too old.

    Side Effects: None (pure function)
    """
    criteria = flag.criteria
    classification = entry.classification

    if criteria.urgencies and classification.urgency not in criteria.urgencies:
        return False
    if criteria.categories and classification.category not in criteria.categories:
        return False
    if criteria.domains and classification.domain not in criteria.domains:
        return False
    if criteria.min_confidence is not None and classification.confidence < criteria.min_confidence:
        return False
    if criteria.keywords:
        text = entry.item.text.lower()
        if not any(keyword in text for keyword in criteria.keywords):
            return False
    if criteria.max_age_minutes is not None:
        age_minutes = (now - entry.created_at).total_seconds() / 60
        if age_minutes > criteria.max_age_minutes:
            return False
    return True


def flags_for(
    entry: ClassifiedItem,
    flags: Sequence[VisualFlag] = DEFAULT_FLAGS,
    *,
    now: datetime | None = None,
) -> list[VisualFlag]:
    """Flags that apply to an item, in definition order."""
    reference = now or datetime.now(UTC)
    return [flag for flag in flags if flag_matches(entry, flag, reference)]


def flag_counts(
    items: Iterable[ClassifiedItem],
    flags: Sequence[VisualFlag] = DEFAULT_FLAGS,
    *,
    now: datetime | None = None,
) -> dict[str, int]:
    """Items per flag id; every flag is present, zero when unused."""
    reference = now or datetime.now(UTC)
    counts = dict.fromkeys((flag.flag_id for flag in flags), 0)
    for entry in items:
        for flag in flags_for(entry, flags, now=reference):
            counts[flag.flag_id] += 1
    return counts

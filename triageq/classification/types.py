"""
Module: types
Purpose: Closed vocabularies shared by every triage stage.
Dependencies: none (leaf module)

All enums extend str so JSON dumps and YAML policy files use the raw values
("critical", "code-blue", ...).
"""

from __future__ import annotations

from enum import Enum


class PriorityTier(str, Enum):
    """Discrete priority bucket, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"


class TriageCategory(str, Enum):
    """Triage category with its own threshold and keyword list."""

    CRITICAL = "critical"
    IMPORTANT = "important"
    ROUTINE = "routine"
    INFORMATIONAL = "informational"


class ClinicalDomain(str, Enum):
    """Clinical subject area of an item."""

    EMERGENCY = "emergency"
    MEDICAL = "medical"
    APPOINTMENT = "appointment"
    ADMINISTRATIVE = "administrative"
    FOLLOW_UP = "follow_up"


class CodeStatus(str, Enum):
    """Hospital code announced by an item."""

    CODE_BLUE = "code-blue"
    CODE_RED = "code-red"
    ALL_CLEAR = "all-clear"


class ItemChannel(str, Enum):
    """Where an item came from."""

    NOTIFICATION = "notification"
    EMAIL = "email"
    CHAT = "chat"
    APPOINTMENT = "appointment"


class Algorithm(str, Enum):
    """Prioritization algorithm selector."""

    STANDARD = "standard"
    AGGRESSIVE = "aggressive"
    CONSERVATIVE = "conservative"
    CUSTOM = "custom"


class UserAction(str, Enum):
    """What a user did with a surfaced item."""

    OPEN = "open"
    MARK_READ = "mark_read"
    RESPOND = "respond"
    DISMISS = "dismiss"


class TimeWindow(str, Enum):
    """Time-window selector of a filter."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    ALL = "all"
    CUSTOM = "custom"


# Fixed, monotonic tier -> urgency mapping. Urgency is never assigned any other way.
URGENCY_BY_TIER: dict[PriorityTier, int] = {
    PriorityTier.CRITICAL: 5,
    PriorityTier.HIGH: 4,
    PriorityTier.MEDIUM: 3,
    PriorityTier.LOW: 2,
    PriorityTier.INFORMATIONAL: 1,
}

TIER_BY_CATEGORY: dict[TriageCategory, PriorityTier] = {
    TriageCategory.CRITICAL: PriorityTier.CRITICAL,
    TriageCategory.IMPORTANT: PriorityTier.HIGH,
    TriageCategory.ROUTINE: PriorityTier.MEDIUM,
    TriageCategory.INFORMATIONAL: PriorityTier.LOW,
}

# Display-only response expectations
ESTIMATED_RESPONSE_BY_TIER: dict[PriorityTier, str] = {
    PriorityTier.CRITICAL: "Within 5 minutes",
    PriorityTier.HIGH: "Within 1 hour",
    PriorityTier.MEDIUM: "Within 4 hours",
    PriorityTier.LOW: "Within 1 day",
    PriorityTier.INFORMATIONAL: "No response needed",
}

LOWEST_TIER = PriorityTier.INFORMATIONAL

ACTIVE_CODES = frozenset({CodeStatus.CODE_BLUE, CodeStatus.CODE_RED})

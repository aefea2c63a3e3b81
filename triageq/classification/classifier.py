"""
Keyword triage classifier

Derives a Classification for every Item from the current Settings:
- Category confidence from keyword hits (standard/aggressive/conservative)
  or from the weighted five-factor score (custom)
- Tier = most confident category whose threshold is met
- Clinical domain and hospital code status from fixed patterns

Same inputs, same output. The only clock read happens when the caller does
not pass ``now`` to a custom-algorithm classification.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from triageq.classification.errors import ClassificationInputError
from triageq.classification.types import (
    ACTIVE_CODES,
    LOWEST_TIER,
    TIER_BY_CATEGORY,
    Algorithm,
    ClinicalDomain,
    CodeStatus,
    PriorityTier,
    TriageCategory,
)
from triageq.observability.logging import get_logger
from triageq.observability.telemetry import counter, time_block
from triageq.runtime.settings import Settings, validate_settings
from triageq.storage.models import Classification, ClassifiedItem, Item, coerce_item

logger = get_logger(__name__)

# One hit meets every default category threshold under the standard algorithm
KEYWORD_BASE_CONFIDENCE = 0.90
KEYWORD_STEP_CONFIDENCE = 0.05
KEYWORD_MAX_CONFIDENCE = 0.99

THRESHOLD_DELTA_BY_ALGORITHM: dict[Algorithm, float] = {
    Algorithm.STANDARD: 0.0,
    Algorithm.AGGRESSIVE: -0.10,
    Algorithm.CONSERVATIVE: 0.05,
    Algorithm.CUSTOM: 0.0,
}

# Shorter keywords only match exactly ("stat" must not hit "stated")
MIN_INFLECTED_LENGTH = 5

RECENCY_HORIZON_HOURS = 24.0
CONTENT_URGENCY_SATURATION = 2
DEFAULT_INTERACTION_RATE = 0.5

# Most severe first; used to break confidence ties
SEVERITY_RANK: dict[TriageCategory, int] = {
    category: rank for rank, category in enumerate(TriageCategory)
}

# Checked in order, first match wins; follow_up is the default
DOMAIN_PATTERNS: tuple[tuple[ClinicalDomain, tuple[str, ...]], ...] = (
    (
        ClinicalDomain.EMERGENCY,
        (
            "emergency",
            "code blue",
            "code red",
            "cardiac arrest",
            "heart attack",
            "stroke",
            "chest pain",
            "trauma",
            "respiratory distress",
        ),
    ),
    (
        ClinicalDomain.MEDICAL,
        (
            "surgery",
            "lab",
            "lab results",
            "blood work",
            "prescription",
            "diagnosis",
            "medication",
            "vitals",
            "scan",
            "patient",
        ),
    ),
    (
        ClinicalDomain.APPOINTMENT,
        ("appointment", "schedule", "reschedule", "booking", "booked", "calendar", "slot"),
    ),
    (
        ClinicalDomain.ADMINISTRATIVE,
        (
            "invoice",
            "billing",
            "admin",
            "policy",
            "form",
            "document",
            "training",
            "compliance",
            "insurance",
            "maintenance",
        ),
    ),
)

ALL_CLEAR_KEYWORDS: tuple[str, ...] = ("all clear",)
CODE_KEYWORDS: tuple[tuple[CodeStatus, str], ...] = (
    (CodeStatus.CODE_BLUE, "code blue"),
    (CodeStatus.CODE_RED, "code red"),
)


@lru_cache(maxsize=1024)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    """
    Word-boundary pattern for one keyword.

    Multi-word keywords accept spaces or hyphens between words ("code blue"
    matches "code-blue"). A trailing s/es/d/ed inflection is accepted when the
    last word has at least MIN_INFLECTED_LENGTH letters.
    """
    words = [part for part in re.split(r"[\s\-]+", keyword.strip().lower()) if part]
    body = r"[\s\-]+".join(re.escape(word) for word in words)
    suffix = "(?:s|es|d|ed)?" if words and len(words[-1]) >= MIN_INFLECTED_LENGTH else ""
    return re.compile(rf"(?<!\w){body}{suffix}(?!\w)")


def find_keywords(text: str, keywords: Iterable[str]) -> tuple[str, ...]:
    """
    Distinct keywords found in text, in keyword-list order.

    Side Effects: None (pure function)
    """
    lowered = text.lower()
    found: list[str] = []
    for keyword in keywords:
        if not keyword.strip() or keyword in found:
            continue
        if _keyword_pattern(keyword).search(lowered):
            found.append(keyword)
    return tuple(found)


def keyword_confidence(hits: int) -> float:
    """0 hits -> 0.0, otherwise 0.90 plus 0.05 per extra hit, capped at 0.99."""
    if hits <= 0:
        return 0.0
    confidence = KEYWORD_BASE_CONFIDENCE + KEYWORD_STEP_CONFIDENCE * (hits - 1)
    return round(min(KEYWORD_MAX_CONFIDENCE, confidence), 4)


def effective_threshold(settings: Settings, category: TriageCategory) -> float:
    """Configured threshold shifted by the algorithm, clamped to [0, 1]."""
    base = settings.rule_for(category).threshold
    adjusted = base + THRESHOLD_DELTA_BY_ALGORITHM[settings.algorithm]
    return round(min(1.0, max(0.0, adjusted)), 4)


def detect_domain(text: str) -> ClinicalDomain:
    """Clinical domain of a text; emergency patterns are checked first."""
    for domain, patterns in DOMAIN_PATTERNS:
        if find_keywords(text, patterns):
            return domain
    return ClinicalDomain.FOLLOW_UP


def detect_code_status(text: str, tags: Sequence[str] = ()) -> CodeStatus | None:
    """
    Hospital code announced by the text or tags.

    An all-clear outranks an active code so a resolved code-blue thread does
    not keep the emergency banner up.
    """
    haystack = " ".join([text, *tags])
    if find_keywords(haystack, ALL_CLEAR_KEYWORDS):
        return CodeStatus.ALL_CLEAR
    for status, keyword in CODE_KEYWORDS:
        if find_keywords(haystack, (keyword,)):
            return status
    return None


def custom_factors(
    item: Item, settings: Settings, hits: Sequence[str], now: datetime
) -> dict[str, float]:
    """
    Normalized [0, 1] factors of the custom algorithm, keyed like CustomWeights.

    Side Effects: None (pure function)
    """
    age_hours = (now - item.created_at).total_seconds() / 3600
    if age_hours <= 0:
        recency = 1.0
    else:
        recency = max(0.0, 1.0 - age_hours / RECENCY_HORIZON_HOURS)

    preferred = {sender.lower() for sender in settings.preferred_senders}
    sender_importance = 1.0 if item.sender and item.sender.lower() in preferred else 0.0

    content_urgency = min(1.0, len(hits) / CONTENT_URGENCY_SATURATION)

    user_history = settings.interaction_rates.get(item.interaction_key, DEFAULT_INTERACTION_RATE)

    departments = {department.lower() for department in settings.priority_departments}
    department_priority = (
        1.0 if item.department and item.department.lower() in departments else 0.0
    )

    return {
        "time_recency": recency,
        "sender_importance": sender_importance,
        "content_urgency": content_urgency,
        "user_history": user_history,
        "department_priority": department_priority,
    }


def _custom_confidence(
    item: Item, settings: Settings, hits: Sequence[str], now: datetime
) -> float:
    weights = settings.custom_weights.model_dump()
    factors = custom_factors(item, settings, hits, now)
    score = sum(weights[name] * value for name, value in factors.items())
    return round(min(1.0, max(0.0, score)), 4)


def _dedupe(*groups: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for keyword in group:
            seen.setdefault(keyword, None)
    return tuple(seen)


def classify(
    item: Item | Mapping[str, Any],
    settings: Settings,
    *,
    now: datetime | None = None,
) -> Classification:
    """
    Classify a single item.

    Side Effects:
        - Increments classification.* counters

    Args:
        item: Item or raw mapping from the data source
        settings: Settings snapshot to classify against
        now: Reference time for the custom algorithm's recency factor

    Returns:
        Classification whose urgency follows from its tier

    Raises:
        ClassificationInputError: If a raw mapping misses identifier or timestamp
        ConfigurationError: If the custom algorithm's weights do not sum to 1.0
    """
    item = coerce_item(item)
    text = item.text

    if not text:
        counter("classification.empty")
        return Classification.for_tier(
            LOWEST_TIER,
            TriageCategory.INFORMATIONAL,
            0.0,
            decider="empty",
            reason="No text to classify",
        )

    custom = settings.algorithm is Algorithm.CUSTOM
    if custom:
        validate_settings(settings)
        reference = now or datetime.now(UTC)

    hits_by_category: dict[TriageCategory, tuple[str, ...]] = {}
    scores: dict[TriageCategory, float] = {}
    for category, rule in settings.categories.items():
        if not rule.enabled:
            continue
        hits = find_keywords(text, rule.keywords)
        if not hits:
            continue
        hits_by_category[category] = hits
        if custom:
            scores[category] = _custom_confidence(item, settings, hits, reference)
        else:
            scores[category] = keyword_confidence(len(hits))

    met = [
        category
        for category, score in scores.items()
        if score >= effective_threshold(settings, category)
    ]

    action_hits = find_keywords(text, settings.action_keywords)
    matched_keywords = _dedupe(
        *(hits_by_category[category] for category in sorted(hits_by_category, key=SEVERITY_RANK.get)),
        action_hits,
    )
    domain = detect_domain(text)
    code_status = detect_code_status(text, item.tags)

    if not met:
        counter("classification.fallback")
        return Classification.for_tier(
            LOWEST_TIER,
            TriageCategory.INFORMATIONAL,
            max(scores.values(), default=0.0),
            action_required=False,
            domain=domain,
            keywords=matched_keywords,
            code_status=code_status,
            decider="fallback",
            reason="No category threshold met",
        )

    category = max(met, key=lambda c: (scores[c], -SEVERITY_RANK[c]))
    tier = TIER_BY_CATEGORY[category]
    action_required = tier is PriorityTier.CRITICAL or bool(action_hits)

    counter(f"classification.tier.{tier.value}")
    return Classification.for_tier(
        tier,
        category,
        scores[category],
        action_required=action_required,
        domain=domain,
        keywords=matched_keywords,
        code_status=code_status,
        decider="custom" if custom else "keywords",
        reason=f"{category.value}: {', '.join(hits_by_category[category])}",
    )


def classify_all(
    items: Iterable[Item | Mapping[str, Any]],
    settings: Settings,
    *,
    now: datetime | None = None,
) -> list[ClassifiedItem]:
    """
    Classify every item against one settings snapshot.

    Side Effects:
        - Records classification.batch latency and counters

    Raises:
        ClassificationInputError: On a malformed record or a duplicate identifier
        ConfigurationError: If the settings are invalid
    """
    validate_settings(settings)
    reference = now or datetime.now(UTC)

    classified: list[ClassifiedItem] = []
    seen_ids: set[str] = set()
    with time_block("classification.batch"):
        for index, raw in enumerate(items):
            item = coerce_item(raw, index=index)
            if item.item_id in seen_ids:
                raise ClassificationInputError(
                    f"duplicate item id {item.item_id!r}", item_id=item.item_id, index=index
                )
            seen_ids.add(item.item_id)
            classification = classify(item, settings, now=reference)
            classified.append(ClassifiedItem(item=item, classification=classification))

    counter("classification.items", len(classified))
    active = sum(1 for entry in classified if entry.classification.code_status in ACTIVE_CODES)
    if active:
        logger.info("Classified %d item(s), %d with an active code", len(classified), active)
    else:
        logger.debug("Classified %d item(s)", len(classified))
    return classified

"""
Tests for the keyword triage classifier

Covers keyword matching, confidence, algorithm threshold shifts, the custom
five-factor score, fallback and empty-text handling.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from triageq.classification.classifier import (
    classify,
    classify_all,
    custom_factors,
    detect_code_status,
    detect_domain,
    effective_threshold,
    find_keywords,
    keyword_confidence,
)
from triageq.classification.errors import ClassificationInputError, ConfigurationError
from triageq.classification.ranking import rank
from triageq.classification.types import (
    URGENCY_BY_TIER,
    Algorithm,
    ClinicalDomain,
    CodeStatus,
    PriorityTier,
    TriageCategory,
)
from triageq.observability.telemetry import get_counter
from triageq.storage.models import Item


def _with(settings, **fields):
    return settings.model_copy(update=fields)


class TestKeywordMatching:
    """Word-boundary keyword search"""

    def test_case_insensitive(self):
        assert find_keywords("STAT page from ER", ["stat"]) == ("stat",)

    def test_word_boundary(self):
        """'stat' must not match inside 'status'"""
        assert find_keywords("Status update", ["stat"]) == ()

    def test_multi_word_tolerates_hyphen(self):
        assert find_keywords("CODE-BLUE called", ["code blue"]) == ("code blue",)

    def test_inflection_suffix(self):
        found = find_keywords("3 appointments rescheduled", ["appointment", "reschedule"])
        assert found == ("appointment", "reschedule")

    def test_distinct_hits_only(self):
        assert find_keywords("urgent urgent urgent", ["urgent", "urgent"]) == ("urgent",)

    @pytest.mark.parametrize(
        ("text", "keyword"),
        [
            ("Patient stated the pain eased", "stat"),
            ("Family states the issue is resolved", "stat"),
            ("A clot formed overnight", "form"),
            ("Two new infos on the board", "info"),
        ],
    )
    def test_short_keywords_do_not_inflect(self, text, keyword):
        assert find_keywords(text, [keyword]) == ()

    def test_short_keyword_still_matches_exactly(self):
        assert find_keywords("Page cardiology, STAT.", ["stat"]) == ("stat",)

    def test_stated_does_not_make_item_critical(self, make_item, settings):
        result = classify(make_item(content="Patient stated the pain eased"), settings)
        assert result.tier is not PriorityTier.CRITICAL
        assert "stat" not in result.keywords


class TestConfidence:
    @pytest.mark.parametrize(
        ("hits", "expected"),
        [(0, 0.0), (1, 0.90), (2, 0.95), (3, 0.99), (10, 0.99)],
    )
    def test_keyword_confidence(self, hits, expected):
        assert keyword_confidence(hits) == pytest.approx(expected)

    def test_aggressive_lowers_threshold(self, settings):
        aggressive = _with(settings, algorithm=Algorithm.AGGRESSIVE)
        assert effective_threshold(aggressive, TriageCategory.CRITICAL) == pytest.approx(0.8)

    def test_conservative_raises_threshold(self, settings):
        conservative = _with(settings, algorithm=Algorithm.CONSERVATIVE)
        assert effective_threshold(conservative, TriageCategory.IMPORTANT) == pytest.approx(0.85)

    def test_threshold_clamped(self, settings):
        categories = dict(settings.categories)
        categories[TriageCategory.CRITICAL] = categories[TriageCategory.CRITICAL].model_copy(
            update={"threshold": 0.98}
        )
        conservative = _with(settings, algorithm=Algorithm.CONSERVATIVE, categories=categories)
        assert effective_threshold(conservative, TriageCategory.CRITICAL) == 1.0


class TestClassify:
    """Standard algorithm end to end"""

    def test_code_blue_cardiac_arrest(self, make_item, settings):
        item = make_item(content="Code blue on ward 4, patient in cardiac arrest")
        result = classify(item, settings)

        assert result.category is TriageCategory.CRITICAL
        assert result.domain is ClinicalDomain.EMERGENCY
        assert result.tier is PriorityTier.CRITICAL
        assert result.urgency == 5
        assert result.action_required is True
        assert result.code_status is CodeStatus.CODE_BLUE
        assert result.confidence == pytest.approx(0.95)

    def test_single_important_keyword_is_high(self, make_item, settings):
        result = classify(make_item(content="Surgery moved to OR-3"), settings)
        assert result.tier is PriorityTier.HIGH
        assert result.urgency == 4
        assert result.action_required is False

    @pytest.mark.parametrize(
        ("content", "tier"),
        [
            ("Emergency in ER bay 3", PriorityTier.CRITICAL),
            ("Urgent: call the front desk", PriorityTier.HIGH),
            ("Your visit is confirmed", PriorityTier.MEDIUM),
            ("FYI: cafeteria closes early", PriorityTier.LOW),
        ],
    )
    def test_single_keyword_meets_its_tier(self, make_item, settings, content, tier):
        result = classify(make_item(content=content), settings)
        assert result.tier is tier
        assert result.urgency == URGENCY_BY_TIER[tier]
        assert result.decider == "keywords"

    def test_single_critical_keyword_outranks_routine(self, make_item, settings, now):
        items = classify_all(
            [
                make_item("appt", minutes_ago=1, content="Appointment booked"),
                make_item("er", minutes_ago=10, content="Emergency in ER bay 3"),
            ],
            settings,
            now=now,
        )
        assert [entry.item_id for entry in rank(items)] == ["er", "appt"]
        assert items[1].classification.action_required is True

    def test_action_keyword_sets_action_required(self, make_item, settings):
        result = classify(
            make_item(content="Routine refill request, please confirm by Friday"), settings
        )
        assert result.tier is PriorityTier.MEDIUM
        assert result.action_required is True
        assert "please confirm" in result.keywords

    def test_tie_goes_to_more_severe_category(self, make_item, settings):
        """'surgery' (important) and 'rescheduled' (routine) both score 0.90"""
        result = classify(make_item(content="Surgery rescheduled"), settings)
        assert result.category is TriageCategory.IMPORTANT

    def test_disabled_category_never_matches(self, make_item, settings):
        categories = dict(settings.categories)
        categories[TriageCategory.CRITICAL] = categories[TriageCategory.CRITICAL].model_copy(
            update={"enabled": False}
        )
        result = classify(
            make_item(content="Emergency: cardiac arrest"), _with(settings, categories=categories)
        )
        assert result.category is not TriageCategory.CRITICAL

    def test_threshold_not_met_falls_back(self, make_item, settings):
        """One critical keyword scores 0.90, below the conservative 0.95"""
        conservative = _with(settings, algorithm=Algorithm.CONSERVATIVE)
        result = classify(make_item(content="Severe weather expected tonight"), conservative)

        assert result.tier is PriorityTier.INFORMATIONAL
        assert result.category is TriageCategory.INFORMATIONAL
        assert result.urgency == 1
        assert result.action_required is False
        assert result.confidence == pytest.approx(0.90)
        assert result.decider == "fallback"

    def test_fallback_ignores_action_keywords(self, make_item, settings):
        conservative = _with(settings, algorithm=Algorithm.CONSERVATIVE)
        result = classify(make_item(content="Severe weather, please respond"), conservative)
        assert result.tier is PriorityTier.INFORMATIONAL
        assert result.action_required is False

    def test_aggressive_promotes_single_critical_keyword(self, make_item, settings):
        categories = dict(settings.categories)
        categories[TriageCategory.CRITICAL] = categories[TriageCategory.CRITICAL].model_copy(
            update={"threshold": 0.95}
        )
        strict = _with(settings, categories=categories)
        item = make_item(content="Severe weather expected tonight")

        assert classify(item, strict).tier is PriorityTier.INFORMATIONAL
        aggressive = _with(strict, algorithm=Algorithm.AGGRESSIVE)
        assert classify(item, aggressive).tier is PriorityTier.CRITICAL

    def test_conservative_demotes_borderline_match(self, make_item, settings):
        """0.90 meets a 0.88 threshold but not the conservative 0.93"""
        categories = dict(settings.categories)
        categories[TriageCategory.IMPORTANT] = categories[TriageCategory.IMPORTANT].model_copy(
            update={"threshold": 0.88}
        )
        item = make_item(content="Surgery moved to OR-3")

        standard = _with(settings, categories=categories)
        conservative = _with(standard, algorithm=Algorithm.CONSERVATIVE)

        assert classify(item, standard).tier is PriorityTier.HIGH
        assert classify(item, conservative).tier is PriorityTier.INFORMATIONAL

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_text_is_lowest_tier(self, make_item, settings, content):
        result = classify(make_item(subject=None, content=content), settings)
        assert result.tier is PriorityTier.INFORMATIONAL
        assert result.confidence == 0.0
        assert result.decider == "empty"
        assert get_counter("classification.empty") == 1

    def test_subject_is_classified_too(self, make_item, settings):
        result = classify(make_item(subject="STAT: sepsis alert", content="see chart"), settings)
        assert result.tier is PriorityTier.CRITICAL

    def test_deterministic(self, raw_items, settings, now):
        first = [classify(raw, settings, now=now) for raw in raw_items]
        second = [classify(raw, settings, now=now) for raw in raw_items]
        assert first == second

    def test_accepts_item_instances(self, make_item, settings):
        item = Item.model_validate(make_item(content="Code red in the east wing"))
        assert classify(item, settings).code_status is CodeStatus.CODE_RED


class TestDomainAndCodes:
    def test_emergency_checked_first(self):
        assert detect_domain("emergency surgery scheduled") is ClinicalDomain.EMERGENCY

    def test_medical(self):
        assert detect_domain("lab results for patient 12") is ClinicalDomain.MEDICAL

    def test_default_follow_up(self):
        assert detect_domain("lunch order") is ClinicalDomain.FOLLOW_UP

    def test_all_clear_wins(self):
        assert detect_code_status("Code blue resolved, all clear") is CodeStatus.ALL_CLEAR

    def test_code_from_tags(self):
        assert detect_code_status("see thread", ["code-red"]) is CodeStatus.CODE_RED

    def test_no_code(self):
        assert detect_code_status("routine check") is None


class TestCustomAlgorithm:
    """Weighted five-factor score"""

    def test_factors(self, make_item, settings, now):
        custom = _with(
            settings,
            algorithm=Algorithm.CUSTOM,
            preferred_senders=("dr. house",),
        )
        item = Item.model_validate(
            make_item(
                minutes_ago=12 * 60,
                sender="Dr. House",
                department="ICU",
                message_type="medical",
                content="urgent",
            )
        )
        factors = custom_factors(item, custom, ("urgent",), now)

        assert factors["time_recency"] == pytest.approx(0.5)
        assert factors["sender_importance"] == 1.0
        assert factors["content_urgency"] == pytest.approx(0.5)
        assert factors["user_history"] == pytest.approx(0.8)
        assert factors["department_priority"] == 1.0

    def test_recency_floor_after_a_day(self, make_item, settings, now):
        item = Item.model_validate(make_item(minutes_ago=48 * 60, content="urgent"))
        assert custom_factors(item, settings, ("urgent",), now)["time_recency"] == 0.0

    def test_unknown_message_type_uses_default_rate(self, make_item, settings, now):
        item = Item.model_validate(make_item(content="urgent", channel="chat"))
        assert custom_factors(item, settings, ("urgent",), now)["user_history"] == 0.5

    def test_custom_weighted_score(self, make_item, settings, now):
        """
        Fresh item, unknown sender, two important hits, urgent type, ICU:
        0.3*1.0 + 0.2*0 + 0.3*1.0 + 0.1*0.9 + 0.1*1.0 = 0.79
        """
        custom = _with(settings, algorithm=Algorithm.CUSTOM)
        item = make_item(
            minutes_ago=0,
            content="Urgent medication request",
            message_type="urgent",
            department="icu",
        )
        result = classify(item, custom, now=now)

        assert result.decider == "fallback"  # 0.79 is below the 0.80 important threshold
        assert result.confidence == pytest.approx(0.79)

    def test_custom_passing_threshold(self, make_item, settings, now):
        custom = _with(
            settings, algorithm=Algorithm.CUSTOM, preferred_senders=("Nurse Station",)
        )
        item = make_item(minutes_ago=0, content="Urgent medication request", department="icu")
        result = classify(item, custom, now=now)

        assert result.tier is PriorityTier.HIGH
        assert result.decider == "custom"

    def test_bad_weights_raise(self, make_item, settings, now):
        weights = settings.custom_weights.model_copy(update={"time_recency": 0.2})
        custom = _with(settings, algorithm=Algorithm.CUSTOM, custom_weights=weights)
        with pytest.raises(ConfigurationError):
            classify(make_item(content="urgent"), custom, now=now)

    def test_bad_weights_ignored_for_empty_text(self, make_item, settings, now):
        weights = settings.custom_weights.model_copy(update={"time_recency": 0.2})
        custom = _with(settings, algorithm=Algorithm.CUSTOM, custom_weights=weights)
        assert classify(make_item(content=""), custom, now=now).confidence == 0.0


class TestClassifyAll:
    def test_expected_tiers(self, classified_items):
        tiers = {entry.item_id: entry.tier for entry in classified_items}
        assert tiers == {
            "n1": PriorityTier.CRITICAL,
            "n2": PriorityTier.HIGH,
            "n3": PriorityTier.CRITICAL,
            "n4": PriorityTier.MEDIUM,
            "n5": PriorityTier.LOW,
            "n6": PriorityTier.INFORMATIONAL,
        }

    def test_tier_urgency_invariant(self, classified_items):
        for entry in classified_items:
            assert entry.urgency == URGENCY_BY_TIER[entry.tier]

    def test_missing_timestamp_raises(self, settings, now):
        with pytest.raises(ClassificationInputError) as exc_info:
            classify_all([{"id": "x1", "content": "hello"}], settings, now=now)
        assert exc_info.value.item_id == "x1"
        assert exc_info.value.index == 0

    def test_missing_id_raises(self, make_item, settings, now):
        raw = make_item(content="hello")
        del raw["id"]
        with pytest.raises(ClassificationInputError):
            classify_all([raw], settings, now=now)

    def test_duplicate_id_raises(self, make_item, settings, now):
        with pytest.raises(ClassificationInputError, match="duplicate"):
            classify_all([make_item("a"), make_item("a")], settings, now=now)

    def test_counts_items(self, raw_items, settings, now):
        classify_all(raw_items, settings, now=now)
        assert get_counter("classification.items") == 6

    def test_invalid_weights_raise_for_standard_batches(self, raw_items, settings, now):
        weights = settings.custom_weights.model_copy(update={"user_history": 0.0})
        with pytest.raises(ConfigurationError):
            classify_all(raw_items, _with(settings, custom_weights=weights), now=now)

    def test_empty_batch(self, settings, now):
        assert classify_all([], settings, now=now) == []

    def test_items_keep_order(self, classified_items):
        assert [entry.item_id for entry in classified_items] == ["n1", "n2", "n3", "n4", "n5", "n6"]

    def test_recency_uses_reference_time(self, make_item, settings, now):
        custom = _with(settings, algorithm=Algorithm.CUSTOM)
        raw = make_item(minutes_ago=0, content="urgent")
        early = classify_all([raw], custom, now=now)[0].classification.confidence
        late = classify_all([raw], custom, now=now + timedelta(hours=12))[0].classification.confidence
        assert late < early

"""
Suggested actions and short summaries for classified items.

Both are display aids: they never change a Classification and the
presentation layer decides what an action does when clicked.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from triageq.classification.types import ClinicalDomain, ItemChannel, PriorityTier
from triageq.storage.models import Classification, Item

MAX_SUGGESTED_ACTIONS = 3
SUMMARY_MIN_LENGTH = 100
SUMMARY_KEY_WORDS: tuple[str, ...] = (
    "patient",
    "doctor",
    "appointment",
    "surgery",
    "emergency",
    "completed",
    "report",
)


class SuggestedAction(BaseModel):
    """One button offered next to an item."""

    model_config = ConfigDict(frozen=True)

    label: str
    action: str
    style: str = "secondary"  # primary, secondary, success, danger


MARK_READ = SuggestedAction(label="Mark as Read", action="mark-read", style="secondary")
VIEW_APPOINTMENT = SuggestedAction(label="View Details", action="view-appointment", style="primary")
CONFIRM_APPOINTMENT = SuggestedAction(
    label="Confirm", action="confirm-appointment", style="success"
)
VIEW_PATIENT = SuggestedAction(label="View Patient", action="view-patient", style="primary")
RESPOND_NOW = SuggestedAction(label="Respond Now", action="emergency-response", style="danger")
REVIEW_REPORT = SuggestedAction(label="Review", action="review-report", style="primary")


def suggest_actions(item: Item, classification: Classification) -> list[SuggestedAction]:
    """
    Up to three actions for an item, "Mark as Read" always first.

    Side Effects: None (pure function)
    """
    text = item.text.lower()
    actions = [MARK_READ]

    is_appointment = (
        item.channel is ItemChannel.APPOINTMENT
        or item.message_type == "appointment"
        or "appointment" in text
    )
    if is_appointment:
        actions.append(VIEW_APPOINTMENT)
        if "booked" in text or "scheduled" in text:
            actions.append(CONFIRM_APPOINTMENT)

    if item.message_type == "medical" or "patient" in text:
        actions.append(VIEW_PATIENT)

    is_emergency = (
        item.message_type == "urgent"
        or classification.domain is ClinicalDomain.EMERGENCY
        or classification.tier is PriorityTier.CRITICAL
    )
    if is_emergency:
        actions.append(RESPOND_NOW)

    if "completed" in text or "report" in text:
        actions.append(REVIEW_REPORT)

    return actions[:MAX_SUGGESTED_ACTIONS]


def summarize(content: str) -> str | None:
    """
    One-sentence summary of long content.

    Content of 100 characters or less, or with a single sentence, has no
    summary. Otherwise the first sentence mentioning a clinical key word is
    used, falling back to the first sentence.
    """
    if len(content) <= SUMMARY_MIN_LENGTH:
        return None
    sentences = [sentence.strip() for sentence in content.split(".") if sentence.strip()]
    if len(sentences) <= 1:
        return None
    for sentence in sentences:
        lowered = sentence.lower()
        if any(word in lowered for word in SUMMARY_KEY_WORDS):
            return f"{sentence}..."
    return f"{sentences[0]}..."

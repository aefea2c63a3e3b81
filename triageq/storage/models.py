"""
Domain models (Pydantic v2) for the TriageQ core.

One Item / Classification / ClassifiedItem record is shared by every screen
(notification dropdown, inbox, chat list, scheduler). Patient-facing text
(sender, subject, content) is redacted in repr so records can be logged.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from hashlib import sha256
from typing import Any, ClassVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from triageq.classification.errors import ClassificationInputError
from triageq.classification.types import (
    ESTIMATED_RESPONSE_BY_TIER,
    URGENCY_BY_TIER,
    ClinicalDomain,
    CodeStatus,
    ItemChannel,
    PriorityTier,
    TriageCategory,
)


def _hash_value(value: str) -> str:
    digest = sha256(value.encode("utf-8")).hexdigest()
    return f"hash:{digest[:12]}"


class RedactedModel(BaseModel):
    """Base model that redacts patient-facing text in repr/dumps."""

    model_config = ConfigDict(frozen=True)
    _redact_fields: ClassVar[frozenset[str]] = frozenset({"sender", "subject", "content"})

    def _redacted_dump(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        for field in self._redact_fields:
            if field in data and isinstance(data[field], str) and data[field]:
                data[field] = _hash_value(data[field])
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._redacted_dump()})"

    def redacted(self) -> dict[str, Any]:
        """Public helper for telemetry-safe dumps."""
        return self._redacted_dump()


class Item(RedactedModel):
    """A notification, email, chat message or appointment slot.

    Accepts the dashboard's loose field names (``id``, ``timestamp``,
    ``title``, ``message``, ``from``) as aliases.
    """

    item_id: str = Field(validation_alias=AliasChoices("item_id", "id"))
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "timestamp"))
    channel: ItemChannel = ItemChannel.NOTIFICATION
    sender: str = Field(default="", validation_alias=AliasChoices("sender", "from"))
    subject: str = Field(default="", validation_alias=AliasChoices("subject", "title"))
    content: str = Field(default="", validation_alias=AliasChoices("content", "message", "preview"))
    is_read: bool = False
    attachments: int = Field(default=0, ge=0)
    department: str | None = None
    compliance_level: str | None = None
    tags: tuple[str, ...] = ()
    message_type: str | None = None
    is_online: bool = False

    @field_validator("item_id")
    @classmethod
    def _id_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("item_id must not be empty")
        return value

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_validator("sender", "subject", "content", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def text(self) -> str:
        """Subject and content, the text the classifier reads."""
        return f"{self.subject} {self.content}".strip()

    @property
    def interaction_key(self) -> str:
        """Key of the per-type interaction statistics: message type, else channel."""
        return self.message_type or self.channel.value


class Classification(BaseModel):
    """Triage result attached 1:1 to an Item."""

    model_config = ConfigDict(frozen=True)

    category: TriageCategory
    tier: PriorityTier
    urgency: int = Field(ge=1, le=5)
    confidence: float = Field(ge=0.0, le=1.0)
    action_required: bool = False
    estimated_response: str = ""
    domain: ClinicalDomain = ClinicalDomain.FOLLOW_UP
    keywords: tuple[str, ...] = ()
    code_status: CodeStatus | None = None
    decider: str = "keywords"  # keywords, custom, fallback, empty
    reason: str = ""

    @model_validator(mode="after")
    def _urgency_matches_tier(self) -> Classification:
        expected = URGENCY_BY_TIER[self.tier]
        if self.urgency != expected:
            raise ValueError(
                f"urgency {self.urgency} does not match tier '{self.tier.value}' (expected {expected})"
            )
        return self

    @classmethod
    def for_tier(
        cls,
        tier: PriorityTier,
        category: TriageCategory,
        confidence: float,
        **fields: Any,
    ) -> Classification:
        """Build a classification whose urgency and response label follow from the tier."""
        return cls(
            category=category,
            tier=tier,
            urgency=URGENCY_BY_TIER[tier],
            confidence=confidence,
            estimated_response=ESTIMATED_RESPONSE_BY_TIER[tier],
            **fields,
        )


class ClassifiedItem(BaseModel):
    """An Item together with its Classification."""

    model_config = ConfigDict(frozen=True)

    item: Item
    classification: Classification

    @property
    def item_id(self) -> str:
        return self.item.item_id

    @property
    def urgency(self) -> int:
        return self.classification.urgency

    @property
    def tier(self) -> PriorityTier:
        return self.classification.tier

    @property
    def created_at(self) -> datetime:
        return self.item.created_at

    def with_read(self, is_read: bool = True) -> ClassifiedItem:
        """Copy with the read flag changed, the only mutation an item allows."""
        if self.item.is_read == is_read:
            return self
        return self.model_copy(update={"item": self.item.model_copy(update={"is_read": is_read})})


def coerce_item(raw: Item | Mapping[str, Any], index: int | None = None) -> Item:
    """
    Turn a raw data-source record into an Item.

    Raises:
        ClassificationInputError: If the record is not a mapping or misses its
            identifier or timestamp
    """
    if isinstance(raw, Item):
        return raw
    if not isinstance(raw, Mapping):
        raise ClassificationInputError(
            f"raw item must be a mapping, got {type(raw).__name__}", index=index
        )

    item_id = raw.get("item_id") or raw.get("id")
    try:
        return Item.model_validate(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'item'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ClassificationInputError(
            f"malformed item {item_id!r}: {problems}",
            item_id=str(item_id) if item_id else None,
            index=index,
        ) from exc

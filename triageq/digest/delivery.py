"""
Quiet hours and personalized delivery timing.

Decides when the dashboard should surface an item: right away, or at the
next hour the user is usually active and outside quiet hours. Critical items
bypass both. Hours are read in the timezone of the ``now`` passed in, so
callers pass a local time when quiet hours are local.

Also reports the per-type engagement (interaction rate from Settings) and a
frequency score (1 - dismissal rate) the presentation layer uses to decide
how loudly to notify.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator

from triageq.classification.classifier import DEFAULT_INTERACTION_RATE
from triageq.classification.types import PriorityTier
from triageq.runtime.settings import Settings
from triageq.storage.models import ClassifiedItem

DEFAULT_DISMISSAL_RATE = 0.5
# How far ahead to look for an open hour before giving up and delivering now
SEARCH_HORIZON_HOURS = 48


class QuietHours(BaseModel):
    """Daily [start, end) window; may wrap past midnight (22:00 -> 08:00)."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    start: time = time(22, 0)
    end: time = time(8, 0)

    def contains(self, moment: time) -> bool:
        if not self.enabled or self.start == self.end:
            return False
        moment = moment.replace(tzinfo=None)
        if self.start < self.end:
            return self.start <= moment < self.end
        return moment >= self.start or moment < self.end


class DeliveryPreferences(BaseModel):
    """Per-user delivery habits."""

    model_config = ConfigDict(frozen=True)

    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    # Empty means every hour is active
    active_hours: frozenset[int] = frozenset({8, 9, 10, 11, 14, 15, 16, 17})
    dismissal_rates: dict[str, float] = Field(
        default_factory=lambda: {
            "urgent": 0.1,
            "medical": 0.2,
            "appointment": 0.3,
            "system": 0.7,
            "reminder": 0.5,
        }
    )
    bypass_tiers: frozenset[PriorityTier] = frozenset({PriorityTier.CRITICAL})

    @field_validator("active_hours")
    @classmethod
    def _hours_in_day(cls, value: frozenset[int]) -> frozenset[int]:
        if any(not 0 <= hour <= 23 for hour in value):
            raise ValueError("active hours must be between 0 and 23")
        return value

    @field_validator("dismissal_rates")
    @classmethod
    def _rates_in_range(cls, value: dict[str, float]) -> dict[str, float]:
        if any(not 0.0 <= rate <= 1.0 for rate in value.values()):
            raise ValueError("dismissal rates must be within [0, 1]")
        return value

    def is_open(self, moment: datetime) -> bool:
        """Active hour and outside quiet hours."""
        if self.active_hours and moment.hour not in self.active_hours:
            return False
        return not self.quiet_hours.contains(moment.time())


@dataclass
class DeliveryPlan:
    """When and how to surface one item."""

    item_id: str
    deliver_at: datetime
    deferred: bool
    engagement: float
    frequency_score: float
    reason: str


def next_open_time(preferences: DeliveryPreferences, now: datetime) -> datetime | None:
    """
    ``now`` when it is open, else the first open top of the hour.

    Returns None when nothing opens within SEARCH_HORIZON_HOURS.

    Side Effects: None (pure function)
    """
    if preferences.is_open(now):
        return now
    top_of_hour = now.replace(minute=0, second=0, microsecond=0)
    for offset in range(1, SEARCH_HORIZON_HOURS + 1):
        candidate = top_of_hour + timedelta(hours=offset)
        if preferences.is_open(candidate):
            return candidate
    return None


def plan_delivery(
    entry: ClassifiedItem,
    settings: Settings,
    preferences: DeliveryPreferences | None = None,
    *,
    now: datetime,
) -> DeliveryPlan:
    """
    Delivery time for one classified item.

    Side Effects: None (pure function)
    """
    preferences = preferences or DeliveryPreferences()
    key = entry.item.interaction_key
    engagement = settings.interaction_rates.get(key, DEFAULT_INTERACTION_RATE)
    frequency_score = round(1.0 - preferences.dismissal_rates.get(key, DEFAULT_DISMISSAL_RATE), 4)

    def _plan(deliver_at: datetime, reason: str) -> DeliveryPlan:
        return DeliveryPlan(
            item_id=entry.item_id,
            deliver_at=deliver_at,
            deferred=deliver_at > now,
            engagement=engagement,
            frequency_score=frequency_score,
            reason=reason,
        )

    if entry.tier in preferences.bypass_tiers:
        return _plan(now, f"{entry.tier.value} items are delivered immediately")

    opens_at = next_open_time(preferences, now)
    if opens_at is None:
        return _plan(now, "no open delivery hour configured")
    if opens_at == now:
        return _plan(now, "inside an active hour")
    if preferences.quiet_hours.contains(now.time()):
        return _plan(opens_at, "quiet hours")
    return _plan(opens_at, "outside active hours")


def plan_deliveries(
    items: Iterable[ClassifiedItem],
    settings: Settings,
    preferences: DeliveryPreferences | None = None,
    *,
    now: datetime,
) -> list[DeliveryPlan]:
    """Plans for a batch, earliest delivery first (input order on ties)."""
    plans = [plan_delivery(entry, settings, preferences, now=now) for entry in items]
    return sorted(plans, key=lambda plan: plan.deliver_at)

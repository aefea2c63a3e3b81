"""
Per-type user action and response-time tracking.

The tracker notes when each item was first shown and, when the user acts on
it, how long that took. Stats are keyed by message type (channel when an item
has none), the same key the custom algorithm reads its interaction rates
from, so a host can feed ``interaction_rate`` back into Settings.

Usage:
    tracker = ActionTracker()
    tracker.track(session.items, at=now)
    tracker.record("n1", UserAction.OPEN, at=now + timedelta(seconds=40))
    tracker.stats()["urgent"].mean_response_seconds
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from triageq.classification.types import UserAction
from triageq.observability.logging import get_logger
from triageq.observability.telemetry import counter
from triageq.storage.models import ClassifiedItem

logger = get_logger(__name__)

# Actions that count as the user engaging with an item
ENGAGED_ACTIONS = frozenset({UserAction.OPEN, UserAction.MARK_READ, UserAction.RESPOND})


@dataclass
class ActionStats:
    """Aggregated actions for one message type."""

    message_type: str
    actions: dict[UserAction, int] = field(default_factory=dict)
    responses: int = 0
    total_response_seconds: float = 0.0

    @property
    def mean_response_seconds(self) -> float | None:
        if self.responses == 0:
            return None
        return self.total_response_seconds / self.responses

    @property
    def interaction_rate(self) -> float | None:
        """Engaged actions over all actions; None before any action."""
        total = sum(self.actions.values())
        if total == 0:
            return None
        engaged = sum(count for action, count in self.actions.items() if action in ENGAGED_ACTIONS)
        return engaged / total


class ActionTracker:
    """
    Thread-safe first-seen times and action stats.

    Side Effects:
        - record() increments the ``engagement.<action>`` counters
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # item id -> (interaction key, first seen)
        self._seen: dict[str, tuple[str, datetime]] = {}
        self._stats: dict[str, ActionStats] = {}

    def track(self, entries: Iterable[ClassifiedItem], at: datetime) -> int:
        """Start the response clock for items not seen before. Returns how many were new."""
        added = 0
        with self._lock:
            for entry in entries:
                if entry.item_id in self._seen:
                    continue
                self._seen[entry.item_id] = (entry.item.interaction_key, at)
                added += 1
        return added

    def record(self, item_id: str, action: UserAction | str, at: datetime) -> float | None:
        """
        Record one action on a tracked item.

        Returns:
            Seconds since the item was first shown (never negative), or None
            when the item was never tracked
        """
        action = UserAction(action)
        with self._lock:
            seen = self._seen.get(item_id)
            if seen is None:
                logger.debug("Ignoring %s on untracked item", action.value)
                return None
            key, first_seen = seen
            elapsed = max(0.0, (at - first_seen).total_seconds())
            stats = self._stats.setdefault(key, ActionStats(message_type=key))
            stats.actions[action] = stats.actions.get(action, 0) + 1
            stats.responses += 1
            stats.total_response_seconds += elapsed
            if action is UserAction.DISMISS:
                del self._seen[item_id]
        counter(f"engagement.{action.value}")
        return elapsed

    def stats(self) -> dict[str, ActionStats]:
        """Copy of the stats per message type."""
        with self._lock:
            return {
                key: ActionStats(
                    message_type=key,
                    actions=dict(stats.actions),
                    responses=stats.responses,
                    total_response_seconds=stats.total_response_seconds,
                )
                for key, stats in self._stats.items()
            }

    def interaction_rates(self) -> dict[str, float]:
        """Rates ready for ``Settings.interaction_rates``; types without actions are left out."""
        return {
            key: rate
            for key, stats in self.stats().items()
            if (rate := stats.interaction_rate) is not None
        }

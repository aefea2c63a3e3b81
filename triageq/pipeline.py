"""
Triage pipeline: classify -> filter -> rank -> aggregate.

``process`` is the pure composition over one batch. ``TriageSession`` holds
the classified set between data-source refreshes so the dashboard can
re-filter, mark items read or dismiss them without reclassifying, and keeps
the last good result when a refresh fails.

Usage:
    session = TriageSession(StaticDataSource(raw_items))
    session.refresh(now=now)
    result = session.view(FilterSpec(priorities={PriorityTier.CRITICAL}), now=now)
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from triageq.classification.classifier import classify_all
from triageq.classification.errors import DataSourceError, TriageError
from triageq.classification.filters import FilterSpec, filter_items
from triageq.classification.ranking import rank
from triageq.classification.types import UserAction
from triageq.config import REFRESH_INTERVAL_SECONDS
from triageq.contracts.sources import DataSource
from triageq.digest.engagement import ActionTracker
from triageq.digest.insights import Insights, aggregate
from triageq.observability.logging import get_logger
from triageq.observability.telemetry import counter, log_event, snapshot, time_block
from triageq.runtime.settings import Settings, SettingsStore, get_settings_store
from triageq.storage.models import ClassifiedItem, Item

logger = get_logger(__name__)

RawItems = Sequence[Item | Mapping[str, Any]]


@dataclass
class TriageResult:
    """One filtered, ranked view plus insights over that view."""

    ordered: list[ClassifiedItem] = field(default_factory=list)
    insights: Insights = field(default_factory=Insights)
    total: int = 0  # size of the classified set before filtering
    settings_version: int = 0


def process(
    items: RawItems,
    settings: Settings,
    spec: FilterSpec | None = None,
    now: datetime | None = None,
    limit: int | None = None,
) -> TriageResult:
    """
    Classify, filter, rank and aggregate one batch.

    Side Effects:
        - Telemetry counters and pipeline.process latency

    Raises:
        ClassificationInputError: On a malformed raw item
        ConfigurationError: If the settings are invalid
    """
    reference = now or datetime.now(UTC)
    with time_block("pipeline.process"):
        classified = classify_all(items, settings, now=reference)
        return _view(classified, spec or FilterSpec(), reference, limit, settings.version)


def _view(
    classified: Sequence[ClassifiedItem],
    spec: FilterSpec,
    now: datetime,
    limit: int | None,
    settings_version: int,
) -> TriageResult:
    filtered = filter_items(classified, spec, now=now)
    return TriageResult(
        ordered=rank(filtered, limit=limit),
        insights=aggregate(filtered),
        total=len(classified),
        settings_version=settings_version,
    )


class TriageSession:
    """
    Last-good classified set for one dashboard.

    Side Effects:
        - refresh()/ingest() replace the classified set
        - mark_read()/mark_all_read()/dismiss() change it in place
        - Failures are logged as warnings and counted, never raised from
          refresh(); they are kept in ``last_error``
        - With a tracker, delivered items start its response clock and
          mark_read()/dismiss()/record_action() are recorded on it
    """

    def __init__(
        self,
        source: DataSource | None = None,
        settings_store: SettingsStore | None = None,
        tracker: ActionTracker | None = None,
    ) -> None:
        self.source = source
        self.settings_store = settings_store or get_settings_store()
        self.tracker = tracker
        self._lock = threading.RLock()
        self._raw: list[Item | Mapping[str, Any]] = []
        self._classified: list[ClassifiedItem] = []
        self._read_ids: set[str] = set()
        self._dismissed_ids: set[str] = set()
        self._settings_version = 0
        self._last_error: TriageError | None = None
        self._last_refresh: datetime | None = None

    @property
    def items(self) -> list[ClassifiedItem]:
        """Current classified set (dismissed items excluded)."""
        with self._lock:
            return list(self._classified)

    @property
    def last_error(self) -> TriageError | None:
        return self._last_error

    @property
    def last_refresh(self) -> datetime | None:
        return self._last_refresh

    def refresh(self, now: datetime | None = None) -> bool:
        """
        Fetch from the data source and reclassify.

        Returns:
            True when the classified set was replaced, False when the fetch or
            classification failed and the previous set was kept
        """
        if self.source is None:
            raise RuntimeError("TriageSession has no data source; use ingest()")
        try:
            batch = self.source.fetch()
        except DataSourceError as exc:
            self.ingest_failure(exc)
            return False
        return self.ingest(batch, now=now)

    def ingest(self, items: RawItems, now: datetime | None = None) -> bool:
        """Classify a delivered batch and make it current. Same return as refresh()."""
        batch = list(items)
        reference = now or datetime.now(UTC)
        settings = self.settings_store.get()
        try:
            classified = classify_all(batch, settings, now=reference)
        except TriageError as exc:
            self.ingest_failure(exc)
            return False

        with self._lock:
            self._raw = batch
            self._classified = self._apply_local_state(classified)
            current = list(self._classified)
            self._settings_version = settings.version
            self._last_error = None
            self._last_refresh = reference

        if self.tracker is not None:
            self.tracker.track(current, reference)
        counter("session.refresh.success")
        log_event("session.refresh", items=len(classified), settings_version=settings.version)
        return True

    def ingest_failure(self, error: TriageError) -> None:
        """Record a failed delivery; the previous classified set stays current."""
        with self._lock:
            self._last_error = error
        counter("session.refresh.failure")
        logger.warning("Triage refresh failed, keeping last good result: %s", error)

    def attach(self, future: Future, now: datetime | None = None) -> None:
        """Ingest the result of an asynchronous fetch when it completes."""

        def _on_done(done: Future) -> None:
            if done.cancelled():
                self.ingest_failure(DataSourceError("data source fetch was cancelled"))
                return
            error = done.exception()
            if error is None:
                self.ingest(done.result(), now=now)
            elif isinstance(error, TriageError):
                self.ingest_failure(error)
            else:
                self.ingest_failure(DataSourceError(f"data source failed: {error}"))

        future.add_done_callback(_on_done)

    def needs_refresh(self, now: datetime | None = None) -> bool:
        """Whether the refresh interval has elapsed since the last good refresh."""
        if self._last_refresh is None:
            return True
        reference = now or datetime.now(UTC)
        return reference - self._last_refresh >= timedelta(seconds=REFRESH_INTERVAL_SECONDS)

    def view(
        self,
        spec: FilterSpec | None = None,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> TriageResult:
        """
        Filtered and ranked view of the current set.

        Reclassifies the last delivered batch first when the settings changed
        since it was classified.
        """
        reference = now or datetime.now(UTC)
        self._reclassify_if_stale(reference)
        with self._lock:
            classified = list(self._classified)
            version = self._settings_version
        return _view(classified, spec or FilterSpec(), reference, limit, version)

    def mark_read(self, item_id: str, now: datetime | None = None) -> bool:
        """Mark one item read. Returns False for an unknown id."""
        with self._lock:
            found = False
            for index, entry in enumerate(self._classified):
                if entry.item_id == item_id:
                    self._classified[index] = entry.with_read(True)
                    self._read_ids.add(item_id)
                    found = True
                    break
        if found:
            self._track_action(item_id, UserAction.MARK_READ, now)
        return found

    def mark_all_read(self, items: Iterable[ClassifiedItem] | None = None) -> int:
        """Mark every item (or only the given ones) read. Returns how many changed."""
        with self._lock:
            wanted = None if items is None else {entry.item_id for entry in items}
            changed = 0
            for index, entry in enumerate(self._classified):
                if wanted is not None and entry.item_id not in wanted:
                    continue
                if not entry.item.is_read:
                    changed += 1
                self._classified[index] = entry.with_read(True)
                self._read_ids.add(entry.item_id)
        return changed

    def dismiss(self, item_id: str, now: datetime | None = None) -> bool:
        """Hide an item until the data source stops sending it. False for an unknown id."""
        with self._lock:
            before = len(self._classified)
            self._classified = [entry for entry in self._classified if entry.item_id != item_id]
            if len(self._classified) == before:
                return False
            self._dismissed_ids.add(item_id)
        counter("session.dismissed")
        self._track_action(item_id, UserAction.DISMISS, now)
        return True

    def record_action(
        self, item_id: str, action: UserAction | str, now: datetime | None = None
    ) -> float | None:
        """
        Record an action the dashboard handles itself (open, respond).

        Returns the response time in seconds, or None without a tracker or
        for an item the tracker never saw.
        """
        return self._track_action(item_id, UserAction(action), now)

    def status(self) -> dict[str, Any]:
        """Processing status for the dashboard: set size, freshness, errors and telemetry."""
        with self._lock:
            state = {
                "items": len(self._classified),
                "settings_version": self._settings_version,
                "last_refresh": self._last_refresh,
                "last_error": str(self._last_error) if self._last_error else None,
            }
        state["telemetry"] = snapshot()
        return state

    def _track_action(
        self, item_id: str, action: UserAction, now: datetime | None
    ) -> float | None:
        if self.tracker is None:
            return None
        return self.tracker.record(item_id, action, now or datetime.now(UTC))

    def _apply_local_state(self, classified: list[ClassifiedItem]) -> list[ClassifiedItem]:
        delivered = {entry.item_id for entry in classified}
        self._read_ids &= delivered
        self._dismissed_ids &= delivered
        return [
            entry.with_read(True) if entry.item_id in self._read_ids else entry
            for entry in classified
            if entry.item_id not in self._dismissed_ids
        ]

    def _reclassify_if_stale(self, now: datetime) -> None:
        """
        Reclassify the last delivered batch under newer settings.

        Nothing is fetched, so last_refresh and last_error stay as they are.
        """
        with self._lock:
            if not self._raw or self.settings_store.is_current(self._settings_version):
                return
            raw = list(self._raw)
        settings = self.settings_store.get()
        logger.info("Settings changed, reclassifying %d item(s)", len(raw))
        try:
            classified = classify_all(raw, settings, now=now)
        except TriageError as exc:
            logger.warning("Reclassification under settings v%d failed: %s", settings.version, exc)
            counter("session.reclassify.failure")
            return

        with self._lock:
            self._classified = self._apply_local_state(classified)
            self._settings_version = settings.version
        counter("session.reclassified")

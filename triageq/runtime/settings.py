"""
Versioned Triage Settings

Holds the cutoffs the classifier and filter engine read: algorithm choice,
per-category confidence thresholds and keyword lists, action keywords and the
custom weighting.

IMPORTANT: Defaults are loaded from triageq/data/triageq_policy.yaml.
DEFAULT_POLICY below is the fallback when the file is missing and must carry
the same values.

Update model:
- Full replace only. Merging partial edits is the presentation layer's job.
- Every accepted update or reset bumps ``version`` so consumers can compare it
  with the version a cached computation was built from.
- Readers always get a complete snapshot (replace-not-mutate).
"""

from __future__ import annotations

import math
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from triageq.classification.errors import ConfigurationError
from triageq.classification.types import Algorithm, TriageCategory
from triageq.config import policy_paths
from triageq.observability.logging import get_logger
from triageq.observability.telemetry import counter, log_event

logger = get_logger(__name__)

WEIGHT_SUM_TOLERANCE = 1e-6

DEFAULT_POLICY: dict[str, Any] = {
    "algorithm": "standard",
    "categories": {
        "critical": {
            "enabled": True,
            "threshold": 0.90,
            "keywords": [
                "emergency",
                "critical",
                "stat",
                "code blue",
                "code red",
                "cardiac arrest",
                "stroke",
                "chest pain",
                "severe",
                "immediate",
                "life-threatening",
                "respiratory distress",
                "unresponsive",
                "anaphylaxis",
                "sepsis",
            ],
        },
        "important": {
            "enabled": True,
            "threshold": 0.80,
            "keywords": [
                "urgent",
                "priority",
                "asap",
                "abnormal",
                "lab results",
                "surgery",
                "prescription",
                "diagnosis",
                "follow-up required",
                "medication",
                "shortage",
                "consultation",
            ],
        },
        "routine": {
            "enabled": True,
            "threshold": 0.60,
            "keywords": [
                "routine",
                "standard",
                "normal",
                "scheduled",
                "booked",
                "appointment",
                "reschedule",
                "completed",
                "reminder",
                "confirmed",
            ],
        },
        "informational": {
            "enabled": True,
            "threshold": 0.40,
            "keywords": [
                "info",
                "announcement",
                "update",
                "newsletter",
                "fyi",
                "policy",
                "training",
                "maintenance",
            ],
        },
    },
    "action_keywords": [
        "action required",
        "immediate attention",
        "please respond",
        "please confirm",
        "requiring follow-up",
        "follow-up required",
        "needs review",
        "approval needed",
        "sign off",
    ],
    "custom_weights": {
        "time_recency": 0.3,
        "sender_importance": 0.2,
        "content_urgency": 0.3,
        "user_history": 0.1,
        "department_priority": 0.1,
    },
    "preferred_senders": [],
    "priority_departments": ["emergency", "icu"],
    "interaction_rates": {
        "urgent": 0.9,
        "medical": 0.8,
        "appointment": 0.7,
        "system": 0.3,
        "reminder": 0.5,
    },
}


class CategoryRule(BaseModel):
    """Threshold and keyword list of one triage category."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    threshold: float = Field(ge=0.0, le=1.0)
    keywords: tuple[str, ...] = ()


class CustomWeights(BaseModel):
    """Weights of the five prioritization factors used by the custom algorithm."""

    model_config = ConfigDict(frozen=True)

    time_recency: float = Field(default=0.3, ge=0.0, le=1.0)
    sender_importance: float = Field(default=0.2, ge=0.0, le=1.0)
    content_urgency: float = Field(default=0.3, ge=0.0, le=1.0)
    user_history: float = Field(default=0.1, ge=0.0, le=1.0)
    department_priority: float = Field(default=0.1, ge=0.0, le=1.0)

    def total(self) -> float:
        return math.fsum(self.model_dump().values())


class Settings(BaseModel):
    """Immutable settings snapshot. ``version`` is assigned by the SettingsStore."""

    model_config = ConfigDict(frozen=True)

    algorithm: Algorithm = Algorithm.STANDARD
    categories: dict[TriageCategory, CategoryRule]
    action_keywords: tuple[str, ...] = ()
    custom_weights: CustomWeights = Field(default_factory=CustomWeights)
    preferred_senders: tuple[str, ...] = ()
    priority_departments: tuple[str, ...] = ()
    interaction_rates: dict[str, float] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0)

    @field_validator("categories")
    @classmethod
    def _all_categories_present(
        cls, value: dict[TriageCategory, CategoryRule]
    ) -> dict[TriageCategory, CategoryRule]:
        missing = [category.value for category in TriageCategory if category not in value]
        if missing:
            raise ValueError(f"missing category rules: {', '.join(missing)}")
        return value

    @field_validator("interaction_rates")
    @classmethod
    def _rates_in_range(cls, value: dict[str, float]) -> dict[str, float]:
        out_of_range = [key for key, rate in value.items() if not 0.0 <= rate <= 1.0]
        if out_of_range:
            raise ValueError(f"interaction rates outside [0, 1]: {', '.join(out_of_range)}")
        return value

    def rule_for(self, category: TriageCategory) -> CategoryRule:
        return self.categories[category]


def validate_settings(settings: Settings) -> Settings:
    """
    Check invariants a Settings record cannot enforce on its own.

    Raises:
        ConfigurationError: If the custom weights do not sum to 1.0
    """
    total = settings.custom_weights.total()
    if not math.isclose(total, 1.0, abs_tol=WEIGHT_SUM_TOLERANCE):
        raise ConfigurationError(f"custom weights must sum to 1.0, got {total:.4f}")
    return settings


def _coerce_settings(candidate: Settings | Mapping[str, Any]) -> Settings:
    # Instances built with model_copy(update=...) skipped validation; re-check them
    if isinstance(candidate, Settings):
        data = candidate.model_dump(warnings=False)
    else:
        data = dict(candidate)
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"malformed settings: {exc.error_count()} error(s): {exc}") from exc


def _load_policy_config() -> dict[str, Any]:
    """
    Load the default policy from triageq_policy.yaml.

    Side Effects:
        - Reads the first existing policy file from the filesystem

    Returns:
        Parsed policy dict, or {} when no policy file exists
    """
    for config_path in policy_paths():
        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            logger.debug("Loaded triage policy from %s", config_path)
            return config

    logger.warning("triageq_policy.yaml not found, using hardcoded defaults")
    return {}


def default_settings(policy_path: Path | None = None) -> Settings:
    """
    Documented default settings.

    Raises:
        ConfigurationError: If the policy file holds invalid values
    """
    if policy_path is not None:
        with open(policy_path, encoding="utf-8") as f:
            policy = yaml.safe_load(f) or {}
    else:
        policy = _load_policy_config() or DEFAULT_POLICY
    return validate_settings(_coerce_settings(policy))


class SettingsStore:
    """
    Process-wide holder of the current Settings snapshot.

    Side Effects:
        - update()/reset() replace the snapshot and bump the version
        - Writes an info log and a counter for every accepted change
    """

    def __init__(self, initial: Settings | Mapping[str, Any] | None = None) -> None:
        self._lock = threading.Lock()
        snapshot = default_settings() if initial is None else _coerce_settings(initial)
        validate_settings(snapshot)
        self._current = snapshot.model_copy(update={"version": 1}, deep=True)

    def get(self) -> Settings:
        """Current snapshot."""
        return self._current

    @property
    def version(self) -> int:
        return self._current.version

    def is_current(self, version: int) -> bool:
        """Whether a computation built from ``version`` is still up to date."""
        return version == self._current.version

    def update(self, new_settings: Settings | Mapping[str, Any]) -> Settings:
        """
        Replace the settings wholesale.

        Raises:
            ConfigurationError: If the new settings are invalid. The previous
                snapshot stays in place.
        """
        try:
            candidate = validate_settings(_coerce_settings(new_settings))
        except ConfigurationError as exc:
            counter("settings.rejected")
            logger.warning("Rejected settings update: %s", exc)
            raise
        return self._replace(candidate, event="settings.updated")

    def reset(self) -> Settings:
        """Restore the documented defaults."""
        return self._replace(default_settings(), event="settings.reset")

    def _replace(self, candidate: Settings, event: str) -> Settings:
        with self._lock:
            snapshot = candidate.model_copy(
                update={"version": self._current.version + 1}, deep=True
            )
            self._current = snapshot
        counter(event)
        log_event(event, version=snapshot.version, algorithm=snapshot.algorithm.value)
        return snapshot


_STORE: SettingsStore | None = None
_STORE_LOCK = threading.Lock()


def get_settings_store() -> SettingsStore:
    """Return the process-wide SettingsStore, creating it on first use."""
    global _STORE
    if _STORE is None:
        with _STORE_LOCK:
            if _STORE is None:
                _STORE = SettingsStore()
    return _STORE

"""TriageQ - message triage and prioritization core for clinical dashboards"""

from __future__ import annotations

__version__ = "1.0.0"

_EXPORTS: dict[str, str] = {
    "classify": "triageq.classification.classifier",
    "classify_all": "triageq.classification.classifier",
    "FilterSpec": "triageq.classification.filters",
    "filter_items": "triageq.classification.filters",
    "rank": "triageq.classification.ranking",
    "flags_for": "triageq.classification.flags",
    "plan_delivery": "triageq.digest.delivery",
    "DeliveryPreferences": "triageq.digest.delivery",
    "ActionTracker": "triageq.digest.engagement",
    "aggregate": "triageq.digest.insights",
    "Insights": "triageq.digest.insights",
    "process": "triageq.pipeline",
    "TriageResult": "triageq.pipeline",
    "TriageSession": "triageq.pipeline",
    "Settings": "triageq.runtime.settings",
    "SettingsStore": "triageq.runtime.settings",
    "get_settings_store": "triageq.runtime.settings",
}


# Lazy imports so importing triageq.config or the models does not pull in the
# whole pipeline
def __getattr__(name: str):
    if name in _EXPORTS:
        import importlib

        module = importlib.import_module(_EXPORTS[name])
        return getattr(module, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = sorted(_EXPORTS)

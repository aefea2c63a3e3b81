"""
Ranking of classified items.

Urgency first, newest first within an urgency. Python's sort is stable, so
items equal on both keys keep their input order and ranking an already
ranked list changes nothing.
"""

from __future__ import annotations

from collections.abc import Iterable

from triageq.storage.models import ClassifiedItem


def rank_key(entry: ClassifiedItem) -> tuple[int, float]:
    """Sort key: urgency descending, then timestamp descending."""
    return (-entry.urgency, -entry.created_at.timestamp())


def rank(items: Iterable[ClassifiedItem], limit: int | None = None) -> list[ClassifiedItem]:
    """
    Order items for display.

    Side Effects: None (pure function - returns a new list)

    Args:
        items: Classified items, typically the output of filter_items()
        limit: Keep only the first ``limit`` items (the dashboard card shows 3-5)

    Returns:
        Ranked list
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    ranked = sorted(items, key=rank_key)
    return ranked if limit is None else ranked[:limit]

"""
Grouping of low-priority items that share a theme.

Appointment updates from the same day, system notifications and reports
from the same sender collapse into one TriageGroup when there are at least
two of them and all are routine or informational. Anything else stays a
singleton group, so nothing important is ever hidden inside a bundle.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from triageq.classification.types import ItemChannel, TriageCategory
from triageq.observability.logging import get_logger
from triageq.storage.models import ClassifiedItem

logger = get_logger(__name__)

GROUPABLE_CATEGORIES = frozenset({TriageCategory.ROUTINE, TriageCategory.INFORMATIONAL})
MIN_GROUP_SIZE = 2

GROUP_TITLES: dict[str, str] = {
    "appointment": "{count} Appointment Updates",
    "system": "{count} System Notifications",
    "medical": "{count} Medical Reports",
}


@dataclass
class TriageGroup:
    """Items shown as one row. Singleton groups have ``is_grouped`` False."""

    group_id: str
    members: list[ClassifiedItem] = field(default_factory=list)
    title: str = ""
    message: str = ""

    @property
    def is_grouped(self) -> bool:
        return len(self.members) > 1

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def urgency(self) -> int:
        return max(member.urgency for member in self.members)

    @property
    def created_at(self) -> datetime:
        return max(member.created_at for member in self.members)


def _item_type(entry: ClassifiedItem) -> str:
    item = entry.item
    if item.message_type:
        return item.message_type
    if item.channel is ItemChannel.APPOINTMENT:
        return "appointment"
    return item.channel.value


def group_key(entry: ClassifiedItem) -> str:
    """Theme key of an item; unrelated items get an individual key."""
    item = entry.item
    item_type = _item_type(entry)
    if item_type == "appointment":
        return f"appointments-{item.created_at.date().isoformat()}"
    if item_type == "system":
        return "system-notifications"
    content = item.content.lower()
    if "completed" in content or "report" in content:
        return f"reports-{item.sender}"
    return f"individual-{item.item_id}"


def should_group(members: list[ClassifiedItem]) -> bool:
    return len(members) >= MIN_GROUP_SIZE and all(
        member.classification.category in GROUPABLE_CATEGORIES for member in members
    )


def group_title(members: list[ClassifiedItem]) -> str:
    template = GROUP_TITLES.get(_item_type(members[0]), "{count} Notifications")
    return template.format(count=len(members))


def group_message(members: list[ClassifiedItem]) -> str:
    senders = list(dict.fromkeys(member.item.sender for member in members))
    item_type = _item_type(members[0])
    if len(senders) == 1:
        return f"{senders[0]} sent {len(members)} {item_type} notifications"
    return f"{len(members)} {item_type} notifications from {len(senders)} sources"


def group_items(items: Iterable[ClassifiedItem]) -> list[TriageGroup]:
    """
    Collapse themed runs of low-priority items.

    Side Effects:
        - Debug log with the number of collapsed groups

    Returns:
        Groups in order of each key's first appearance
    """
    buckets: dict[str, list[ClassifiedItem]] = {}
    for entry in items:
        buckets.setdefault(group_key(entry), []).append(entry)

    groups: list[TriageGroup] = []
    collapsed = 0
    for key, members in buckets.items():
        if should_group(members):
            collapsed += 1
            groups.append(
                TriageGroup(
                    group_id=f"group-{key}",
                    members=members,
                    title=group_title(members),
                    message=group_message(members),
                )
            )
            continue
        for member in members:
            groups.append(
                TriageGroup(
                    group_id=member.item_id,
                    members=[member],
                    title=member.item.subject,
                    message=member.item.content,
                )
            )

    logger.debug("Grouped %d bucket(s) into %d row(s)", collapsed, len(groups))
    return groups

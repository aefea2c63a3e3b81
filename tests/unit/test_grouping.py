"""Tests for grouping of low-priority themed items"""

from __future__ import annotations

from triageq.classification.classifier import classify_all
from triageq.digest.grouping import group_items, group_key


class TestGroupKey:
    def test_appointments_grouped_per_day(self, make_item, settings, now):
        items = classify_all(
            [make_item("a", message_type="appointment", content="Appointment booked")],
            settings,
            now=now,
        )
        assert group_key(items[0]) == "appointments-2025-11-09"

    def test_system(self, make_item, settings, now):
        items = classify_all([make_item("s", message_type="system")], settings, now=now)
        assert group_key(items[0]) == "system-notifications"

    def test_reports_per_sender(self, make_item, settings, now):
        items = classify_all(
            [make_item("r", sender="Radiology", content="Scan report completed")],
            settings,
            now=now,
        )
        assert group_key(items[0]) == "reports-Radiology"

    def test_individual(self, make_item, settings, now):
        items = classify_all([make_item("x", content="hello")], settings, now=now)
        assert group_key(items[0]) == "individual-x"


class TestGroupItems:
    def test_routine_appointments_collapse(self, make_item, settings, now):
        raws = [
            make_item("a1", minutes_ago=10, channel="appointment", content="Appointment booked"),
            make_item("a2", minutes_ago=5, channel="appointment", content="Appointment confirmed"),
            make_item("x", content="hello"),
        ]
        groups = group_items(classify_all(raws, settings, now=now))

        assert len(groups) == 2
        bundle = groups[0]
        assert bundle.is_grouped
        assert bundle.group_id == "group-appointments-2025-11-09"
        assert bundle.count == 2
        assert bundle.title == "2 Appointment Updates"
        assert bundle.message == "Nurse Station sent 2 appointment notifications"
        assert bundle.created_at == max(m.created_at for m in bundle.members)
        assert not groups[1].is_grouped

    def test_important_item_blocks_grouping(self, make_item, settings, now):
        raws = [
            make_item("s1", message_type="system", content="Server maintenance tonight"),
            make_item("s2", message_type="system", content="Medication shortage detected"),
        ]
        groups = group_items(classify_all(raws, settings, now=now))
        assert [group.group_id for group in groups] == ["s1", "s2"]
        assert not any(group.is_grouped for group in groups)

    def test_single_member_not_grouped(self, make_item, settings, now):
        raws = [make_item("s1", message_type="system", content="fyi")]
        groups = group_items(classify_all(raws, settings, now=now))
        assert groups[0].group_id == "s1"

    def test_message_counts_sources(self, make_item, settings, now):
        raws = [
            make_item("s1", sender="Pharmacy System", message_type="system", content="fyi"),
            make_item("s2", sender="IT", message_type="system", content="fyi"),
        ]
        groups = group_items(classify_all(raws, settings, now=now))
        assert groups[0].title == "2 System Notifications"
        assert groups[0].message == "2 system notifications from 2 sources"

    def test_group_urgency_is_max(self, make_item, settings, now):
        raws = [
            make_item("s1", message_type="system", content="fyi"),
            make_item("s2", message_type="system", content="Routine backup completed"),
        ]
        groups = group_items(classify_all(raws, settings, now=now))
        assert groups[0].urgency == 3

    def test_empty(self):
        assert group_items([]) == []

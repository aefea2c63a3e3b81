"""
Pytest configuration for TriageQ tests

Provides a fixed clock, default settings and a small clinical inbox shared
across unit and contract tests.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from triageq.classification.classifier import classify_all
from triageq.observability.telemetry import reset_telemetry
from triageq.runtime.settings import DEFAULT_POLICY, Settings, SettingsStore


@pytest.fixture(autouse=True)
def _clean_telemetry():
    """Counters are module-level; start every test from zero."""
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def now():
    """Fixed 'now' for deterministic tests."""
    return datetime(2025, 11, 9, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def settings():
    """Documented default settings, independent of any policy file on disk."""
    return Settings.model_validate(DEFAULT_POLICY)


@pytest.fixture
def store():
    return SettingsStore(DEFAULT_POLICY)


@pytest.fixture
def make_item(now):
    """Factory for raw items; every field can be overridden."""

    def _make(item_id="item-1", minutes_ago=5, **fields):
        raw = {
            "id": item_id,
            "timestamp": now - timedelta(minutes=minutes_ago),
            "sender": "Nurse Station",
            "subject": "",
            "content": "",
        }
        raw.update(fields)
        return raw

    return _make


@pytest.fixture
def raw_items(make_item):
    """
    Six-item clinical inbox:
    - n1, n3: critical and action required
    - n2: high, no action required
    - n4: medium, n5: low (already read), n6: no keyword at all
    """
    return [
        make_item(
            "n1",
            minutes_ago=2,
            sender="Emergency System",
            subject="Emergency Patient Alert",
            content="Patient John Doe shows critical vitals - immediate attention required",
            department="emergency",
            message_type="urgent",
            compliance_level="hipaa",
        ),
        make_item(
            "n2",
            minutes_ago=30,
            sender="Dr. Smith",
            subject="Surgery Rescheduled",
            content="Dr. Smith's surgery for tomorrow moved to 3 PM",
            department="surgery",
            message_type="medical",
            compliance_level="hipaa",
        ),
        make_item(
            "n3",
            minutes_ago=5,
            sender="Emergency System",
            subject="Code Blue",
            content="Code blue in Room 304, cardiac arrest. Team respond now.",
            department="icu",
            message_type="urgent",
            compliance_level="hipaa",
        ),
        make_item(
            "n4",
            minutes_ago=60,
            sender="Appointment System",
            subject="Appointment Booking",
            content="5 new appointments booked for this week",
            channel="appointment",
            message_type="appointment",
            compliance_level="standard",
        ),
        make_item(
            "n5",
            minutes_ago=120,
            sender="Hospital Admin",
            subject="Newsletter",
            content="Monthly staff newsletter and training announcement",
            message_type="system",
            is_read=True,
        ),
        make_item(
            "n6",
            minutes_ago=180,
            sender="Facilities",
            subject="Parking lot",
            content="The north parking lot will be repainted on Saturday",
        ),
    ]


@pytest.fixture
def classified_items(raw_items, settings, now):
    return classify_all(raw_items, settings, now=now)

"""Shared fixtures and in-memory fakes for the ports."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from catchup.core.availability import AvailabilityWindow
from catchup.core.contacts import ContactSignals, SharedHistory
from catchup.errors import UpstreamUnavailable


class FakeDirectory:
    """ContactDirectory over a dict, recording writes."""

    def __init__(self, contacts: list[ContactSignals], history: SharedHistory | None = None):
        self.contacts = {c.id: c for c in contacts}
        self.history = history or SharedHistory()
        self.reprompted: list[str] = []
        self.list_calls = 0

    def list_contacts(self, user_id):
        self.list_calls += 1
        return list(self.contacts.values())

    def shared_history(self, user_id):
        return self.history

    def get_contact(self, user_id, contact_id):
        return self.contacts.get(contact_id)

    def update_last_contact(self, user_id, contact_id, when):
        self.contacts[contact_id] = replace(self.contacts[contact_id], last_contact=when)

    def flag_frequency_reprompt(self, user_id, contact_id):
        self.reprompted.append(contact_id)


class FakeAvailability:
    """AvailabilityProvider returning fixed windows, or failing for some users."""

    def __init__(self, windows: list[AvailabilityWindow], failing: set[str] | None = None):
        self.windows = windows
        self.failing = failing or set()
        self.calls = 0

    def get_free_windows(self, user_id, start_date, end_date):
        self.calls += 1
        if user_id in self.failing:
            raise UpstreamUnavailable(f"calendar down for {user_id}")
        return list(self.windows)


class FakeFeed:
    def __init__(self):
        self.published = []
        self.retracted = []

    def publish(self, suggestion):
        self.published.append(suggestion.id)

    def retract(self, user_id, suggestion_id):
        self.retracted.append(suggestion_id)


class FakeInteractions:
    def __init__(self):
        self.entries = []

    def record(self, entry):
        self.entries.append(entry)

    def latest_by_contact(self, user_id):
        latest = {}
        for e in self.entries:
            if e.user_id == user_id:
                latest[e.contact_id] = max(e.timestamp, latest.get(e.contact_id, e.timestamp))
        return latest


@pytest.fixture
def now():
    """Monday, noon UTC."""
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def evening_windows(now):
    """One in-person evening window per day for the next week."""
    windows = []
    for day in range(1, 8):
        start = (now + timedelta(days=day)).replace(hour=18, minute=0)
        windows.append(AvailabilityWindow(start, start + timedelta(hours=3), "UTC", True))
    return windows


def make_contact(contact_id: str, now: datetime, days_since: int = 45, **kwargs) -> ContactSignals:
    """A monthly contact last seen `days_since` days ago."""
    defaults = dict(
        id=contact_id,
        name=contact_id.title(),
        created_at=now - timedelta(days=400),
        last_contact=now - timedelta(days=days_since),
    )
    defaults.update(kwargs)
    return ContactSignals(**defaults)

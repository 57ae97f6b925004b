"""Tests for batch generation."""

import json
from collections import Counter
from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from catchup.adapters.file_store import JsonSuggestionStore
from catchup.adapters.json_contacts import JsonContactDirectory
from catchup.batch import BatchScheduler, add_batch_job, group_priority
from catchup.core.availability import AvailabilityWindow
from catchup.core.contacts import SharedHistory
from catchup.core.matching import CalendarEvent
from catchup.core.suggestions import (
    SuggestionKind,
    SuggestionStatus,
    TriggerType,
    new_suggestion,
    transition,
)
from catchup.errors import InputError
from catchup.lifecycle import SuggestionLifecycle

from conftest import FakeAvailability, FakeDirectory, FakeFeed, FakeInteractions, make_contact


@pytest.fixture
def store(tmp_path):
    return JsonSuggestionStore(tmp_path)


@pytest.fixture
def climbers(now):
    groups = frozenset({"Climbing Crew", "College"})
    tags = frozenset({"bouldering"})
    return [make_contact(cid, now, groups=groups, tags=tags) for cid in ("ana", "ben", "cy")]


@pytest.fixture
def climb_history():
    return SharedHistory(mention_sessions=(frozenset({"ana", "ben", "cy"}),) * 5)


def scheduler(directory, availability, store, now, **kwargs):
    return BatchScheduler(availability, directory, store, clock=lambda: now, **kwargs)


def open_contact_counts(store, user_id, now):
    counts = Counter()
    for s in store.list_for_user(user_id):
        if s.is_open(now):
            counts.update(s.contact_ids)
    return counts


class TestGenerateBatch:
    def test_creates_individual_suggestions_for_due_contacts(self, store, evening_windows, now):
        directory = FakeDirectory([make_contact("due", now, days_since=45), make_contact("fresh", now, days_since=3)])
        availability = FakeAvailability(evening_windows)
        result = scheduler(directory, availability, store, now).generate_batch("u1")

        assert [s.contact_ids for s in result.created] == [("due",)]
        created = result.created[0]
        assert created.trigger_type is TriggerType.TIME_BOUND
        assert created.proposed_window.start == evening_windows[0].start
        assert created.proposed_window.duration_minutes() == 60
        assert availability.calls == 1

    def test_rerun_is_idempotent(self, store, evening_windows, now, climbers, climb_history):
        contacts = climbers + [make_contact(f"c{i}", now) for i in range(4)]
        batch = scheduler(FakeDirectory(contacts, climb_history), FakeAvailability(evening_windows), store, now)

        first = batch.generate_batch("u1")
        second = batch.generate_batch("u1")

        assert first.created
        assert second.created == []
        assert len(store.list_for_user("u1")) == len(first.created)

    def test_contact_in_at_most_one_open_suggestion(self, store, evening_windows, now, climbers, climb_history):
        contacts = climbers + [make_contact(f"c{i}", now) for i in range(3)]
        batch = scheduler(FakeDirectory(contacts, climb_history), FakeAvailability(evening_windows), store, now)
        batch.generate_batch("u1")
        batch.generate_batch("u1")

        counts = open_contact_counts(store, "u1", now)
        assert counts
        assert max(counts.values()) == 1

    def test_group_suggestion_for_due_group(self, store, evening_windows, now, climbers, climb_history):
        batch = scheduler(FakeDirectory(climbers, climb_history), FakeAvailability(evening_windows), store, now)
        result = batch.generate_batch("u1")

        assert len(result.created) == 1
        group = result.created[0]
        assert group.kind is SuggestionKind.GROUP
        assert group.contact_ids == ("ana", "ben", "cy")
        assert group.shared_context_score >= 50
        assert group.proposed_window.duration_minutes() == 90
        assert "Climbing Crew" in group.reasoning

    def test_group_needs_every_member_due(self, store, evening_windows, now, climbers, climb_history):
        contacts = [climbers[0], climbers[1], replace(climbers[2], last_contact=now - timedelta(days=2))]
        batch = scheduler(FakeDirectory(contacts, climb_history), FakeAvailability(evening_windows), store, now)
        result = batch.generate_batch("u1")

        groups = [s for s in result.created if s.kind is SuggestionKind.GROUP]
        assert [g.contact_ids for g in groups] == [("ana", "ben")]
        assert all("cy" not in s.contact_ids for s in result.created)

    def test_bounded_by_max_open(self, store, evening_windows, now):
        contacts = [make_contact(f"c{i:02d}", now) for i in range(15)]
        batch = scheduler(FakeDirectory(contacts), FakeAvailability(evening_windows), store, now, max_open=10)

        assert len(batch.generate_batch("u1").created) == 10
        assert batch.generate_batch("u1").created == []

    def test_no_availability_is_not_an_error(self, store, now):
        directory = FakeDirectory([make_contact("due", now)])
        result = scheduler(directory, FakeAvailability([]), store, now).generate_batch("u1")

        assert result.no_availability
        assert result.created == []
        assert result.skipped_no_availability == ["due"]
        assert result.ok

    def test_past_windows_ignored(self, store, now):
        past = AvailabilityWindow(now - timedelta(hours=3), now - timedelta(hours=1), "UTC", True)
        result = scheduler(FakeDirectory([make_contact("due", now)]), FakeAvailability([past]), store, now).generate_batch("u1")
        assert result.no_availability

    def test_requires_user(self, store, now):
        with pytest.raises(InputError):
            scheduler(FakeDirectory([]), FakeAvailability([]), store, now).generate_batch("")

    def test_requires_positive_horizon(self, store, now):
        with pytest.raises(InputError):
            scheduler(FakeDirectory([]), FakeAvailability([]), store, now, horizon_days=0)


class TestScenarios:
    def test_met_too_recently_stops_time_bound_suggestion(self, store, evening_windows, now):
        directory = FakeDirectory([make_contact("x", now, days_since=50)])
        batch = scheduler(directory, FakeAvailability(evening_windows), store, now)
        lifecycle = SuggestionLifecycle(store, directory, FakeInteractions(), FakeFeed(), clock=lambda: now)

        created = batch.generate_batch("u1").created
        assert [s.contact_ids for s in created] == [("x",)]

        lifecycle.dismiss(created[0].id, "met too recently")
        assert directory.contacts["x"].last_contact == now

        assert batch.generate_batch("u1").created == []

    def test_contacts_file_with_naive_timestamps(self, tmp_path, store, evening_windows, now):
        naive = now.replace(tzinfo=None)
        path = tmp_path / "u1" / "contacts.json"
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps(
                {
                    "contacts": [
                        {
                            "id": "sam",
                            "created_at": (naive - timedelta(days=400)).isoformat(),
                            "last_contact": (naive - timedelta(days=45)).isoformat(),
                        }
                    ]
                }
            )
        )
        directory = JsonContactDirectory(tmp_path)

        result = scheduler(directory, FakeAvailability(evening_windows), store, now).generate_batch("u1")

        assert [s.contact_ids for s in result.created] == [("sam",)]

    def test_shared_events_drive_shared_activity_not_time_bound(self, store, evening_windows, now):
        regular = make_contact("regular", now, days_since=0, shared_event_count=12, tags=frozenset({"climbing"}))
        directory = FakeDirectory([regular])
        batch = scheduler(directory, FakeAvailability(evening_windows), store, now)

        assert batch.generate_batch("u1").created == []

        start = (now + timedelta(days=2)).replace(hour=19)
        event = CalendarEvent("evt-1", "Climbing night", start, start + timedelta(hours=2), location="The Gym")
        result = batch.suggest_for_event("u1", event)

        assert len(result.created) == 1
        s = result.created[0]
        assert s.trigger_type is TriggerType.SHARED_ACTIVITY
        assert s.contact_ids == ("regular",)
        assert s.calendar_event_id == "evt-1"
        assert s.priority_score >= 0.5

    def test_shared_activity_group(self, store, now):
        crew = frozenset({"Climbing Crew"})
        tags = frozenset({"climbing"})
        contacts = [
            make_contact("ana", now, days_since=1, groups=crew, tags=tags),
            make_contact("ben", now, days_since=1, groups=crew, tags=tags),
        ]
        history = SharedHistory(
            mention_sessions=(frozenset({"ana", "ben"}),) * 5,
            joint_interactions=(frozenset({"ana", "ben"}),) * 3,
        )
        batch = scheduler(FakeDirectory(contacts, history), FakeAvailability([]), store, now)

        start = (now + timedelta(days=2)).replace(hour=19)
        event = CalendarEvent("evt-2", "Climbing meetup", start, start + timedelta(hours=2), location="The Gym")
        result = batch.suggest_for_event("u1", event)

        assert len(result.created) == 1
        group = result.created[0]
        assert group.kind is SuggestionKind.GROUP
        assert group.trigger_type is TriggerType.SHARED_ACTIVITY
        assert group.shared_context_score == 55

    def test_past_event_suggests_nothing(self, store, now):
        batch = scheduler(FakeDirectory([make_contact("a", now)]), FakeAvailability([]), store, now)
        event = CalendarEvent("old", "Climbing", now - timedelta(hours=3), now - timedelta(hours=1))
        assert batch.suggest_for_event("u1", event).created == []


class TestAcceptedSuggestionsAndGroups:
    def test_upcoming_accepted_contact_left_out_of_groups(self, store, evening_windows, now, climbers, climb_history):
        accepted = new_suggestion(
            user_id="u1",
            kind=SuggestionKind.INDIVIDUAL,
            contact_ids=("ana",),
            trigger_type=TriggerType.TIME_BOUND,
            window=evening_windows[0],
            priority_score=0.3,
            now=now - timedelta(days=1),
        )
        store.add_many([transition(accepted, SuggestionStatus.ACCEPTED, now - timedelta(days=1))])

        batch = scheduler(FakeDirectory(climbers, climb_history), FakeAvailability(evening_windows), store, now)
        result = batch.generate_batch("u1")

        groups = [s for s in result.created if s.kind is SuggestionKind.GROUP]
        assert groups
        assert all("ana" not in g.contact_ids for g in groups)
        # Accepted suggestions don't block individual suggestions
        assert ("ana",) in [s.contact_ids for s in result.created]


class TestRunAll:
    def test_isolates_failures(self, store, evening_windows, now):
        directory = FakeDirectory([make_contact("due", now)])
        availability = FakeAvailability(evening_windows, failing={"u2"})
        results = scheduler(directory, availability, store, now).run_all(["u1", "u2"])

        assert results["u1"].ok
        assert len(results["u1"].created) == 1
        assert not results["u2"].ok
        assert "calendar down" in results["u2"].errors[0]

    def test_empty(self, store, now):
        assert scheduler(FakeDirectory([]), FakeAvailability([]), store, now).run_all([]) == {}

    def test_lock_per_user(self, store, now):
        batch = scheduler(FakeDirectory([]), FakeAvailability([]), store, now)
        assert batch.lock_for("u1") is batch.lock_for("u1")
        assert batch.lock_for("u1") is not batch.lock_for("u2")


class TestScheduling:
    def test_interval_job_registered(self, store, now):
        batch = scheduler(FakeDirectory([]), FakeAvailability([]), store, now)
        apscheduler = MagicMock()
        add_batch_job(apscheduler, batch, ["u1"], interval_hours=6)

        args, kwargs = apscheduler.add_job.call_args
        assert args[0] == batch.run_all
        assert args[1].interval == timedelta(hours=6)
        assert kwargs["args"] == [["u1"]]


class TestGroupPriority:
    def test_mean_plus_context_capped(self):
        assert group_priority([0.2, 0.4], 50) == pytest.approx(0.55)
        assert group_priority([0.9, 0.9], 100) == 1.0
        assert group_priority([], 80) == 0.0

"""Tests for on-demand gathering planning."""

from datetime import timedelta

import pytest

from catchup.core.availability import AvailabilityWindow
from catchup.core.conflicts import ActivityType, ResolutionStatus
from catchup.core.contacts import CommunicationMode
from catchup.errors import InputError, UpstreamUnavailable
from catchup.gatherings import plan_gathering

from conftest import FakeAvailability, FakeDirectory, make_contact


class Reasoning:
    def __init__(self, text):
        self.text = text

    def explain(self, ranked_windows):
        return self.text


@pytest.fixture
def directory(now):
    ana_window = (now + timedelta(days=2)).replace(hour=18)
    return FakeDirectory(
        [
            make_contact("ana", now, availability=(AvailabilityWindow(ana_window, ana_window + timedelta(hours=3)),)),
            make_contact("ben", now),
            make_contact("nia", now, availability=()),
        ]
    )


class TestPlanGathering:
    def test_recommends_window_everyone_can_make(self, directory, evening_windows, now):
        plan = plan_gathering(
            "u1", ["ana", "ben"], ["nia"], FakeAvailability(evening_windows), directory, now=now
        )
        resolution = plan.resolution
        assert resolution.status is ResolutionStatus.RECOMMENDED
        assert resolution.recommended.window == evening_windows[1]
        assert resolution.rationale_source == "template"
        assert plan.duration_minutes == 120
        assert "without Nia" in plan.format()

    def test_reasoning_text_used(self, directory, evening_windows, now):
        plan = plan_gathering(
            "u1",
            ["ben"],
            [],
            FakeAvailability(evening_windows),
            directory,
            activity=ActivityType.COFFEE,
            reasoning=Reasoning("Wednesday is the easy pick."),
            now=now,
        )
        assert plan.resolution.rationale == "Wednesday is the easy pick."
        assert plan.resolution.rationale_source == "reasoning_service"

    def test_video_call_treats_everyone_as_remote(self, directory, evening_windows, now):
        plan = plan_gathering(
            "u1", ["ana"], [], FakeAvailability(evening_windows), directory, activity=ActivityType.VIDEO_CALL, now=now
        )
        assert all(p.mode is CommunicationMode.REMOTE for p in plan.participants)

    def test_empty_calendar_is_unresolvable(self, directory, now):
        plan = plan_gathering("u1", ["ben"], [], FakeAvailability([]), directory, now=now)
        assert plan.resolution.status is ResolutionStatus.UNRESOLVABLE
        assert "No open time" in plan.resolution.rationale

    def test_provider_failure_propagates(self, directory, evening_windows, now):
        with pytest.raises(UpstreamUnavailable):
            plan_gathering("u1", ["ben"], [], FakeAvailability(evening_windows, failing={"u1"}), directory, now=now)

    @pytest.mark.parametrize(
        "must, nice, horizon",
        [
            ([], ["ben"], 14),
            (["ben"], [], 0),
            (["ben"], ["ben"], 14),
            (["zed"], [], 14),
        ],
    )
    def test_input_errors(self, directory, evening_windows, now, must, nice, horizon):
        with pytest.raises(InputError):
            plan_gathering(
                "u1", must, nice, FakeAvailability(evening_windows), directory, horizon_days=horizon, now=now
            )

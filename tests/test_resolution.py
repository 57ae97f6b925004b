"""Tests for reasoning-service rationale with fallback."""

import threading
from datetime import timedelta

import pytest

from catchup.core.availability import AvailabilityWindow
from catchup.core.conflicts import Participant, resolve
from catchup.errors import UpstreamUnavailable
from catchup.resolution import explain


class StaticReasoning:
    def __init__(self, text):
        self.text = text
        self.calls = 0

    def explain(self, ranked_windows):
        self.calls += 1
        return self.text


class FailingReasoning:
    def explain(self, ranked_windows):
        raise UpstreamUnavailable("claude not installed")


class UnreachableReasoning:
    def explain(self, ranked_windows):
        raise ConnectionError("reasoning host unreachable")


class HangingReasoning:
    def __init__(self):
        self.release = threading.Event()

    def explain(self, ranked_windows):
        self.release.wait(5)
        return "too late"


@pytest.fixture
def resolution(now):
    start = (now + timedelta(days=1)).replace(hour=18)
    windows = [AvailabilityWindow(start, start + timedelta(hours=3), "UTC", True)]
    participants = [Participant("a", "Ana"), Participant("b", "Ben", availability=())]
    return resolve(windows, participants, 120)


class TestExplain:
    def test_uses_service_text(self, resolution):
        ranked_before = list(resolution.ranked)
        explain(resolution, StaticReasoning("Thursday works best."), timeout=1)
        assert resolution.rationale == "Thursday works best."
        assert resolution.rationale_source == "reasoning_service"
        assert resolution.ranked == ranked_before

    def test_timeout_falls_back_to_template(self, resolution):
        service = HangingReasoning()
        try:
            explain(resolution, service, timeout=0.05)
        finally:
            service.release.set()
        assert resolution.rationale_source == "template"
        assert "1 of 2 must-attend free at" in resolution.rationale

    def test_unavailable_falls_back_to_template(self, resolution):
        explain(resolution, FailingReasoning(), timeout=1)
        assert resolution.rationale_source == "template"
        assert "must-attend" in resolution.rationale

    def test_connection_error_falls_back_to_template(self, resolution):
        explain(resolution, UnreachableReasoning(), timeout=1)
        assert resolution.rationale_source == "template"
        assert "must-attend" in resolution.rationale

    def test_non_text_answer_falls_back(self, resolution):
        explain(resolution, StaticReasoning(None), timeout=1)
        assert resolution.rationale_source == "template"

    def test_empty_answer_falls_back(self, resolution):
        explain(resolution, StaticReasoning("   "), timeout=1)
        assert resolution.rationale_source == "template"

    def test_no_service(self, resolution):
        explain(resolution, None)
        assert resolution.rationale_source == "template"

    def test_nothing_ranked_skips_service(self, now):
        service = StaticReasoning("unused")
        empty = resolve([], [Participant("a", "Ana")], 60)
        explain(empty, service, timeout=1)
        assert service.calls == 0
        assert "No open time" in empty.rationale

"""Tests for priority scoring."""

from datetime import timedelta

import pytest

from catchup.core.contacts import ContactSignals, Frequency
from catchup.core.scoring import (
    ScoringWeights,
    filter_confident,
    filter_due,
    metadata_points,
    metadata_richness,
    rank_contacts,
    recency_decay,
    score_contact,
)

from conftest import make_contact


class TestRecencyDecay:
    def test_zero_below_threshold(self):
        assert recency_decay(0, 30) == 0.0
        assert recency_decay(15, 30) == 0.0
        assert recency_decay(29, 30) == 0.0

    def test_half_at_threshold(self):
        assert recency_decay(30, 30) == 0.5

    def test_full_at_double_threshold_and_beyond(self):
        assert recency_decay(60, 30) == 1.0
        assert recency_decay(600, 30) == 1.0

    def test_monotonic_non_decreasing(self):
        for threshold in (1, 7, 30, 60, 365):
            values = [recency_decay(d, threshold) for d in range(0, threshold * 3)]
            assert values == sorted(values)

    def test_zero_at_or_below_half_threshold(self):
        for threshold in (1, 7, 30, 60, 365):
            for d in range(0, threshold // 2 + 1):
                assert recency_decay(d, threshold) == 0.0


class TestMetadataRichness:
    def test_empty_contact_is_zero(self, now):
        assert metadata_richness(make_contact("a", now)) == 0.0

    def test_points(self, now):
        contact = make_contact(
            "a",
            now,
            has_birthday=True,
            email_count=2,
            phone_count=1,
            has_notes=True,
        )
        assert metadata_points(contact) == 10 + 10 + 5 + 10

    def test_phone_points_capped(self, now):
        contact = make_contact("a", now, phone_count=10)
        assert metadata_points(contact) == 15

    def test_normalized_and_capped(self, now):
        contact = make_contact(
            "a",
            now,
            has_birthday=True,
            email_count=3,
            phone_count=3,
            has_address=True,
            has_company=True,
            has_job_title=True,
            has_notes=True,
            social_profile_count=4,
        )
        assert metadata_points(contact) > 50
        assert metadata_richness(contact) == 1.0


class TestScoringWeights:
    def test_defaults_sum_to_one(self):
        w = ScoringWeights()
        assert w.shared_events + w.metadata + w.contact_age + w.frequency + w.recency == pytest.approx(1.0)

    def test_must_sum_to_one(self):
        with pytest.raises(ValueError):
            ScoringWeights(shared_events=0.9)

    def test_parse(self):
        w = ScoringWeights.parse("shared_events:0.4, metadata:0.25")
        assert w.shared_events == 0.4
        assert w.metadata == 0.25
        assert w.recency == 0.10

    def test_parse_unknown_key(self):
        with pytest.raises(ValueError):
            ScoringWeights.parse("vibes:1.0")


class TestScoreContact:
    def test_missing_signals_score_zero_not_error(self, now):
        contact = ContactSignals(id="new", name="New", created_at=now)
        score = score_contact(contact, now)
        assert score.score == 0.0
        assert score.days_since_contact == 0
        assert not score.due

    def test_unset_frequency_defaults_to_monthly(self, now):
        score = score_contact(make_contact("a", now, days_since=31), now)
        assert score.threshold_days == 30
        assert score.due

    def test_last_contact_defaults_to_created_at(self, now):
        contact = ContactSignals(id="a", name="A", created_at=now - timedelta(days=40))
        score = score_contact(contact, now)
        assert score.days_since_contact == 40
        assert score.due

    def test_weighted_sum(self, now):
        contact = make_contact(
            "a",
            now,
            days_since=60,
            shared_event_count=5,
            interactions_per_month=2,
            created_at=now - timedelta(days=365),
        )
        score = score_contact(contact, now)
        expected = 0.35 * 0.5 + 0.30 * 0.0 + 0.15 * 1.0 + 0.10 * 0.5 + 0.10 * 1.0
        assert score.score == pytest.approx(expected)
        assert score.components["shared_events"] == 0.5

    def test_frequency_threshold(self, now):
        weekly = score_contact(make_contact("a", now, days_since=8, frequency=Frequency.WEEKLY), now)
        yearly = score_contact(make_contact("b", now, days_since=8, frequency=Frequency.YEARLY), now)
        assert weekly.due
        assert not yearly.due

    def test_shared_events_rank_highly_without_recency(self, now):
        """Twelve shared events, seen today: no decay, but still near the top."""
        busy_friend = make_contact("busy", now, days_since=0, shared_event_count=12)
        acquaintance = make_contact("acq", now, days_since=45)

        ranked = rank_contacts([acquaintance, busy_friend], now)
        top = ranked[0]
        assert top.contact_id == "busy"
        assert top.decay == 0.0
        assert top.components["shared_events"] == 1.0
        assert not top.due

    def test_reasoning_mentions_gap(self, now):
        score = score_contact(make_contact("a", now, days_since=45), now)
        assert "45 days" in score.reasoning


class TestRankContacts:
    def test_descending_score(self, now):
        contacts = [
            make_contact("low", now),
            make_contact("high", now, shared_event_count=10),
            make_contact("mid", now, shared_event_count=4),
        ]
        ranked = rank_contacts(contacts, now)
        assert [s.contact_id for s in ranked] == ["high", "mid", "low"]

    def test_close_friends_win_ties(self, now):
        contacts = [
            make_contact("a", now),
            make_contact("b", now, groups=frozenset({"Close Friends"})),
        ]
        ranked = rank_contacts(contacts, now)
        assert [s.contact_id for s in ranked] == ["b", "a"]

    def test_skips_archived(self, now):
        ranked = rank_contacts([make_contact("a", now, archived=True)], now)
        assert ranked == []

    def test_filters(self, now):
        contacts = [make_contact("due", now, days_since=45), make_contact("fresh", now, days_since=2)]
        ranked = rank_contacts(contacts, now)
        assert [s.contact_id for s in filter_due(ranked)] == ["due"]
        assert filter_confident(ranked, 0.99) == []

"""Tests for the click CLI."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from catchup.adapters.file_store import JsonSuggestionStore
from catchup.batch import BatchResult
from catchup.cli import main
from catchup.config import Config
from catchup.core.availability import AvailabilityWindow
from catchup.core.suggestions import SuggestionKind, SuggestionStatus, TriggerType, new_suggestion


@pytest.fixture
def config(tmp_path):
    return Config(users=["alice"], data_dir=str(tmp_path))


@pytest.fixture
def runner(config):
    with patch("catchup.cli.load_config", return_value=config):
        yield CliRunner()


@pytest.fixture
def stored(tmp_path):
    start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=2)
    s = new_suggestion(
        user_id="alice",
        kind=SuggestionKind.INDIVIDUAL,
        contact_ids=("ana",),
        trigger_type=TriggerType.TIME_BOUND,
        window=AvailabilityWindow(start, start + timedelta(hours=1), "UTC", True),
        priority_score=0.4,
        now=datetime.now(timezone.utc),
        reasoning="It's been 45 days since you connected",
    )
    JsonSuggestionStore(tmp_path).add_many([s])
    return s


class TestPending:
    def test_empty(self, runner):
        result = runner.invoke(main, ["pending"])
        assert result.exit_code == 0
        assert "No pending suggestions." in result.output

    def test_json(self, runner, stored):
        result = runner.invoke(main, ["pending", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [d["id"] for d in data] == [stored.id]
        assert data[0]["trigger_type"] == "time_bound"


class TestDecisions:
    def test_accept_by_short_id(self, runner, stored, tmp_path):
        result = runner.invoke(main, ["accept", stored.id[:8]])
        assert result.exit_code == 0, result.output
        assert f"Accepted {stored.id[:8]}" in result.output
        assert JsonSuggestionStore(tmp_path).get(stored.id).status is SuggestionStatus.ACCEPTED
        assert (tmp_path / "alice" / "feed.ics").exists()

    def test_dismiss_unknown(self, runner):
        result = runner.invoke(main, ["dismiss", "nope"])
        assert result.exit_code == 1
        assert "Suggestion not found: nope" in result.output

    def test_batch_accept_reports_rejections(self, runner, stored, tmp_path):
        result = runner.invoke(main, ["batch-accept", stored.id, "missing"])
        assert result.exit_code == 1
        assert "nothing accepted" in result.output
        assert "missing: not found" in result.output
        assert JsonSuggestionStore(tmp_path).get(stored.id).status is SuggestionStatus.PENDING


class TestGenerate:
    def test_all_users(self, runner):
        batch = MagicMock()
        batch.run_all.return_value = {
            "alice": BatchResult("alice"),
            "bob": BatchResult("bob", errors=["calendar down"]),
        }
        with patch("catchup.cli.get_batch", return_value=batch):
            result = runner.invoke(main, ["generate", "--all"])

        assert result.exit_code == 0
        assert "alice: 0 created" in result.output
        assert "bob: failed (calendar down)" in result.output

    def test_no_availability(self, runner):
        batch = MagicMock()
        batch.generate_batch.return_value = BatchResult("alice", no_availability=True)
        with patch("catchup.cli.get_batch", return_value=batch):
            result = runner.invoke(main, ["generate"])

        assert result.exit_code == 0
        assert "No open time in the next 14 days." in result.output

"""Tests for the Claude CLI reasoning adapter."""

import subprocess
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from catchup.adapters.claude_cli import ClaudeCLIService, build_explain_prompt
from catchup.core.availability import AvailabilityWindow
from catchup.core.conflicts import Participant, rank_windows
from catchup.errors import UpstreamUnavailable


@pytest.fixture
def ranked(now):
    start = (now + timedelta(days=1)).replace(hour=18)
    windows = [AvailabilityWindow(start, start + timedelta(hours=3), "UTC", True)]
    return rank_windows(windows, [Participant("a", "Ana"), Participant("n", "Nia", must_attend=False)], 120)


def completed(stdout="", returncode=0, stderr=""):
    return MagicMock(stdout=stdout, returncode=returncode, stderr=stderr)


class TestBuildExplainPrompt:
    def test_lists_ranked_windows(self, ranked):
        prompt = build_explain_prompt(ranked)
        assert "1. " in prompt
        assert "1/1 must-attend, 1/1 nice-to-have" in prompt
        assert "Do not reorder" in prompt

    def test_empty(self):
        assert "(no candidate times)" in build_explain_prompt([])


class TestClaudeCLIService:
    @patch("catchup.adapters.claude_cli.subprocess.run")
    def test_explain_returns_stripped_output(self, mock_run, ranked):
        mock_run.return_value = completed("  Tuesday works for everyone.\n")
        service = ClaudeCLIService(timeout=5)

        assert service.explain(ranked) == "Tuesday works for everyone."
        args, kwargs = mock_run.call_args
        assert args[0][1] == "-p"
        assert kwargs["timeout"] == 5

    @patch("catchup.adapters.claude_cli.subprocess.run")
    def test_timeout(self, mock_run, ranked):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="claude", timeout=5)
        with pytest.raises(UpstreamUnavailable, match="timed out"):
            ClaudeCLIService(timeout=5).explain(ranked)

    @patch("catchup.adapters.claude_cli.subprocess.run")
    def test_missing_binary(self, mock_run, ranked):
        mock_run.side_effect = FileNotFoundError()
        with pytest.raises(UpstreamUnavailable, match="not found"):
            ClaudeCLIService().explain(ranked)

    @patch("catchup.adapters.claude_cli.subprocess.run")
    def test_nonzero_exit(self, mock_run, ranked):
        mock_run.return_value = completed(returncode=1, stderr="auth required")
        with pytest.raises(UpstreamUnavailable, match="auth required"):
            ClaudeCLIService().generate("hi")

    @patch("catchup.adapters.claude_cli.subprocess.run")
    def test_empty_output(self, mock_run, ranked):
        mock_run.return_value = completed("\n")
        with pytest.raises(UpstreamUnavailable):
            ClaudeCLIService().explain(ranked)

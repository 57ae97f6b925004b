"""Reasoning service interface."""

from typing import Protocol

from catchup.core.conflicts import WindowCoverage


class ReasoningService(Protocol):
    """Interface for natural-language explanation of ranked windows."""

    def explain(self, ranked_windows: list[WindowCoverage]) -> str:
        """Free-text rationale for an already-computed ranking."""
        ...

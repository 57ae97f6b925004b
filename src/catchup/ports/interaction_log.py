"""Interaction log interface."""

from datetime import datetime
from typing import Protocol

from catchup.core.suggestions import InteractionEntry


class InteractionLog(Protocol):
    """Interface for recording interactions with contacts."""

    def record(self, entry: InteractionEntry) -> None:
        ...

    def latest_by_contact(self, user_id: str) -> dict[str, datetime]:
        """Most recent interaction time per contact id."""
        ...

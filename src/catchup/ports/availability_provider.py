"""Availability provider interface."""

from datetime import date
from typing import Protocol

from catchup.core.availability import AvailabilityWindow


class AvailabilityProvider(Protocol):
    """Interface for a user's free time, already filtered by availability rules."""

    def get_free_windows(self, user_id: str, start_date: date, end_date: date) -> list[AvailabilityWindow]:
        """Free windows between two dates (inclusive), chronological."""
        ...

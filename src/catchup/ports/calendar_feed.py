"""Calendar feed publisher interface."""

from typing import Protocol

from catchup.core.suggestions import Suggestion


class CalendarFeedPublisher(Protocol):
    """Interface for the user's subscribed calendar feed."""

    def publish(self, suggestion: Suggestion) -> None:
        """Add or refresh an event for an accepted suggestion."""
        ...

    def retract(self, user_id: str, suggestion_id: str) -> None:
        """Remove a previously published event."""
        ...

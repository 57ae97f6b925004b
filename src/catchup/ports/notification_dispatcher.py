"""Notification dispatcher interface."""

from typing import Protocol

from catchup.core.suggestions import Suggestion


class NotificationDispatcher(Protocol):
    """Interface for telling the user about suggestions. Delivery is best-effort."""

    async def send_digest(self, user_id: str, suggestions: list[Suggestion]) -> None:
        ...

    async def notify_accepted(self, user_id: str, suggestion: Suggestion) -> None:
        ...

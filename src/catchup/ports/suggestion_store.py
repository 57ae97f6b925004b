"""Suggestion storage interface."""

from typing import Protocol

from catchup.core.suggestions import Suggestion


class SuggestionStore(Protocol):
    """Interface for persisting suggestion records with optimistic concurrency."""

    def list_for_user(self, user_id: str) -> list[Suggestion]:
        """All suggestions for a user, any status."""
        ...

    def get(self, suggestion_id: str) -> Suggestion | None:
        ...

    def add_many(self, suggestions: list[Suggestion]) -> None:
        ...

    def update(self, suggestion: Suggestion, expected_version: int) -> Suggestion:
        """Replace a record if its stored version matches. Raises ConflictError."""
        ...

    def update_many(self, changes: list[tuple[Suggestion, int]]) -> list[Suggestion]:
        """Apply several (record, expected_version) updates atomically."""
        ...

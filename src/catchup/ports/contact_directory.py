"""Contact directory interface."""

from datetime import datetime
from typing import Protocol

from catchup.core.contacts import ContactSignals, SharedHistory


class ContactDirectory(Protocol):
    """Interface for reading contact signals and the few writes the engine makes."""

    def list_contacts(self, user_id: str) -> list[ContactSignals]:
        """Signal snapshot of every contact for a user."""
        ...

    def shared_history(self, user_id: str) -> SharedHistory:
        """Co-mention and joint-interaction data for group matching."""
        ...

    def get_contact(self, user_id: str, contact_id: str) -> ContactSignals | None:
        ...

    def update_last_contact(self, user_id: str, contact_id: str, when: datetime) -> None:
        ...

    def flag_frequency_reprompt(self, user_id: str, contact_id: str) -> None:
        """Ask the user to revisit how often they want to see this contact."""
        ...

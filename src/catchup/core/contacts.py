"""Contact signal snapshot - the read-only view the scorer and matchers use."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .availability import AvailabilityWindow


class Frequency(Enum):
    """How often the user wants to hear from a contact."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    FLEXIBLE = "flexible"

    @property
    def threshold_days(self) -> int:
        match self:
            case Frequency.DAILY:
                return 1
            case Frequency.WEEKLY:
                return 7
            case Frequency.MONTHLY:
                return 30
            case Frequency.YEARLY:
                return 365
            case Frequency.FLEXIBLE:
                return 60


class CommunicationMode(Enum):
    """Preferred way of meeting a contact."""

    IN_PERSON = "in_person"
    REMOTE = "remote"


DEFAULT_FREQUENCY = Frequency.MONTHLY
DEFAULT_DURATION_MINUTES = 60


@dataclass(frozen=True)
class ContactSignals:
    """Relationship signals for one contact."""

    id: str
    name: str
    created_at: datetime
    frequency: Frequency | None = None
    last_contact: datetime | None = None
    mode: CommunicationMode = CommunicationMode.IN_PERSON
    groups: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()
    location: str = ""
    shared_event_count: int = 0
    interactions_per_month: float = 0.0
    has_birthday: bool = False
    email_count: int = 0
    phone_count: int = 0
    has_address: bool = False
    has_company: bool = False
    has_job_title: bool = False
    has_notes: bool = False
    social_profile_count: int = 0
    preferred_duration_minutes: int = DEFAULT_DURATION_MINUTES
    archived: bool = False
    # Contact's own free time when known; None means assume free
    availability: tuple[AvailabilityWindow, ...] | None = None

    @property
    def effective_frequency(self) -> Frequency:
        return self.frequency or DEFAULT_FREQUENCY

    @property
    def effective_last_contact(self) -> datetime:
        """Last contact, falling back to when the contact entered the account."""
        return self.last_contact or self.created_at

    @property
    def is_close_friend(self) -> bool:
        return any("close" in g.lower() for g in self.groups)

    @property
    def attributes(self) -> frozenset[str]:
        """Groups and tags as one namespaced attribute set."""
        return frozenset(f"group:{g}" for g in self.groups) | frozenset(f"tag:{t}" for t in self.tags)

    def days_since_contact(self, now: datetime) -> int:
        return max(0, (now - self.effective_last_contact).days)

    def contact_age_days(self, now: datetime) -> int:
        return max(0, (now - self.created_at).days)


@dataclass(frozen=True)
class SharedHistory:
    """Co-occurrence data used by group matching.

    Each entry is the set of contact ids that appeared together: one per
    voice-capture session, or one per recent joint interaction.
    """

    mention_sessions: tuple[frozenset[str], ...] = ()
    joint_interactions: tuple[frozenset[str], ...] = ()

    def co_mentions(self, contact_ids: frozenset[str]) -> int:
        return sum(1 for s in self.mention_sessions if contact_ids <= s)

    def joint_interaction_count(self, contact_ids: frozenset[str]) -> int:
        return sum(1 for s in self.joint_interactions if contact_ids <= s)


def index_by_id(contacts: list[ContactSignals]) -> dict[str, ContactSignals]:
    return {c.id: c for c in contacts}


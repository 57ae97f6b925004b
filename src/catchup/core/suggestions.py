"""Suggestion records and their state machine - pure, no I/O."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from catchup.errors import InputError, InvalidTransition

from .availability import AvailabilityWindow

MET_TOO_RECENTLY = "met too recently"
CANCELLED = "cancelled"

DISMISSAL_REASONS = [
    "Met too recently",
    "Not interested in connecting right now",
    "Timing doesn't work",
    "Prefer to connect at a different time",
]


class SuggestionKind(Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class TriggerType(Enum):
    """Why a suggestion was generated."""

    TIME_BOUND = "time_bound"  # Overdue per frequency preference
    SHARED_ACTIVITY = "shared_activity"  # Tied to an existing calendar event


class SuggestionStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    SNOOZED = "snoozed"

    @property
    def is_terminal(self) -> bool:
        match self:
            case SuggestionStatus.ACCEPTED | SuggestionStatus.DISMISSED:
                return True
            case SuggestionStatus.PENDING | SuggestionStatus.SNOOZED:
                return False


@dataclass(frozen=True)
class Suggestion:
    """A recommendation to reconnect with one contact or a small group."""

    id: str
    user_id: str
    kind: SuggestionKind
    contact_ids: tuple[str, ...]
    trigger_type: TriggerType
    proposed_window: AvailabilityWindow
    priority_score: float
    created_at: datetime
    reasoning: str = ""
    shared_context_score: int | None = None
    status: SuggestionStatus = SuggestionStatus.PENDING
    snooze_until: datetime | None = None
    dismissal_reason: str | None = None
    calendar_event_id: str | None = None
    activity: str | None = None
    decided_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1

    def __post_init__(self):
        if not self.contact_ids:
            raise ValueError("Suggestion needs at least one contact")
        if len(set(self.contact_ids)) != len(self.contact_ids):
            raise ValueError(f"Duplicate contact ids in suggestion: {self.contact_ids}")
        match self.kind:
            case SuggestionKind.INDIVIDUAL:
                if len(self.contact_ids) != 1:
                    raise ValueError("Individual suggestions have exactly one contact")
            case SuggestionKind.GROUP:
                if not 2 <= len(self.contact_ids) <= 3:
                    raise ValueError("Group suggestions have 2-3 contacts")

    @property
    def key(self) -> tuple[frozenset[str], TriggerType]:
        """Identity used to avoid recreating an open suggestion."""
        return frozenset(self.contact_ids), self.trigger_type

    def is_open(self, now: datetime) -> bool:
        return not effective_status(self, now).is_terminal


def new_suggestion(
    user_id: str,
    kind: SuggestionKind,
    contact_ids: tuple[str, ...],
    trigger_type: TriggerType,
    window: AvailabilityWindow,
    priority_score: float,
    now: datetime,
    reasoning: str = "",
    shared_context_score: int | None = None,
    calendar_event_id: str | None = None,
    activity: str | None = None,
) -> Suggestion:
    return Suggestion(
        id=uuid.uuid4().hex,
        user_id=user_id,
        kind=kind,
        contact_ids=tuple(contact_ids),
        trigger_type=trigger_type,
        proposed_window=window,
        priority_score=priority_score,
        created_at=now,
        reasoning=reasoning,
        shared_context_score=shared_context_score,
        calendar_event_id=calendar_event_id,
        activity=activity,
        updated_at=now,
    )


def effective_status(s: Suggestion, now: datetime) -> SuggestionStatus:
    """Status as seen at `now` - an elapsed snooze reads as pending."""
    if s.status is SuggestionStatus.SNOOZED and s.snooze_until is not None and s.snooze_until <= now:
        return SuggestionStatus.PENDING
    return s.status


def wake_if_due(s: Suggestion, now: datetime) -> Suggestion | None:
    """The woken record for an elapsed snooze, or None if nothing changes."""
    if s.status is SuggestionStatus.SNOOZED and effective_status(s, now) is SuggestionStatus.PENDING:
        return replace(s, status=SuggestionStatus.PENDING, snooze_until=None, updated_at=now, version=s.version + 1)
    return None


def can_transition(current: SuggestionStatus, target: SuggestionStatus) -> bool:
    match current:
        case SuggestionStatus.PENDING:
            return target in (SuggestionStatus.ACCEPTED, SuggestionStatus.DISMISSED, SuggestionStatus.SNOOZED)
        case SuggestionStatus.SNOOZED:
            return target is SuggestionStatus.PENDING
        case SuggestionStatus.ACCEPTED | SuggestionStatus.DISMISSED:
            return False


def transition(
    s: Suggestion,
    target: SuggestionStatus,
    now: datetime,
    *,
    snooze_until: datetime | None = None,
    reason: str | None = None,
) -> Suggestion:
    """
    Apply a status change, returning the next version of the record.

    Snoozes that have elapsed are treated as pending. Raises InvalidTransition.
    """
    current = effective_status(s, now)
    if not can_transition(current, target):
        raise InvalidTransition(s.id, current, target)

    changes: dict = {"status": target, "updated_at": now, "version": s.version + 1}
    match target:
        case SuggestionStatus.ACCEPTED:
            changes.update(decided_at=now, snooze_until=None)
        case SuggestionStatus.DISMISSED:
            changes.update(decided_at=now, snooze_until=None, dismissal_reason=reason or "")
        case SuggestionStatus.SNOOZED:
            if snooze_until is None or snooze_until <= now:
                raise InputError("Snooze time must be in the future")
            changes.update(snooze_until=snooze_until)
        case SuggestionStatus.PENDING:
            changes.update(snooze_until=None)
    return replace(s, **changes)


def cancel_accepted(s: Suggestion, now: datetime) -> Suggestion:
    """Withdraw an accepted suggestion - the one exit from accepted."""
    if s.status is not SuggestionStatus.ACCEPTED:
        raise InvalidTransition(s.id, s.status, SuggestionStatus.DISMISSED)
    return replace(
        s,
        status=SuggestionStatus.DISMISSED,
        dismissal_reason=CANCELLED,
        updated_at=now,
        version=s.version + 1,
    )


def is_met_too_recently(reason: str | None) -> bool:
    return bool(reason) and MET_TOO_RECENTLY in reason.lower()


# ============== Batch selection ==============


@dataclass
class SuggestionFilters:
    """Optional filters for pending queries."""

    trigger_type: TriggerType | None = None
    kind: SuggestionKind | None = None
    contact_id: str | None = None

    def matches(self, s: Suggestion) -> bool:
        if self.trigger_type is not None and s.trigger_type is not self.trigger_type:
            return False
        if self.kind is not None and s.kind is not self.kind:
            return False
        if self.contact_id is not None and self.contact_id not in s.contact_ids:
            return False
        return True


@dataclass
class SelectionState:
    """What is already open for a user when a new batch is selected."""

    open_keys: set[tuple[frozenset[str], TriggerType]] = field(default_factory=set)
    busy_contacts: set[str] = field(default_factory=set)
    open_count: int = 0

    @classmethod
    def from_existing(cls, existing: list[Suggestion], now: datetime) -> "SelectionState":
        state = cls()
        for s in existing:
            if s.is_open(now):
                state.open_keys.add(s.key)
                state.busy_contacts.update(s.contact_ids)
                state.open_count += 1
        return state


def select_batch(
    candidates: list[Suggestion],
    state: SelectionState,
    max_open: int,
) -> list[Suggestion]:
    """
    Choose which new suggestions to create.

    Highest priority first, larger groups first on ties. A candidate is
    skipped when its (contacts, trigger) key is already open or any of its
    contacts is already in an open or newly selected suggestion. Total
    open suggestions stay within max_open. Pure function - no I/O.
    """
    budget = max(0, max_open - state.open_count)
    used = set(state.busy_contacts)
    selected = []
    ordered = sorted(
        candidates,
        key=lambda s: (-s.priority_score, -len(s.contact_ids), s.proposed_window.start, s.contact_ids),
    )
    for s in ordered:
        if len(selected) >= budget:
            break
        if s.key in state.open_keys:
            continue
        if used.intersection(s.contact_ids):
            continue
        selected.append(s)
        used.update(s.contact_ids)
    return selected


@dataclass(frozen=True)
class InteractionEntry:
    """An interaction logged when a suggestion is accepted."""

    user_id: str
    contact_id: str
    timestamp: datetime
    type: str
    source_suggestion_id: str | None = None


def interactions_for(s: Suggestion, now: datetime) -> list[InteractionEntry]:
    """One interaction per contact in an accepted suggestion."""
    interaction_type = "group_hangout" if s.kind is SuggestionKind.GROUP else "hangout"
    return [InteractionEntry(s.user_id, cid, now, interaction_type, s.id) for cid in s.contact_ids]

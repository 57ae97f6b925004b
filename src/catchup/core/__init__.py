"""Functional core - pure scoring, matching and lifecycle logic with no I/O."""

from .availability import AvailabilityWindow, AvailabilityRules, BusyBlock, find_free_windows
from .contacts import CommunicationMode, ContactSignals, Frequency, SharedHistory
from .scoring import ContactScore, ScoringWeights, rank_contacts, recency_decay, score_contact
from .matching import Assignment, CalendarEvent, MatchResult, match_event_invitees, match_timeslots
from .groups import GroupCandidate, SharedContext, find_candidate_groups, shared_context
from .conflicts import (
    ActivityType,
    ConflictResolution,
    Participant,
    ResolutionStatus,
    WindowCoverage,
    rank_windows,
    resolve,
)
from .suggestions import (
    InteractionEntry,
    Suggestion,
    SuggestionFilters,
    SuggestionKind,
    SuggestionStatus,
    TriggerType,
    select_batch,
    transition,
)

__all__ = [
    # Availability
    "AvailabilityWindow",
    "AvailabilityRules",
    "BusyBlock",
    "find_free_windows",
    # Contacts
    "CommunicationMode",
    "ContactSignals",
    "Frequency",
    "SharedHistory",
    # Scoring
    "ContactScore",
    "ScoringWeights",
    "rank_contacts",
    "recency_decay",
    "score_contact",
    # Matching
    "Assignment",
    "CalendarEvent",
    "MatchResult",
    "match_event_invitees",
    "match_timeslots",
    # Groups
    "GroupCandidate",
    "SharedContext",
    "find_candidate_groups",
    "shared_context",
    # Conflicts
    "ActivityType",
    "ConflictResolution",
    "Participant",
    "ResolutionStatus",
    "WindowCoverage",
    "rank_windows",
    "resolve",
    # Suggestions
    "InteractionEntry",
    "Suggestion",
    "SuggestionFilters",
    "SuggestionKind",
    "SuggestionStatus",
    "TriggerType",
    "select_batch",
    "transition",
]

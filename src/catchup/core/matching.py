"""Pure timeslot matching - assigns scored contacts to open windows."""

import re
from dataclasses import dataclass, field
from datetime import datetime

from .availability import AvailabilityWindow
from .contacts import CommunicationMode, ContactSignals
from .scoring import ContactScore, priority_key


@dataclass
class Assignment:
    """A contact paired with the window proposed for it (or None)."""

    contact_id: str
    score: ContactScore
    window: AvailabilityWindow | None


@dataclass
class MatchResult:
    assignments: list[Assignment] = field(default_factory=list)
    no_availability: bool = False

    def matched(self) -> list[Assignment]:
        return [a for a in self.assignments if a.window is not None]


def mode_compatible(contact: ContactSignals, window: AvailabilityWindow) -> bool:
    """In-person contacts need an in-person capable window; remote fits anywhere."""
    match contact.mode:
        case CommunicationMode.IN_PERSON:
            return window.in_person
        case CommunicationMode.REMOTE:
            return True


def first_fitting_window(
    contact: ContactSignals,
    windows: list[AvailabilityWindow],
    duration_minutes: int | None = None,
) -> AvailabilityWindow | None:
    """First chronological window long enough and mode-compatible for a contact."""
    needed = duration_minutes or contact.preferred_duration_minutes
    for window in windows:
        if window.duration_minutes() >= needed and mode_compatible(contact, window):
            return window
    return None


def match_timeslots(
    ranked: list[ContactScore],
    windows: list[AvailabilityWindow],
    contacts: dict[str, ContactSignals],
) -> MatchResult:
    """
    Assign each ranked contact the first window that fits it.

    Windows are not consumed: several contacts may be offered the same slot.
    Pure function - no I/O.
    """
    if not windows:
        return MatchResult(no_availability=True)

    ordered_windows = sorted(windows, key=lambda w: (w.start, w.end))
    result = MatchResult()
    for score in sorted(ranked, key=priority_key):
        contact = contacts.get(score.contact_id)
        if contact is None:
            continue
        window = first_fitting_window(contact, ordered_windows)
        result.assignments.append(Assignment(contact.id, score, window))
    return result


# ============== Shared activity ==============

_STOP_WORDS = {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}

INTEREST_POINTS = 10
PROXIMITY_POINTS = 20
LONG_TIME_POINTS = 5
LONG_TIME_DAYS = 30


@dataclass(frozen=True)
class CalendarEvent:
    """An existing calendar event that friends could be invited to."""

    id: str
    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    timezone: str = "UTC"

    def as_window(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            start=self.start,
            end=self.end,
            timezone=self.timezone,
            in_person=bool(self.location),
        )


@dataclass
class EventMatch:
    contact_id: str
    score: ContactScore
    points: int
    reasons: list[str]


def extract_keywords(title: str, description: str = "") -> list[str]:
    """Lowercased content words from event text, first ten."""
    words = re.findall(r"[a-z0-9']+", f"{title} {description}".lower())
    return [w for w in words if len(w) > 3 and w not in _STOP_WORDS][:10]


def match_event_invitees(
    event: CalendarEvent,
    scores: list[ContactScore],
    contacts: dict[str, ContactSignals],
    now: datetime,
    floor: float = 0.0,
) -> list[EventMatch]:
    """
    Pick contacts worth inviting to an existing event.

    Interest overlap, location proximity and a long gap since contact each
    add points; contacts with no points or below the confidence floor are
    skipped. Pure function - no I/O.
    """
    keywords = extract_keywords(event.title, event.description)
    event_loc = event.location.lower().strip()

    matches = []
    for score in scores:
        contact = contacts.get(score.contact_id)
        if contact is None or contact.archived or score.score < floor:
            continue

        points = 0
        reasons = []

        tag_texts = [t.lower() for t in contact.tags]
        shared = [k for k in keywords if any(k in t or t in k for t in tag_texts)]
        if shared:
            points += INTEREST_POINTS * len(shared)
            reasons.append(f"Shared interests: {', '.join(shared)}")

        contact_loc = contact.location.lower().strip()
        if event_loc and contact_loc and (contact_loc in event_loc or event_loc in contact_loc):
            points += PROXIMITY_POINTS
            reasons.append(f"Located in {contact.location}")

        # Interest or proximity is required; a long gap alone is not a reason to invite
        if points == 0:
            continue

        days = contact.days_since_contact(now)
        if days > LONG_TIME_DAYS:
            points += LONG_TIME_POINTS
            reasons.append(f"Haven't connected in {days} days")

        matches.append(EventMatch(contact.id, score, points, reasons))

    return sorted(matches, key=lambda m: (-m.points, *priority_key(m.score)))

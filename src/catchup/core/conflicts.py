"""Pure conflict resolution for multi-person gatherings.

Ranking is always computed here, locally and deterministically. Only the
free-text rationale may come from an external reasoning service.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .availability import AvailabilityWindow
from .contacts import CommunicationMode

TOP_WINDOWS = 3


class ActivityType(Enum):
    """Kinds of gathering, each with a default duration."""

    DINNER = "dinner"
    ACTIVITY = "activity"
    COFFEE = "coffee"
    OTHER = "other"
    VIDEO_CALL = "video_call"

    @property
    def duration_minutes(self) -> int:
        match self:
            case ActivityType.DINNER | ActivityType.ACTIVITY:
                return 120
            case ActivityType.COFFEE | ActivityType.OTHER:
                return 60
            case ActivityType.VIDEO_CALL:
                return 30

    @property
    def remote(self) -> bool:
        return self is ActivityType.VIDEO_CALL


class ResolutionStatus(Enum):
    RECOMMENDED = "recommended"
    ALTERNATIVES = "alternatives"
    UNRESOLVABLE = "unresolvable"


class OptionKind(Enum):
    DROP_NICE_TO_HAVE = "drop_nice_to_have"
    SHORTER_ACTIVITY = "shorter_activity"


@dataclass(frozen=True)
class Participant:
    """Someone invited to a gathering."""

    contact_id: str
    name: str
    must_attend: bool = True
    mode: CommunicationMode = CommunicationMode.IN_PERSON
    # None means availability unknown - assume free
    availability: tuple[AvailabilityWindow, ...] | None = None


@dataclass
class WindowCoverage:
    """Best sub-slot inside one candidate window and who can make it."""

    window: AvailabilityWindow
    slot_start: datetime
    slot_end: datetime
    must_available: list[str]
    nice_available: list[str]
    must_total: int
    nice_total: int

    @property
    def must_count(self) -> int:
        return len(self.must_available)

    @property
    def nice_count(self) -> int:
        return len(self.nice_available)

    @property
    def full_must_coverage(self) -> bool:
        return self.must_count == self.must_total

    @property
    def slot(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            start=self.slot_start,
            end=self.slot_end,
            timezone=self.window.timezone,
            in_person=self.window.in_person,
        )

    def summary(self) -> str:
        when = self.slot_start.strftime("%a %b %d %H:%M")
        text = f"{self.must_count} of {self.must_total} must-attend free at {when}"
        if self.nice_total:
            text += f", {self.nice_count} of {self.nice_total} nice-to-have"
        return text


@dataclass
class ResolutionOption:
    """A concrete compromise for one of the top-ranked windows."""

    kind: OptionKind
    coverage: WindowCoverage
    drop: list[str] = field(default_factory=list)
    activity: ActivityType | None = None

    def describe(self, names: dict[str, str]) -> str:
        when = self.coverage.slot_start.strftime("%a %b %d %H:%M")
        match self.kind:
            case OptionKind.DROP_NICE_TO_HAVE:
                dropped = ", ".join(names.get(i, i) for i in self.drop)
                return f"Go ahead at {when} without {dropped} (optional)"
            case OptionKind.SHORTER_ACTIVITY:
                label = self.activity.value.replace("_", " ") if self.activity else "shorter activity"
                return f"Switch to a {label} at {when} so every must-attend can join"


@dataclass
class ConflictResolution:
    status: ResolutionStatus
    ranked: list[WindowCoverage]
    options: list[ResolutionOption] = field(default_factory=list)
    rationale: str = ""
    rationale_source: str = "template"

    @property
    def recommended(self) -> WindowCoverage | None:
        if self.status is ResolutionStatus.RECOMMENDED:
            return self.ranked[0]
        return None


def _free_over(p: Participant, start: datetime, end: datetime, window: AvailabilityWindow) -> bool:
    if p.mode is CommunicationMode.IN_PERSON and not window.in_person:
        return False
    if p.availability is None:
        return True
    return any(w.covers(start, end) for w in p.availability)


def window_coverage(
    window: AvailabilityWindow,
    participants: list[Participant],
    duration_minutes: int,
) -> WindowCoverage | None:
    """
    Find the sub-slot of a window that fits the most participants.

    Candidate starts are the window start and every participant free-interval
    start inside the window. The best start maximizes (must-attend, nice-to-have)
    coverage, earliest first. Returns None if the window is too short.
    """
    duration = timedelta(minutes=duration_minutes)
    if window.end - window.start < duration:
        return None

    starts = {window.start}
    for p in participants:
        for free in p.availability or ():
            if window.start < free.start and free.start + duration <= window.end:
                starts.add(free.start)

    must = [p for p in participants if p.must_attend]
    nice = [p for p in participants if not p.must_attend]

    best: WindowCoverage | None = None
    for start in sorted(starts):
        end = start + duration
        must_ok = [p.contact_id for p in must if _free_over(p, start, end, window)]
        nice_ok = [p.contact_id for p in nice if _free_over(p, start, end, window)]
        if best is None or (len(must_ok), len(nice_ok)) > (best.must_count, best.nice_count):
            best = WindowCoverage(window, start, end, must_ok, nice_ok, len(must), len(nice))
    return best


def coverage_key(c: WindowCoverage) -> tuple[int, int, datetime]:
    return (-c.must_count, -c.nice_count, c.slot_start)


def rank_windows(
    windows: list[AvailabilityWindow],
    participants: list[Participant],
    duration_minutes: int,
) -> list[WindowCoverage]:
    """
    Rank windows by must-attend coverage, then nice-to-have coverage, then time.

    Pure function - no I/O.
    """
    coverages = []
    for window in windows:
        coverage = window_coverage(window, participants, duration_minutes)
        if coverage is not None:
            coverages.append(coverage)
    return sorted(coverages, key=coverage_key)


def _shorter_activities(duration_minutes: int) -> list[ActivityType]:
    """Activity types shorter than the requested duration, longest first."""
    seen = set()
    shorter = []
    for activity in sorted(ActivityType, key=lambda a: -a.duration_minutes):
        if activity.duration_minutes < duration_minutes and activity.duration_minutes not in seen:
            seen.add(activity.duration_minutes)
            shorter.append(activity)
    return shorter


def propose_options(
    ranked: list[WindowCoverage],
    participants: list[Participant],
    duration_minutes: int,
    top: int = TOP_WINDOWS,
) -> list[ResolutionOption]:
    """Compromises for the top-ranked windows."""
    nice_ids = [p.contact_id for p in participants if not p.must_attend]
    options = []
    for coverage in ranked[:top]:
        if coverage.full_must_coverage:
            missing_nice = [i for i in nice_ids if i not in coverage.nice_available]
            if missing_nice:
                options.append(ResolutionOption(OptionKind.DROP_NICE_TO_HAVE, coverage, drop=missing_nice))
            continue

        for activity in _shorter_activities(duration_minutes):
            shorter_participants = participants
            if activity.remote:
                # A call works from anywhere
                shorter_participants = [
                    Participant(p.contact_id, p.name, p.must_attend, CommunicationMode.REMOTE, p.availability)
                    for p in participants
                ]
            shorter = window_coverage(coverage.window, shorter_participants, activity.duration_minutes)
            if shorter is not None and shorter.full_must_coverage:
                missing_nice = [i for i in nice_ids if i not in shorter.nice_available]
                options.append(
                    ResolutionOption(OptionKind.SHORTER_ACTIVITY, shorter, drop=missing_nice, activity=activity)
                )
                break
    return options


def template_rationale(resolution: ConflictResolution, names: dict[str, str] | None = None) -> str:
    """Plain rationale built from the structured ranking."""
    names = names or {}
    if not resolution.ranked:
        return "No open time in the search window fits this gathering."

    lines = []
    match resolution.status:
        case ResolutionStatus.RECOMMENDED:
            lines.append(f"Recommended: {resolution.ranked[0].summary()}.")
        case ResolutionStatus.ALTERNATIVES:
            lines.append("No time works for everyone who must attend. Best options:")
            lines.extend(f"- {c.summary()}" for c in resolution.ranked[:TOP_WINDOWS])
        case ResolutionStatus.UNRESOLVABLE:
            lines.append("None of the must-attend participants are free in the search window.")
    lines.extend(f"- {o.describe(names)}" for o in resolution.options)
    return "\n".join(lines)


def resolve(
    windows: list[AvailabilityWindow],
    participants: list[Participant],
    duration_minutes: int,
) -> ConflictResolution:
    """
    Rank candidate windows and propose compromises.

    Pure function - no I/O. The rationale is templated; callers may replace
    it with one from a reasoning service.
    """
    ranked = rank_windows(windows, participants, duration_minutes)

    if ranked and ranked[0].full_must_coverage:
        status = ResolutionStatus.RECOMMENDED
    elif ranked and ranked[0].must_count > 0:
        status = ResolutionStatus.ALTERNATIVES
    else:
        status = ResolutionStatus.UNRESOLVABLE

    resolution = ConflictResolution(
        status=status,
        ranked=ranked,
        options=propose_options(ranked, participants, duration_minutes),
    )
    names = {p.contact_id: p.name for p in participants}
    resolution.rationale = template_rationale(resolution, names)
    return resolution

"""On-demand planning for a gathering the user wants to organize."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from .core.conflicts import ActivityType, ConflictResolution, Participant, resolve
from .core.contacts import CommunicationMode, index_by_id
from .errors import InputError
from .ports.availability_provider import AvailabilityProvider
from .ports.contact_directory import ContactDirectory
from .ports.reasoning_service import ReasoningService
from .resolution import DEFAULT_TIMEOUT, explain

logger = logging.getLogger(__name__)


@dataclass
class GatheringPlan:
    user_id: str
    activity: ActivityType
    duration_minutes: int
    participants: list[Participant]
    resolution: ConflictResolution

    @property
    def names(self) -> dict[str, str]:
        return {p.contact_id: p.name for p in self.participants}

    def format(self) -> str:
        lines = [f"{self.activity.value.replace('_', ' ').title()} ({self.duration_minutes} min)"]
        lines.append(f"Status: {self.resolution.status.value}")
        for i, coverage in enumerate(self.resolution.ranked[:3], start=1):
            lines.append(f"{i}. {coverage.slot.format()} - {coverage.summary()}")
        for option in self.resolution.options:
            lines.append(f"  * {option.describe(self.names)}")
        if self.resolution.rationale:
            lines.append("")
            lines.append(self.resolution.rationale)
        return "\n".join(lines)


def plan_gathering(
    user_id: str,
    must_attend: list[str],
    nice_to_have: list[str],
    availability: AvailabilityProvider,
    directory: ContactDirectory,
    activity: ActivityType = ActivityType.DINNER,
    reasoning: ReasoningService | None = None,
    horizon_days: int = 14,
    timeout: float = DEFAULT_TIMEOUT,
    now: datetime | None = None,
) -> GatheringPlan:
    """
    Rank the user's open windows for a gathering and propose compromises.

    Raises InputError for an empty must-attend list, unknown contacts or a
    non-positive horizon. UpstreamUnavailable from the availability
    provider propagates.
    """
    if not must_attend:
        raise InputError("At least one must-attend contact is required")
    if horizon_days <= 0:
        raise InputError("Search horizon must be at least one day")
    overlap = set(must_attend) & set(nice_to_have)
    if overlap:
        raise InputError(f"Contacts listed as both must-attend and nice-to-have: {', '.join(sorted(overlap))}")

    now = now or datetime.now().astimezone()
    contacts = index_by_id(directory.list_contacts(user_id))
    unknown = [cid for cid in [*must_attend, *nice_to_have] if cid not in contacts]
    if unknown:
        raise InputError(f"Unknown contact(s): {', '.join(unknown)}")

    participants = []
    for cid, required in [*((c, True) for c in must_attend), *((c, False) for c in nice_to_have)]:
        contact = contacts[cid]
        participants.append(
            Participant(
                contact_id=cid,
                name=contact.name,
                must_attend=required,
                mode=CommunicationMode.REMOTE if activity.remote else contact.mode,
                availability=contact.availability,
            )
        )

    start = now.date()
    windows = availability.get_free_windows(user_id, start, start + timedelta(days=horizon_days))
    windows = [w for w in windows if w.start >= now]
    logger.debug(f"Planning {activity.value} for {user_id} over {len(windows)} window(s)")

    resolution = resolve(windows, participants, activity.duration_minutes)
    explain(resolution, reasoning, timeout, {p.contact_id: p.name for p in participants})
    logger.info(f"Gathering plan for {user_id}: {resolution.status.value} ({len(resolution.ranked)} windows)")

    return GatheringPlan(
        user_id=user_id,
        activity=activity,
        duration_minutes=activity.duration_minutes,
        participants=participants,
        resolution=resolution,
    )

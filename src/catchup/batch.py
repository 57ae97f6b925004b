"""Batch suggestion generation.

Each user's batch is scored and matched from a single snapshot of contacts
and availability. A per-user lock keeps scheduled and manual runs from
interleaving; users never share state, so they run in parallel.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from statistics import mean
from typing import Callable

from .core.availability import AvailabilityWindow
from .core.conflicts import Participant, ResolutionStatus, resolve
from .core.contacts import ContactSignals, SharedHistory, index_by_id
from .core.groups import GroupCandidate, find_candidate_groups
from .core.matching import CalendarEvent, match_event_invitees, match_timeslots
from .core.scoring import ContactScore, ScoringWeights, filter_confident, filter_due, rank_contacts
from .core.suggestions import (
    SelectionState,
    Suggestion,
    SuggestionKind,
    SuggestionStatus,
    TriggerType,
    new_suggestion,
    select_batch,
)
from .errors import InputError
from .ports.availability_provider import AvailabilityProvider
from .ports.contact_directory import ContactDirectory
from .ports.suggestion_store import SuggestionStore

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 14
DEFAULT_MAX_OPEN = 10
DEFAULT_INTERVAL_HOURS = 6


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class BatchResult:
    """Outcome of one user's batch run."""

    user_id: str
    created: list[Suggestion] = field(default_factory=list)
    # Due contacts that had no fitting window
    skipped_no_availability: list[str] = field(default_factory=list)
    no_availability: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def slot_for(window: AvailabilityWindow, duration_minutes: int) -> AvailabilityWindow:
    """The leading part of a window, sized to the activity."""
    end = min(window.end, window.start + timedelta(minutes=duration_minutes))
    return AvailabilityWindow(window.start, end, window.timezone, window.in_person)


def group_priority(member_scores: list[float], context_score: int) -> float:
    """Mean member priority lifted by shared context, capped at 1."""
    if not member_scores:
        return 0.0
    return round(min(1.0, mean(member_scores) + context_score / 200), 4)


def participants_for(candidate: GroupCandidate, contacts: dict[str, ContactSignals]) -> list[Participant]:
    return [
        Participant(
            contact_id=cid,
            name=contacts[cid].name,
            must_attend=True,
            mode=contacts[cid].mode,
            availability=contacts[cid].availability,
        )
        for cid in candidate.contact_ids
    ]


def committed_contacts(existing: list[Suggestion], now: datetime) -> set[str]:
    """Contacts with an accepted suggestion whose proposed time is still ahead."""
    committed = set()
    for s in existing:
        if s.status is SuggestionStatus.ACCEPTED and s.proposed_window.end > now:
            committed.update(s.contact_ids)
    return committed


class BatchScheduler:
    """Generates bounded, deduplicated suggestion batches per user."""

    def __init__(
        self,
        availability: AvailabilityProvider,
        directory: ContactDirectory,
        store: SuggestionStore,
        weights: ScoringWeights | None = None,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        max_open: int = DEFAULT_MAX_OPEN,
        confidence_floor: float = 0.0,
        clock: Callable[[], datetime] = _now,
    ):
        if horizon_days <= 0:
            raise InputError("Search horizon must be at least one day")
        self.availability = availability
        self.directory = directory
        self.store = store
        self.weights = weights or ScoringWeights()
        self.horizon_days = horizon_days
        self.max_open = max_open
        self.confidence_floor = confidence_floor
        self.clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config, availability, directory, store) -> "BatchScheduler":
        return cls(
            availability=availability,
            directory=directory,
            store=store,
            weights=config.scoring_weights,
            horizon_days=config.search_horizon_days,
            max_open=config.max_open_suggestions,
            confidence_floor=config.confidence_floor,
        )

    def lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(user_id, threading.Lock())

    def _upcoming_windows(self, user_id: str, now: datetime) -> list[AvailabilityWindow]:
        start = now.date()
        end = start + timedelta(days=self.horizon_days)
        windows = self.availability.get_free_windows(user_id, start, end)
        return [w for w in windows if w.start >= now]

    # ============== Time-bound batch ==============

    def generate_batch(self, user_id: str) -> BatchResult:
        """
        Score, match and store a new batch for one user.

        Re-running on an unchanged snapshot creates nothing: open
        (contacts, trigger) keys are never recreated and a contact already in
        an open suggestion is not reused.
        """
        if not user_id:
            raise InputError("user_id is required")

        with self.lock_for(user_id):
            now = self.clock()
            result = BatchResult(user_id=user_id)

            contacts = self.directory.list_contacts(user_id)
            by_id = index_by_id(contacts)
            ranked = filter_confident(rank_contacts(contacts, now, self.weights), self.confidence_floor)
            due = filter_due(ranked)
            if not due:
                logger.info(f"No contacts due for {user_id}")
                return result

            windows = self._upcoming_windows(user_id, now)
            match = match_timeslots(due, windows, by_id)
            if match.no_availability:
                logger.info(f"No availability for {user_id} in the next {self.horizon_days} days")
                result.no_availability = True
                result.skipped_no_availability = [s.contact_id for s in due]
                return result

            candidates = []
            for a in match.assignments:
                if a.window is None:
                    result.skipped_no_availability.append(a.contact_id)
                    continue
                contact = by_id[a.contact_id]
                candidates.append(
                    new_suggestion(
                        user_id=user_id,
                        kind=SuggestionKind.INDIVIDUAL,
                        contact_ids=(contact.id,),
                        trigger_type=TriggerType.TIME_BOUND,
                        window=slot_for(a.window, contact.preferred_duration_minutes),
                        priority_score=a.score.score,
                        now=now,
                        reasoning=a.score.reasoning,
                    )
                )

            existing = self.store.list_for_user(user_id)
            candidates.extend(self._group_candidates(user_id, due, by_id, windows, existing, now))

            selected = select_batch(candidates, SelectionState.from_existing(existing, now), self.max_open)
            if selected:
                self.store.add_many(selected)
            result.created = selected

            logger.info(
                f"Batch for {user_id}: {len(selected)} created, "
                f"{len(result.skipped_no_availability)} without a fitting window"
            )
            return result

    def _group_candidates(
        self,
        user_id: str,
        due: list[ContactScore],
        contacts: dict[str, ContactSignals],
        windows: list[AvailabilityWindow],
        existing: list[Suggestion],
        now: datetime,
    ) -> list[Suggestion]:
        """Group suggestions where every member is due and all can make one window."""
        committed = committed_contacts(existing, now)
        scores = {s.contact_id: s for s in due}
        eligible = [contacts[cid] for cid in scores if cid not in committed]
        if len(eligible) < 2:
            return []

        history = self.directory.shared_history(user_id)
        suggestions = []
        for candidate in find_candidate_groups(eligible, history):
            participants = participants_for(candidate, contacts)
            resolution = resolve(windows, participants, candidate.suggested_duration)
            if resolution.status is not ResolutionStatus.RECOMMENDED:
                logger.debug(f"Group {candidate.contact_ids} has no shared window: {resolution.status.value}")
                continue

            names = ", ".join(contacts[cid].name for cid in candidate.contact_ids)
            suggestions.append(
                new_suggestion(
                    user_id=user_id,
                    kind=SuggestionKind.GROUP,
                    contact_ids=candidate.contact_ids,
                    trigger_type=TriggerType.TIME_BOUND,
                    window=resolution.recommended.slot,
                    priority_score=group_priority([scores[cid].score for cid in candidate.contact_ids], candidate.score),
                    now=now,
                    reasoning=f"Get {names} together. {candidate.context.describe()}",
                    shared_context_score=candidate.score,
                )
            )
        return suggestions

    # ============== Shared activity ==============

    def suggest_for_event(self, user_id: str, event: CalendarEvent) -> BatchResult:
        """Suggest contacts (and small groups) to invite to an existing event."""
        if not user_id:
            raise InputError("user_id is required")
        if event.end <= event.start:
            raise InputError(f"Event {event.id} ends before it starts")

        with self.lock_for(user_id):
            now = self.clock()
            result = BatchResult(user_id=user_id)
            if event.end <= now:
                logger.info(f"Event {event.id} is already over, nothing to suggest")
                return result

            contacts = self.directory.list_contacts(user_id)
            by_id = index_by_id(contacts)
            ranked = rank_contacts(contacts, now, self.weights)
            matches = match_event_invitees(event, ranked, by_id, now, self.confidence_floor)
            if not matches:
                logger.info(f"No contacts match event {event.id} for {user_id}")
                return result

            window = event.as_window()
            candidates = []
            for m in matches:
                candidates.append(
                    new_suggestion(
                        user_id=user_id,
                        kind=SuggestionKind.INDIVIDUAL,
                        contact_ids=(m.contact_id,),
                        trigger_type=TriggerType.SHARED_ACTIVITY,
                        window=window,
                        priority_score=m.score.score,
                        now=now,
                        reasoning=f"Invite to {event.title}: " + "; ".join(m.reasons),
                        calendar_event_id=event.id,
                    )
                )

            matched = [by_id[m.contact_id] for m in matches]
            if len(matched) >= 2:
                history = self.directory.shared_history(user_id)
                scores = {m.contact_id: m.score.score for m in matches}
                for candidate in find_candidate_groups(matched, history):
                    participants = participants_for(candidate, by_id)
                    resolution = resolve([window], participants, window.duration_minutes())
                    if resolution.status is not ResolutionStatus.RECOMMENDED:
                        continue
                    names = ", ".join(by_id[cid].name for cid in candidate.contact_ids)
                    candidates.append(
                        new_suggestion(
                            user_id=user_id,
                            kind=SuggestionKind.GROUP,
                            contact_ids=candidate.contact_ids,
                            trigger_type=TriggerType.SHARED_ACTIVITY,
                            window=window,
                            priority_score=group_priority([scores[cid] for cid in candidate.contact_ids], candidate.score),
                            now=now,
                            reasoning=f"Invite {names} to {event.title}. {candidate.context.describe()}",
                            shared_context_score=candidate.score,
                            calendar_event_id=event.id,
                        )
                    )

            existing = self.store.list_for_user(user_id)
            selected = select_batch(candidates, SelectionState.from_existing(existing, now), self.max_open)
            if selected:
                self.store.add_many(selected)
            result.created = selected
            logger.info(f"Event {event.id} for {user_id}: {len(selected)} suggestion(s) created")
            return result

    # ============== All users ==============

    def _safe_generate(self, user_id: str) -> BatchResult:
        try:
            return self.generate_batch(user_id)
        except Exception as e:
            logger.error(f"Batch failed for {user_id}: {e}")
            return BatchResult(user_id=user_id, errors=[str(e)])

    def run_all(self, user_ids: list[str], max_workers: int = 4) -> dict[str, BatchResult]:
        """Run every user's batch; one user's failure never stops the others."""
        if not user_ids:
            return {}

        with ThreadPoolExecutor(max_workers=min(max_workers, len(user_ids))) as pool:
            results = list(pool.map(self._safe_generate, user_ids))

        failed = [r.user_id for r in results if not r.ok]
        logger.info(f"Batch run finished: {len(results) - len(failed)} ok, {len(failed)} failed")
        return {r.user_id: r for r in results}


def add_batch_job(scheduler, batch: BatchScheduler, user_ids: list[str], interval_hours: int = DEFAULT_INTERVAL_HOURS):
    """Register the recurring batch run on an APScheduler scheduler."""
    from apscheduler.triggers.interval import IntervalTrigger

    scheduler.add_job(
        batch.run_all,
        IntervalTrigger(hours=interval_hours),
        args=[user_ids],
        id="generate_batches",
        name="Generate suggestion batches",
        next_run_time=datetime.now().astimezone(),
        replace_existing=True,
    )
    logger.info(f"Batch generation scheduled every {interval_hours}h for {len(user_ids)} user(s)")
    return scheduler


def create_scheduler(
    batch: BatchScheduler,
    user_ids: list[str],
    interval_hours: int = DEFAULT_INTERVAL_HOURS,
    timezone: str = "America/Toronto",
):
    """Blocking scheduler that regenerates batches on a fixed cadence."""
    from apscheduler.schedulers.blocking import BlockingScheduler

    scheduler = BlockingScheduler(timezone=timezone)
    return add_batch_job(scheduler, batch, user_ids, interval_hours)

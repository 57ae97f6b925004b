"""Suggestion lifecycle - the only place suggestion status changes.

Every write goes through the store with the version the caller read, so a
concurrent writer makes the slower one fail with ConflictError instead of
silently overwriting.
"""

import logging
from datetime import datetime
from typing import Callable

from .core.suggestions import (
    Suggestion,
    SuggestionFilters,
    SuggestionStatus,
    can_transition,
    cancel_accepted,
    effective_status,
    interactions_for,
    is_met_too_recently,
    transition,
    wake_if_due,
)
from .errors import BatchAcceptError, ConflictError, InputError, Rejection, SuggestionNotFound
from .ports.calendar_feed import CalendarFeedPublisher
from .ports.contact_directory import ContactDirectory
from .ports.interaction_log import InteractionLog
from .ports.suggestion_store import SuggestionStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now().astimezone()


class SuggestionLifecycle:
    """Transitions, side effects and queries over stored suggestions."""

    def __init__(
        self,
        store: SuggestionStore,
        directory: ContactDirectory,
        interactions: InteractionLog,
        feed: CalendarFeedPublisher | None = None,
        clock: Callable[[], datetime] = _now,
    ):
        self.store = store
        self.directory = directory
        self.interactions = interactions
        self.feed = feed
        self.clock = clock

    def _get(self, suggestion_id: str) -> Suggestion:
        s = self.store.get(suggestion_id)
        if s is None:
            raise SuggestionNotFound(suggestion_id)
        return s

    # ============== Queries ==============

    def list_pending(self, user_id: str, filters: SuggestionFilters | None = None) -> list[Suggestion]:
        """
        Pending suggestions, highest priority first.

        Snoozes that have elapsed are woken here and written back; if another
        writer got there first the fresh record is used instead.
        """
        filters = filters or SuggestionFilters()
        now = self.clock()

        pending = []
        for s in self.store.list_for_user(user_id):
            woken = wake_if_due(s, now)
            if woken is not None:
                try:
                    s = self.store.update(woken, expected_version=s.version)
                    logger.debug(f"Snooze elapsed for suggestion {s.id}")
                except ConflictError:
                    s = self._get(s.id)
            if effective_status(s, now) is SuggestionStatus.PENDING and filters.matches(s):
                pending.append(s)

        return sorted(pending, key=lambda s: (-s.priority_score, s.proposed_window.start, s.id))

    def list_recently_accepted(self, user_id: str, since: datetime) -> list[Suggestion]:
        accepted = [
            s
            for s in self.store.list_for_user(user_id)
            if s.status is SuggestionStatus.ACCEPTED and s.decided_at is not None and s.decided_at >= since
        ]
        return sorted(accepted, key=lambda s: s.decided_at, reverse=True)

    # ============== Transitions ==============

    def _after_accept(self, s: Suggestion) -> None:
        for entry in interactions_for(s, s.decided_at or self.clock()):
            self.interactions.record(entry)
        if self.feed is None:
            return
        try:
            self.feed.publish(s)
        except Exception as e:
            logger.error(f"Accepted {s.id} but could not publish it to the calendar feed: {e}")

    def accept(self, suggestion_id: str) -> Suggestion:
        """Accept a pending suggestion, log the interactions and publish it."""
        current = self._get(suggestion_id)
        updated = self.store.update(transition(current, SuggestionStatus.ACCEPTED, self.clock()), current.version)
        self._after_accept(updated)
        logger.info(f"Accepted suggestion {updated.id} for {updated.user_id}")
        return updated

    def dismiss(self, suggestion_id: str, reason: str | None = None) -> Suggestion:
        """
        Dismiss a pending suggestion.

        "Met too recently" resets each contact's last-contact time and asks
        the user to revisit their frequency preference.
        """
        now = self.clock()
        current = self._get(suggestion_id)
        updated = self.store.update(
            transition(current, SuggestionStatus.DISMISSED, now, reason=reason),
            current.version,
        )

        if is_met_too_recently(reason):
            for contact_id in updated.contact_ids:
                self.directory.update_last_contact(updated.user_id, contact_id, now)
                self.directory.flag_frequency_reprompt(updated.user_id, contact_id)

        logger.info(f"Dismissed suggestion {updated.id} ({reason or 'no reason'})")
        return updated

    def snooze(self, suggestion_id: str, until: datetime) -> Suggestion:
        current = self._get(suggestion_id)
        updated = self.store.update(
            transition(current, SuggestionStatus.SNOOZED, self.clock(), snooze_until=until),
            current.version,
        )
        logger.info(f"Snoozed suggestion {updated.id} until {until.isoformat()}")
        return updated

    def cancel(self, suggestion_id: str) -> Suggestion:
        """Withdraw an accepted suggestion and pull it from the calendar feed."""
        current = self._get(suggestion_id)
        updated = self.store.update(cancel_accepted(current, self.clock()), current.version)
        if self.feed is not None:
            try:
                self.feed.retract(updated.user_id, updated.id)
            except Exception as e:
                logger.error(f"Cancelled {updated.id} but could not retract it from the calendar feed: {e}")
        logger.info(f"Cancelled suggestion {updated.id}")
        return updated

    def batch_accept(self, user_id: str, suggestion_ids: list[str]) -> list[Suggestion]:
        """
        Accept several suggestions at once - all or nothing.

        Every id is validated before anything is written. Any rejection
        raises BatchAcceptError listing each rejected id and why.
        """
        if not suggestion_ids:
            raise InputError("No suggestions to accept")

        now = self.clock()
        rejected: list[Rejection] = []
        changes: list[tuple[Suggestion, int]] = []
        seen = set()

        for suggestion_id in suggestion_ids:
            if suggestion_id in seen:
                rejected.append(Rejection(suggestion_id, "listed more than once"))
                continue
            seen.add(suggestion_id)

            s = self.store.get(suggestion_id)
            if s is None:
                rejected.append(Rejection(suggestion_id, "not found"))
                continue
            if s.user_id != user_id:
                rejected.append(Rejection(suggestion_id, "belongs to another user"))
                continue

            current = effective_status(s, now)
            if not can_transition(current, SuggestionStatus.ACCEPTED):
                rejected.append(Rejection(suggestion_id, f"status is {current.value}"))
                continue
            changes.append((transition(s, SuggestionStatus.ACCEPTED, now), s.version))

        if rejected:
            raise BatchAcceptError(rejected)

        updated = self.store.update_many(changes)
        for s in updated:
            self._after_accept(s)
        logger.info(f"Batch accepted {len(updated)} suggestion(s) for {user_id}")
        return updated

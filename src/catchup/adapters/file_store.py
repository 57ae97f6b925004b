"""JSON file storage for suggestions."""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path

from catchup.core.availability import AvailabilityWindow
from catchup.core.suggestions import Suggestion, SuggestionKind, SuggestionStatus, TriggerType
from catchup.errors import ConflictError, SuggestionNotFound

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    """ISO timestamp; one without an offset is read as local time."""
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.astimezone()


def _dt(value: str | None) -> datetime | None:
    return parse_timestamp(value) if value else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def window_to_dict(w: AvailabilityWindow) -> dict:
    return {"start": w.start.isoformat(), "end": w.end.isoformat(), "timezone": w.timezone, "in_person": w.in_person}


def window_from_dict(data: dict) -> AvailabilityWindow:
    return AvailabilityWindow(
        start=parse_timestamp(data["start"]),
        end=parse_timestamp(data["end"]),
        timezone=data.get("timezone", "UTC"),
        in_person=data.get("in_person", True),
    )


def suggestion_to_dict(s: Suggestion) -> dict:
    return {
        "id": s.id,
        "user_id": s.user_id,
        "kind": s.kind.value,
        "contact_ids": list(s.contact_ids),
        "trigger_type": s.trigger_type.value,
        "proposed_window": window_to_dict(s.proposed_window),
        "priority_score": s.priority_score,
        "created_at": _iso(s.created_at),
        "reasoning": s.reasoning,
        "shared_context_score": s.shared_context_score,
        "status": s.status.value,
        "snooze_until": _iso(s.snooze_until),
        "dismissal_reason": s.dismissal_reason,
        "calendar_event_id": s.calendar_event_id,
        "activity": s.activity,
        "decided_at": _iso(s.decided_at),
        "updated_at": _iso(s.updated_at),
        "version": s.version,
    }


def suggestion_from_dict(data: dict) -> Suggestion:
    return Suggestion(
        id=data["id"],
        user_id=data["user_id"],
        kind=SuggestionKind(data["kind"]),
        contact_ids=tuple(data["contact_ids"]),
        trigger_type=TriggerType(data["trigger_type"]),
        proposed_window=window_from_dict(data["proposed_window"]),
        priority_score=data["priority_score"],
        created_at=parse_timestamp(data["created_at"]),
        reasoning=data.get("reasoning", ""),
        shared_context_score=data.get("shared_context_score"),
        status=SuggestionStatus(data.get("status", "pending")),
        snooze_until=_dt(data.get("snooze_until")),
        dismissal_reason=data.get("dismissal_reason"),
        calendar_event_id=data.get("calendar_event_id"),
        activity=data.get("activity"),
        decided_at=_dt(data.get("decided_at")),
        updated_at=_dt(data.get("updated_at")),
        version=data.get("version", 1),
    )


class JsonSuggestionStore:
    """
    JSON file suggestion storage.

    Implements SuggestionStore protocol. All users share one file; every
    read-modify-write happens under a lock and checks record versions.
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir).expanduser()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.data_dir / "suggestions.json"
        self._lock = threading.RLock()

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt suggestion store {self.path}: {e}")
            raise
        return {item["id"]: item for item in data.get("suggestions", [])}

    def _save(self, records: dict[str, dict]) -> None:
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps({"suggestions": list(records.values())}, indent=2))
        tmp.replace(self.path)

    def list_for_user(self, user_id: str) -> list[Suggestion]:
        with self._lock:
            records = self._load()
        return [suggestion_from_dict(r) for r in records.values() if r["user_id"] == user_id]

    def get(self, suggestion_id: str) -> Suggestion | None:
        with self._lock:
            record = self._load().get(suggestion_id)
        return suggestion_from_dict(record) if record else None

    def add_many(self, suggestions: list[Suggestion]) -> None:
        with self._lock:
            records = self._load()
            for s in suggestions:
                if s.id in records:
                    raise ValueError(f"Suggestion already exists: {s.id}")
                records[s.id] = suggestion_to_dict(s)
            self._save(records)
        logger.debug(f"Stored {len(suggestions)} new suggestion(s)")

    @staticmethod
    def _check(records: dict[str, dict], s: Suggestion, expected_version: int) -> None:
        current = records.get(s.id)
        if current is None:
            raise SuggestionNotFound(s.id)
        actual = current.get("version", 1)
        if actual != expected_version:
            raise ConflictError(s.id, expected_version, actual)

    def update(self, suggestion: Suggestion, expected_version: int) -> Suggestion:
        with self._lock:
            records = self._load()
            self._check(records, suggestion, expected_version)
            records[suggestion.id] = suggestion_to_dict(suggestion)
            self._save(records)
        return suggestion

    def update_many(self, changes: list[tuple[Suggestion, int]]) -> list[Suggestion]:
        """All versions are checked before anything is written."""
        with self._lock:
            records = self._load()
            for s, expected_version in changes:
                self._check(records, s, expected_version)
            for s, _ in changes:
                records[s.id] = suggestion_to_dict(s)
            self._save(records)
        return [s for s, _ in changes]

"""Subscribable iCalendar feed of accepted suggestions.

Each user gets data/<user_id>/feed.json (published events) and a
feed.ics rendered from it that calendar apps can subscribe to.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from catchup.core.suggestions import Suggestion, SuggestionKind
from catchup.ports.contact_directory import ContactDirectory

logger = logging.getLogger(__name__)

PRODID = "-//catchup//suggestions//EN"
LINE_OCTETS = 75


def _ics_time(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def _fold(line: str) -> str:
    """Fold a content line so no physical line exceeds 75 UTF-8 octets."""
    parts, current, size = [], "", 0
    for ch in line:
        width = len(ch.encode("utf-8"))
        if size + width > LINE_OCTETS:
            parts.append(current)
            # Continuation lines start with a single space
            current, size = " ", 1
        current += ch
        size += width
    parts.append(current)
    return "\r\n".join(parts)


def render_calendar(events: list[dict]) -> str:
    """Render stored events as an iCalendar document."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", f"PRODID:{PRODID}", "X-WR-CALNAME:Catch-ups"]
    for event in sorted(events, key=lambda e: e["start"]):
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:{event['uid']}",
                f"DTSTAMP:{_ics_time(datetime.fromisoformat(event['published_at']))}",
                f"DTSTART:{_ics_time(datetime.fromisoformat(event['start']))}",
                f"DTEND:{_ics_time(datetime.fromisoformat(event['end']))}",
                f"SUMMARY:{_escape(event['summary'])}",
                f"DESCRIPTION:{_escape(event['description'])}",
                "END:VEVENT",
            ]
        )
    lines.append("END:VCALENDAR")
    return "\r\n".join(_fold(line) for line in lines) + "\r\n"


class IcsCalendarFeed:
    """
    File-based calendar feed.

    Implements CalendarFeedPublisher protocol.
    """

    def __init__(self, data_dir: Path | str, directory: ContactDirectory | None = None):
        self.data_dir = Path(data_dir).expanduser()
        self.directory = directory
        self._lock = threading.Lock()

    def _events_path(self, user_id: str) -> Path:
        return self.data_dir / user_id / "feed.json"

    def feed_path(self, user_id: str) -> Path:
        return self.data_dir / user_id / "feed.ics"

    def _load(self, user_id: str) -> dict[str, dict]:
        path = self._events_path(user_id)
        if not path.exists():
            return {}
        return json.loads(path.read_text())

    def _save(self, user_id: str, events: dict[str, dict]) -> None:
        path = self._events_path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(events, indent=2))
        self.feed_path(user_id).write_text(render_calendar(list(events.values())), encoding="utf-8")

    def _names(self, s: Suggestion) -> list[str]:
        if self.directory is None:
            return list(s.contact_ids)
        names = []
        for cid in s.contact_ids:
            contact = self.directory.get_contact(s.user_id, cid)
            names.append(contact.name if contact else cid)
        return names

    def publish(self, suggestion: Suggestion) -> None:
        names = ", ".join(self._names(suggestion))
        label = suggestion.activity.replace("_", " ").title() if suggestion.activity else "Catch up"
        if suggestion.kind is SuggestionKind.GROUP:
            summary = f"{label}: {names}"
        else:
            summary = f"{label} with {names}"

        with self._lock:
            events = self._load(suggestion.user_id)
            events[suggestion.id] = {
                "uid": f"{suggestion.id}@catchup",
                "start": suggestion.proposed_window.start.isoformat(),
                "end": suggestion.proposed_window.end.isoformat(),
                "summary": summary,
                "description": suggestion.reasoning,
                "published_at": (suggestion.decided_at or datetime.now().astimezone()).isoformat(),
            }
            self._save(suggestion.user_id, events)
        logger.info(f"Published {suggestion.id} to feed for {suggestion.user_id}")

    def retract(self, user_id: str, suggestion_id: str) -> None:
        with self._lock:
            events = self._load(user_id)
            if events.pop(suggestion_id, None) is None:
                logger.warning(f"Nothing to retract for {suggestion_id}")
                return
            self._save(user_id, events)
        logger.info(f"Retracted {suggestion_id} from feed for {user_id}")

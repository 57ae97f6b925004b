"""Append-only JSON Lines interaction log."""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path

from catchup.core.suggestions import InteractionEntry

from .file_store import parse_timestamp

logger = logging.getLogger(__name__)


class JsonlInteractionLog:
    """
    File-based interaction log.

    Implements InteractionLog protocol. Each user gets data/<user_id>/interactions.jsonl.
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir).expanduser()
        self._lock = threading.Lock()

    def _path_for_user(self, user_id: str) -> Path:
        return self.data_dir / user_id / "interactions.jsonl"

    def record(self, entry: InteractionEntry) -> None:
        path = self._path_for_user(entry.user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(
            {
                "user_id": entry.user_id,
                "contact_id": entry.contact_id,
                "timestamp": entry.timestamp.isoformat(),
                "type": entry.type,
                "source_suggestion_id": entry.source_suggestion_id,
            }
        )
        with self._lock, path.open("a") as f:
            f.write(line + "\n")

    def entries(self, user_id: str) -> list[InteractionEntry]:
        path = self._path_for_user(user_id)
        if not path.exists():
            return []

        entries = []
        for line_no, line in enumerate(path.read_text().splitlines(), start=1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                entries.append(
                    InteractionEntry(
                        user_id=data["user_id"],
                        contact_id=data["contact_id"],
                        timestamp=parse_timestamp(data["timestamp"]),
                        type=data.get("type", "hangout"),
                        source_suggestion_id=data.get("source_suggestion_id"),
                    )
                )
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Skipping bad interaction line {line_no} in {path}: {e}")
        return entries

    def latest_by_contact(self, user_id: str) -> dict[str, datetime]:
        latest: dict[str, datetime] = {}
        for entry in self.entries(user_id):
            if entry.contact_id not in latest or entry.timestamp > latest[entry.contact_id]:
                latest[entry.contact_id] = entry.timestamp
        return latest

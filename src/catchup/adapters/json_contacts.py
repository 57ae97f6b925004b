"""JSON file contact directory adapter.

Reads data/<user_id>/contacts.json:

    {
      "contacts": [{"id": "c1", "name": "Sam", "created_at": "2025-01-04T00:00:00+00:00",
                    "frequency": "monthly", "groups": ["Close Friends"], ...}],
      "mention_sessions": [["c1", "c2"]],
      "joint_interactions": [{"contact_ids": ["c1", "c2"], "date": "2026-09-01T19:00:00+00:00"}]
    }
"""

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

from catchup.core.contacts import CommunicationMode, ContactSignals, Frequency, SharedHistory
from catchup.ports.interaction_log import InteractionLog

from .file_store import parse_timestamp, window_from_dict

logger = logging.getLogger(__name__)

JOINT_INTERACTION_DAYS = 90


def _parse_frequency(value: str | None) -> Frequency | None:
    if not value:
        return None
    try:
        return Frequency(value.lower())
    except ValueError:
        logger.warning(f"Unknown frequency '{value}', using default")
        return None


def contact_from_dict(data: dict) -> ContactSignals:
    """Build a signal snapshot from a stored contact. Missing fields read as empty."""
    availability = data.get("availability")
    return ContactSignals(
        id=data["id"],
        name=data.get("name", data["id"]),
        created_at=parse_timestamp(data["created_at"]),
        frequency=_parse_frequency(data.get("frequency")),
        last_contact=parse_timestamp(data["last_contact"]) if data.get("last_contact") else None,
        mode=CommunicationMode(data.get("mode", "in_person")),
        groups=frozenset(data.get("groups", [])),
        tags=frozenset(data.get("tags", [])),
        location=data.get("location", ""),
        shared_event_count=data.get("shared_event_count", 0),
        interactions_per_month=data.get("interactions_per_month", 0.0),
        has_birthday=bool(data.get("birthday")),
        email_count=len(data.get("emails", [])),
        phone_count=len(data.get("phones", [])),
        has_address=bool(data.get("address")),
        has_company=bool(data.get("company")),
        has_job_title=bool(data.get("job_title")),
        has_notes=bool(data.get("notes")),
        social_profile_count=len(data.get("social_profiles", [])),
        preferred_duration_minutes=data.get("preferred_duration_minutes", 60),
        archived=data.get("archived", False),
        availability=tuple(window_from_dict(w) for w in availability) if availability is not None else None,
    )


class JsonContactDirectory:
    """
    File-based contact directory.

    Implements ContactDirectory protocol. When an interaction log is given,
    a contact's last contact is the later of the stored value and the most
    recent logged interaction.
    """

    def __init__(self, data_dir: Path | str, interactions: InteractionLog | None = None):
        self.data_dir = Path(data_dir).expanduser()
        self.interactions = interactions
        self._lock = threading.Lock()

    def _path_for_user(self, user_id: str) -> Path:
        return self.data_dir / user_id / "contacts.json"

    def _load(self, user_id: str) -> dict:
        path = self._path_for_user(user_id)
        if not path.exists():
            logger.warning(f"No contacts file for {user_id}: {path}")
            return {"contacts": []}
        return json.loads(path.read_text())

    def _save(self, user_id: str, data: dict) -> None:
        path = self._path_for_user(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    def list_contacts(self, user_id: str) -> list[ContactSignals]:
        data = self._load(user_id)
        latest = self.interactions.latest_by_contact(user_id) if self.interactions else {}

        contacts = []
        for item in data.get("contacts", []):
            try:
                contact = contact_from_dict(item)
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed contact for {user_id}: {e}")
                continue
            logged = latest.get(contact.id)
            if logged and (contact.last_contact is None or logged > contact.last_contact):
                contact = replace(contact, last_contact=logged)
            contacts.append(contact)
        return contacts

    def get_contact(self, user_id: str, contact_id: str) -> ContactSignals | None:
        for contact in self.list_contacts(user_id):
            if contact.id == contact_id:
                return contact
        return None

    def shared_history(self, user_id: str, now: datetime | None = None) -> SharedHistory:
        data = self._load(user_id)
        now = now or datetime.now().astimezone()
        cutoff = now - timedelta(days=JOINT_INTERACTION_DAYS)

        joint = []
        for item in data.get("joint_interactions", []):
            when = parse_timestamp(item["date"])
            if when >= cutoff:
                joint.append(frozenset(item["contact_ids"]))

        return SharedHistory(
            mention_sessions=tuple(frozenset(s) for s in data.get("mention_sessions", [])),
            joint_interactions=tuple(joint),
        )

    def _update_contact(self, user_id: str, contact_id: str, **fields) -> None:
        with self._lock:
            data = self._load(user_id)
            for item in data.get("contacts", []):
                if item["id"] == contact_id:
                    item.update(fields)
                    self._save(user_id, data)
                    return
        logger.warning(f"Contact {contact_id} not found for {user_id}")

    def update_last_contact(self, user_id: str, contact_id: str, when: datetime) -> None:
        self._update_contact(user_id, contact_id, last_contact=when.isoformat())

    def flag_frequency_reprompt(self, user_id: str, contact_id: str) -> None:
        self._update_contact(user_id, contact_id, frequency_reprompt=True)

    def reprompt_flagged(self, user_id: str) -> list[str]:
        """Contacts whose frequency preference the user should revisit."""
        return [item["id"] for item in self._load(user_id).get("contacts", []) if item.get("frequency_reprompt")]

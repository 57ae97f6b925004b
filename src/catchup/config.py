"""Configuration management for Catchup."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .core.availability import AvailabilityRules, parse_time_range
from .core.scoring import ScoringWeights

logger = logging.getLogger(__name__)

CATCHUP_HOME = Path(os.environ.get("CATCHUP_HOME", Path.home() / "catchup"))
CONFIG_FILE = CATCHUP_HOME / "config" / "catchup.conf"
DATA_DIR = CATCHUP_HOME / "data"


@dataclass
class CalendarAccount:
    """A Google Calendar account linked to a user."""

    user_id: str
    config_folder: str
    calendars: list[str] = field(default_factory=list)


@dataclass
class Config:
    """Catchup configuration."""

    users: list[str] = field(default_factory=list)
    timezone: str = "America/Toronto"
    work_hours: str = "09:00-17:00"
    nighttime: str = "22:00-07:00"
    commute_windows: list[str] = field(default_factory=list)
    commute_buffer_minutes: int = 0
    calendar_accounts: list[CalendarAccount] = field(default_factory=list)
    google_client_secret_file: str = ""
    data_dir: str = ""
    # Generation settings
    batch_interval_hours: int = 6
    search_horizon_days: int = 14
    max_open_suggestions: int = 10
    confidence_floor: float = 0.0
    reasoning_timeout: int = 10
    scoring_weights: ScoringWeights = field(default_factory=ScoringWeights)
    # Telegram bot settings
    telegram_bot_token: str = ""
    telegram_allowed_users: list[int] = field(default_factory=list)
    telegram_user_map: dict[int, str] = field(default_factory=dict)
    telegram_digest_time: str = "08:30"

    def availability_rules(self) -> AvailabilityRules:
        """Manual availability rules as the core expects them."""
        return AvailabilityRules(
            nighttime=parse_time_range(self.nighttime) if self.nighttime else None,
            commute_windows=[parse_time_range(w) for w in self.commute_windows],
            commute_buffer_minutes=self.commute_buffer_minutes,
            work_hours=parse_time_range(self.work_hours) if self.work_hours else None,
        )

    def user_data_dir(self, user_id: str) -> Path:
        base = Path(self.data_dir).expanduser() if self.data_dir else DATA_DIR
        return base / user_id


def _split_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _parse_int(key: str, value: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key.upper()}: {value}")
        return default


def _unquote(raw: str) -> str:
    """Strip one level of quotes, or a trailing # comment from a bare value."""
    raw = raw.strip()
    if raw[:1] in ("'", '"'):
        closing = raw.find(raw[0], 1)
        return raw[1:closing] if closing != -1 else raw[1:]
    return raw.split("#", 1)[0].strip()


def _read_settings(path: Path):
    """Yield (lowercased key, value) for every KEY=value line."""
    for raw_line in path.read_text().splitlines():
        stripped = raw_line.strip()
        if stripped.startswith("#") or "=" not in stripped:
            continue
        name, _, raw = stripped.partition("=")
        yield name.strip().lower(), _unquote(raw)


def _parse_accounts(value: str) -> list[CalendarAccount]:
    # [{"user_id": "...", "config_folder": "...", "calendars": [...]}]
    try:
        return [
            CalendarAccount(entry["user_id"], entry["config_folder"], list(entry.get("calendars", [])))
            for entry in json.loads(value)
        ]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        logger.warning(f"Failed to parse CALENDAR_ACCOUNTS JSON: {e}")
        return []


def _parse_user_map(value: str) -> dict[int, str]:
    # "12345:alice,67890:bob"
    mapping = {}
    for entry in _split_list(value):
        telegram_id, _, user_id = entry.partition(":")
        if telegram_id.strip().isdigit() and user_id.strip():
            mapping[int(telegram_id)] = user_id.strip()
        else:
            logger.warning(f"Ignoring invalid TELEGRAM_USER_MAP entry: {entry}")
    return mapping


def load_config(config_file: Path | None = None) -> Config:
    """Load configuration from catchup.conf file."""
    path = config_file or CONFIG_FILE
    config = Config()
    if not path.exists():
        return config

    for key, value in _read_settings(path):
        match key:
            case "users":
                config.users = _split_list(value)
            case "timezone":
                config.timezone = value
            case "work_hours":
                config.work_hours = value
            case "nighttime":
                config.nighttime = value
            case "commute_windows":
                config.commute_windows = _split_list(value)
            case "commute_buffer_minutes":
                config.commute_buffer_minutes = _parse_int(key, value, config.commute_buffer_minutes)
            case "calendar_accounts":
                config.calendar_accounts = _parse_accounts(value)
            case "google_client_secret_file":
                config.google_client_secret_file = value
            case "data_dir":
                config.data_dir = value
            case "batch_interval_hours":
                config.batch_interval_hours = _parse_int(key, value, config.batch_interval_hours)
            case "search_horizon_days":
                config.search_horizon_days = _parse_int(key, value, config.search_horizon_days)
            case "max_open_suggestions":
                config.max_open_suggestions = _parse_int(key, value, config.max_open_suggestions)
            case "reasoning_timeout":
                config.reasoning_timeout = _parse_int(key, value, config.reasoning_timeout)
            case "confidence_floor":
                try:
                    config.confidence_floor = float(value)
                except ValueError:
                    logger.warning(f"Invalid CONFIDENCE_FLOOR: {value}")
            case "scoring_weights":
                try:
                    config.scoring_weights = ScoringWeights.parse(value)
                except ValueError as e:
                    logger.warning(f"Invalid SCORING_WEIGHTS, using defaults: {e}")
            case "telegram_bot_token":
                config.telegram_bot_token = value
            case "telegram_allowed_users":
                config.telegram_allowed_users = [int(u) for u in _split_list(value)]
            case "telegram_user_map":
                config.telegram_user_map = _parse_user_map(value)
            case "telegram_digest_time":
                config.telegram_digest_time = value

    return config

"""Shared wiring layer between CLI and Telegram.

Builds the file and Google adapters from config and hands back the
lifecycle, batch and planning entry points.
"""

from datetime import datetime, timedelta
from pathlib import Path

from .adapters.claude_cli import ClaudeCLIService
from .adapters.file_store import JsonSuggestionStore
from .adapters.google_calendar import GoogleAvailabilityProvider
from .adapters.ics_feed import IcsCalendarFeed
from .adapters.interaction_log import JsonlInteractionLog
from .adapters.json_contacts import JsonContactDirectory
from .batch import BatchScheduler
from .config import CATCHUP_HOME, DATA_DIR, Config
from .core.conflicts import ActivityType
from .core.matching import CalendarEvent
from .errors import InputError
from .gatherings import GatheringPlan, plan_gathering
from .lifecycle import SuggestionLifecycle


def get_data_dir(config: Config) -> Path:
    """Resolve data directory from config."""
    if config.data_dir:
        return Path(config.data_dir).expanduser()
    return DATA_DIR


def get_interactions(config: Config) -> JsonlInteractionLog:
    return JsonlInteractionLog(get_data_dir(config))


def get_directory(config: Config) -> JsonContactDirectory:
    return JsonContactDirectory(get_data_dir(config), interactions=get_interactions(config))


def get_store(config: Config) -> JsonSuggestionStore:
    return JsonSuggestionStore(get_data_dir(config))


def get_lifecycle(config: Config) -> SuggestionLifecycle:
    directory = get_directory(config)
    return SuggestionLifecycle(
        store=get_store(config),
        directory=directory,
        interactions=directory.interactions,
        feed=IcsCalendarFeed(get_data_dir(config), directory),
    )


def get_batch(config: Config) -> BatchScheduler:
    return BatchScheduler.from_config(
        config,
        availability=GoogleAvailabilityProvider.from_config(config),
        directory=get_directory(config),
        store=get_store(config),
    )


def plan(
    config: Config,
    user_id: str,
    must_attend: list[str],
    nice_to_have: list[str],
    activity: ActivityType,
    use_reasoning: bool = True,
) -> GatheringPlan:
    """Plan a gathering against the user's real calendar."""
    reasoning = ClaudeCLIService(cwd=CATCHUP_HOME, timeout=config.reasoning_timeout) if use_reasoning else None
    return plan_gathering(
        user_id,
        must_attend,
        nice_to_have,
        availability=GoogleAvailabilityProvider.from_config(config),
        directory=get_directory(config),
        activity=activity,
        reasoning=reasoning,
        horizon_days=config.search_horizon_days,
        timeout=config.reasoning_timeout,
    )


def parse_event(
    event_id: str,
    title: str,
    start: str,
    duration_minutes: int,
    location: str = "",
    description: str = "",
    timezone: str = "UTC",
) -> CalendarEvent:
    """Build a CalendarEvent from CLI/bot input."""
    try:
        start_dt = datetime.fromisoformat(start)
    except ValueError:
        raise InputError(f"Invalid start time: {start} (expected YYYY-MM-DDTHH:MM)")
    if start_dt.tzinfo is None:
        start_dt = start_dt.astimezone()
    if duration_minutes <= 0:
        raise InputError("Duration must be positive")
    return CalendarEvent(
        id=event_id,
        title=title,
        start=start_dt,
        end=start_dt + timedelta(minutes=duration_minutes),
        description=description,
        location=location,
        timezone=timezone,
    )

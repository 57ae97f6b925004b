"""Adapters - I/O implementations of the ports."""

from .claude_cli import ClaudeCLIService
from .file_store import JsonSuggestionStore
from .google_calendar import GoogleAccount, GoogleAvailabilityProvider, GoogleCalendarAdapter
from .ics_feed import IcsCalendarFeed
from .interaction_log import JsonlInteractionLog
from .json_contacts import JsonContactDirectory

__all__ = [
    "ClaudeCLIService",
    "GoogleAccount",
    "GoogleAvailabilityProvider",
    "GoogleCalendarAdapter",
    "IcsCalendarFeed",
    "JsonContactDirectory",
    "JsonSuggestionStore",
    "JsonlInteractionLog",
]

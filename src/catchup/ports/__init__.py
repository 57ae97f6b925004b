"""Ports - interfaces/protocols for external dependencies."""

from .availability_provider import AvailabilityProvider
from .contact_directory import ContactDirectory
from .reasoning_service import ReasoningService
from .calendar_feed import CalendarFeedPublisher
from .suggestion_store import SuggestionStore
from .interaction_log import InteractionLog
from .notification_dispatcher import NotificationDispatcher

__all__ = [
    "AvailabilityProvider",
    "ContactDirectory",
    "ReasoningService",
    "CalendarFeedPublisher",
    "SuggestionStore",
    "InteractionLog",
    "NotificationDispatcher",
]

"""Calendar repository interface."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from timekeeper.core.calendar import Event, EventCategory


class CalendarErrorKind(Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NOT_ORGANIZER = "not_organizer"
    INVALID_REQUEST = "invalid_request"
    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"

    @property
    def is_transient(self) -> bool:
        """Worth retrying later; says nothing about the calendar's contents."""
        return self in (CalendarErrorKind.RATE_LIMITED, CalendarErrorKind.TIMEOUT, CalendarErrorKind.UNAVAILABLE)


class CalendarError(Exception):
    """Raised by calendar backends, tagged with a structured kind."""

    def __init__(self, kind: CalendarErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass
class EventDraft:
    """Fields for a new calendar event."""

    title: str
    start: datetime
    end: datetime
    timezone: str
    description: str = ""
    attendees: list[str] = field(default_factory=list)
    location: str = ""
    category: EventCategory = EventCategory.MEETING


class CalendarRepository(Protocol):
    """Interface for reading and mutating a user's calendar on any backend."""

    def fetch_events(self, user_id: str, start: datetime, end: datetime) -> list[Event]:
        """Non-cancelled events intersecting [start, end), all-day included."""
        ...

    def get_event(self, user_id: str, event_id: str) -> Event | None:
        """Fetch one event. Returns None if it no longer exists."""
        ...

    def create_event(self, user_id: str, draft: EventDraft) -> Event:
        """Create an event and return it with its assigned id."""
        ...

    def update_event(
        self,
        user_id: str,
        event_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        timezone: str | None = None,
    ) -> Event:
        """Partially update an event's time."""
        ...

    def decline_event(self, user_id: str, event_id: str) -> None:
        """Decline an invitation on the user's behalf."""
        ...

"""Pure calendar domain logic - no I/O dependencies."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class EventCategory(str, Enum):
    MEETING = "meeting"
    FOCUS = "focus"
    PERSONAL = "personal"
    EXTERNAL = "external"


MEETING_CATEGORIES = (EventCategory.MEETING, EventCategory.EXTERNAL)

# Descriptions longer than this count as an agenda
AGENDA_MIN_LENGTH = 50


@dataclass
class Attendee:
    """A person invited to an event."""

    email: str
    name: str = ""
    response_status: str = "needsAction"
    optional: bool = False
    is_self: bool = False


@dataclass
class Event:
    """A calendar event."""

    id: str
    title: str
    start: datetime
    end: datetime
    category: EventCategory = EventCategory.MEETING
    all_day: bool = False
    attendees: list[Attendee] = field(default_factory=list)
    location: str = ""
    description: str = ""
    calendar: str = ""
    source: str = ""
    is_organizer: bool = True

    @property
    def is_meeting(self) -> bool:
        return self.category in MEETING_CATEGORIES

    @property
    def has_agenda(self) -> bool:
        return len(self.description.strip()) > AGENDA_MIN_LENGTH

    def self_attendee(self) -> Attendee | None:
        """The attendee entry for the calendar owner, if invited."""
        for attendee in self.attendees:
            if attendee.is_self:
                return attendee
        return None

    def format_time(self) -> str:
        """Format the event time for display."""
        if self.all_day:
            return "All day"
        return self.start.strftime("%H:%M")

    def duration_minutes(self) -> int:
        """Event duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)


@dataclass
class TimeSlot:
    """A span of time, reported in the timezone that governs it."""

    start: datetime
    end: datetime
    available: bool = True
    timezone: str = ""

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def format(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')} ({self.duration_minutes()} min)"

    def contains(self, dt: datetime) -> bool:
        """Check if a datetime falls within this slot."""
        return self.start <= dt < self.end

    def covers(self, start: datetime, end: datetime) -> bool:
        """Check if [start, end) lies entirely inside this slot."""
        return self.start <= start and end <= self.end

    def overlaps(self, other: "TimeSlot") -> bool:
        """Check if this slot overlaps with another."""
        return self.start < other.end and other.start < self.end


@dataclass
class EventConflict:
    """The events whose time range overlaps a given event."""

    event_id: str
    conflicting_event_ids: set[str] = field(default_factory=set)


def timed_events(events: list[Event]) -> list[Event]:
    """Events that take part in busy-time reasoning (not all-day)."""
    return [e for e in events if not e.all_day]


def filter_events_by_date(
    events: list[Event],
    start_date: date,
    end_date: date | None = None,
) -> list[Event]:
    """
    Filter events to those within a date range.

    Pure function - no I/O.
    """
    end_date = end_date or start_date
    return [e for e in events if start_date <= e.start.date() <= end_date]


def sort_events_by_start(events: list[Event]) -> list[Event]:
    """Sort events by start time."""
    return sorted(events, key=lambda e: e.start)


def detect_conflicts(events: list[Event]) -> dict[str, EventConflict]:
    """
    Find overlapping events.

    Returns a map of event id -> EventConflict. Events that overlap nothing
    are absent from the map. All-day events are never considered.
    Pure function - no I/O.
    """
    conflicts: dict[str, EventConflict] = {}
    # Zero-length events occupy no time and never conflict
    sorted_events = sort_events_by_start([e for e in timed_events(events) if e.start < e.end])

    for i, e1 in enumerate(sorted_events):
        for e2 in sorted_events[i + 1 :]:
            # e2 starts after e1 ends - no more conflicts possible
            if e2.start >= e1.end:
                break
            conflicts.setdefault(e1.id, EventConflict(e1.id)).conflicting_event_ids.add(e2.id)
            conflicts.setdefault(e2.id, EventConflict(e2.id)).conflicting_event_ids.add(e1.id)

    return conflicts


def conflicts_for(event_id: str, conflict_map: dict[str, EventConflict]) -> set[str]:
    """Ids of events conflicting with event_id (empty when none)."""
    conflict = conflict_map.get(event_id)
    return set(conflict.conflicting_event_ids) if conflict else set()


def has_conflict(event_id: str, conflict_map: dict[str, EventConflict]) -> bool:
    return event_id in conflict_map


def conflict_message(event: Event, conflicting: list[Event]) -> str:
    """Human-readable summary of an event's conflicts."""
    if not conflicting:
        return ""
    if len(conflicting) == 1:
        return f'Conflicts with "{conflicting[0].title}"'

    names = ", ".join(f'"{e.title}"' for e in conflicting[:2])
    more = "..." if len(conflicting) > 2 else ""
    return f"Conflicts with {len(conflicting)} events: {names}{more}"

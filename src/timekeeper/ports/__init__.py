"""Ports - interfaces/protocols for external dependencies."""

from .calendar_repo import CalendarError, CalendarErrorKind, CalendarRepository, EventDraft

__all__ = [
    "CalendarRepository",
    "CalendarError",
    "CalendarErrorKind",
    "EventDraft",
]

"""Adapters - I/O implementations of ports."""

from .google_calendar import GoogleCalendarAdapter

__all__ = [
    "GoogleCalendarAdapter",
]

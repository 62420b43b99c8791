"""Functional core - pure business logic with no I/O."""

from .calendar import Attendee, Event, EventCategory, EventConflict, TimeSlot, detect_conflicts
from .policy import ProtectedTimeBlock, UserPolicy, WorkingHours, default_policy
from .availability import compute_availability, find_available_slots, next_available_slot
from .schedule import DaySchedule, DayStats, build_day_schedules
from .analytics import Insight, TimeAnalytics, compute_analytics
from .recommendations import Recommendation, generate_recommendations, parse_payload

__all__ = [
    # Calendar
    "Attendee",
    "Event",
    "EventCategory",
    "EventConflict",
    "TimeSlot",
    "detect_conflicts",
    # Policy
    "ProtectedTimeBlock",
    "UserPolicy",
    "WorkingHours",
    "default_policy",
    # Availability
    "compute_availability",
    "find_available_slots",
    "next_available_slot",
    # Schedules
    "DaySchedule",
    "DayStats",
    "build_day_schedules",
    # Analytics
    "Insight",
    "TimeAnalytics",
    "compute_analytics",
    # Recommendations
    "Recommendation",
    "generate_recommendations",
    "parse_payload",
]

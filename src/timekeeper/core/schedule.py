"""Per-day partitioning of events into enriched schedules - no I/O."""

from dataclasses import dataclass, field
from datetime import date, timedelta

from .availability import compute_availability
from .calendar import Event, EventCategory, TimeSlot, sort_events_by_start
from .policy import UserPolicy


@dataclass
class DayStats:
    meeting_minutes: int = 0
    focus_minutes: int = 0
    available_minutes: int = 0


@dataclass
class DaySchedule:
    """One calendar day of events, free slots and time usage."""

    date: date
    timezone: str
    events: list[Event] = field(default_factory=list)
    available_slots: list[TimeSlot] = field(default_factory=list)
    stats: DayStats = field(default_factory=DayStats)

    def meetings(self) -> list[Event]:
        """Timed meeting/external events, in start order."""
        return sort_events_by_start([e for e in self.events if e.is_meeting and not e.all_day])

    def longest_available_slot(self) -> TimeSlot | None:
        if not self.available_slots:
            return None
        return max(self.available_slots, key=lambda s: s.duration_minutes())


def day_stats(events: list[Event], available_slots: list[TimeSlot]) -> DayStats:
    """
    Classify a day's time.

    Meetings are meeting/external events, focus is focus events, and
    available time is whatever the availability calculation left free.
    """
    meeting = 0
    focus = 0
    for event in events:
        if event.all_day:
            continue
        if event.is_meeting:
            meeting += event.duration_minutes()
        elif event.category == EventCategory.FOCUS:
            focus += event.duration_minutes()

    return DayStats(
        meeting_minutes=meeting,
        focus_minutes=focus,
        available_minutes=sum(s.duration_minutes() for s in available_slots),
    )


def build_day_schedule(
    events: list[Event],
    day: date,
    policy: UserPolicy,
    respect_protected_time: bool = True,
) -> DaySchedule:
    """Enrich one day's events with availability and stats."""
    slots = compute_availability(
        events,
        day,
        policy,
        policy.default_meeting_duration_minutes,
        respect_protected_time,
    )
    return DaySchedule(
        date=day,
        timezone=policy.timezone,
        events=events,
        available_slots=slots,
        stats=day_stats(events, slots),
    )


def build_day_schedules(
    events: list[Event],
    start_day: date,
    end_day: date,
    policy: UserPolicy,
) -> list[DaySchedule]:
    """
    Partition events into one DaySchedule per day in [start_day, end_day).

    Events are assigned to the day they start on in the policy timezone.
    Pure function - no I/O.
    """
    by_day: dict[date, list[Event]] = {}
    for event in sort_events_by_start(events):
        day = event.start.date() if event.all_day else policy.local_date(event.start)
        by_day.setdefault(day, []).append(event)

    schedules = []
    day = start_day
    while day < end_day:
        schedules.append(build_day_schedule(by_day.get(day, []), day, policy))
        day += timedelta(days=1)
    return schedules

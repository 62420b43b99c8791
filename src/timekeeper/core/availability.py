"""Free-slot computation over busy intervals and policy - no I/O."""

import logging
from datetime import date, datetime, timedelta

from .calendar import Event, TimeSlot, timed_events
from .policy import UserPolicy

logger = logging.getLogger(__name__)

Interval = tuple[datetime, datetime]


def working_window(day: date, policy: UserPolicy) -> Interval | None:
    """The working-hours window for a day, or None if it has no width."""
    try:
        start = policy.local_datetime(day, policy.working_hours.start)
        end = policy.local_datetime(day, policy.working_hours.end)
    except ValueError as e:
        logger.warning(f"Malformed working hours {policy.working_hours}: {e}")
        return None
    if start >= end:
        return None
    return start, end


def protected_intervals(day: date, policy: UserPolicy) -> list[Interval]:
    """Protected-time blocks that apply on a day, as absolute intervals."""
    intervals = []
    for block in policy.protected_time_blocks:
        if not block.applies_on(day):
            continue
        try:
            start = policy.local_datetime(day, block.start)
            end = policy.local_datetime(day, block.end)
        except ValueError as e:
            logger.warning(f"Skipping malformed protected block '{block.label}': {e}")
            continue
        if start < end:
            intervals.append((start, end))
    return intervals


def busy_intervals(
    events: list[Event],
    day: date,
    policy: UserPolicy,
    respect_protected_time: bool = True,
) -> list[Interval]:
    """Timed events plus (optionally) that day's protected blocks, sorted by start."""
    intervals = [(e.start, e.end) for e in timed_events(events) if e.start < e.end]
    if respect_protected_time:
        intervals.extend(protected_intervals(day, policy))
    return sorted(intervals, key=lambda iv: iv[0])


def merge_intervals(intervals: list[Interval]) -> list[Interval]:
    """Merge overlapping or touching intervals into a minimal disjoint set."""
    merged: list[Interval] = []
    for start, end in sorted(intervals, key=lambda iv: iv[0]):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def compute_availability(
    events: list[Event],
    day: date,
    policy: UserPolicy,
    duration_minutes: int,
    respect_protected_time: bool = True,
) -> list[TimeSlot]:
    """
    Find available slots within a day's working hours.

    Every returned slot is at least duration_minutes long and intersects no
    busy interval. Gaps shorter than the minimum are dropped, not truncated.

    Pure function - no I/O.
    """
    window = working_window(day, policy)
    if window is None:
        return []
    day_start, day_end = window
    min_length = timedelta(minutes=duration_minutes)

    slots = []
    cursor = day_start
    for busy_start, busy_end in merge_intervals(busy_intervals(events, day, policy, respect_protected_time)):
        if busy_end <= day_start:
            continue
        if busy_start >= day_end:
            break
        if busy_start > cursor and busy_start - cursor >= min_length:
            slots.append(TimeSlot(start=cursor, end=busy_start, timezone=policy.timezone))
        cursor = max(cursor, busy_end)

    if cursor < day_end and day_end - cursor >= min_length:
        slots.append(TimeSlot(start=cursor, end=day_end, timezone=policy.timezone))

    return slots


def find_available_slots(
    events: list[Event],
    start_day: date,
    end_day: date,
    policy: UserPolicy,
    duration_minutes: int,
    respect_protected_time: bool = True,
) -> list[TimeSlot]:
    """Available slots for every day in [start_day, end_day), in order."""
    slots = []
    day = start_day
    while day < end_day:
        slots.extend(compute_availability(events, day, policy, duration_minutes, respect_protected_time))
        day += timedelta(days=1)
    return slots


def next_available_slot(slots: list[TimeSlot], floor: datetime) -> TimeSlot | None:
    """First slot (in chronological order) starting at or after floor."""
    for slot in sorted(slots, key=lambda s: s.start):
        if slot.start >= floor:
            return slot
    return None

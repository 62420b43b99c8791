"""Tests for free-slot computation."""

import logging
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from timekeeper.core.availability import (
    compute_availability,
    find_available_slots,
    merge_intervals,
    next_available_slot,
    protected_intervals,
    working_window,
)
from timekeeper.core.calendar import Event, EventCategory, TimeSlot
from timekeeper.core.policy import ProtectedTimeBlock, UserPolicy, WorkingHours, default_policy

TZ = ZoneInfo("America/New_York")
WEEKDAYS = frozenset({1, 2, 3, 4, 5})


@pytest.fixture
def today():
    # A Wednesday
    return date(2025, 1, 15)


@pytest.fixture
def at(today):
    def _at(hour: int, minute: int = 0, day: date | None = None) -> datetime:
        return datetime.combine(day or today, time(hour, minute), tzinfo=TZ)
    return _at


@pytest.fixture
def make_event(at):
    def _make(event_id: str, start: tuple[int, int], end: tuple[int, int], **kwargs) -> Event:
        return Event(id=event_id, title=event_id, start=at(*start), end=at(*end), **kwargs)
    return _make


@pytest.fixture
def policy():
    return default_policy()


def spans(slots: list[TimeSlot]) -> list[tuple[str, str]]:
    return [(s.start.strftime("%H:%M"), s.end.strftime("%H:%M")) for s in slots]


class TestComputeAvailability:
    def test_empty_day_is_whole_working_window(self, today, policy):
        slots = compute_availability([], today, policy, 30)
        assert spans(slots) == [("09:00", "17:00")]
        assert slots[0].timezone == "America/New_York"

    def test_meeting_splits_the_day(self, today, policy, make_event):
        events = [make_event("standup", (10, 0), (11, 0))]
        slots = compute_availability(events, today, policy, 30)
        assert spans(slots) == [("09:00", "10:00"), ("11:00", "17:00")]

    def test_gaps_shorter_than_duration_are_dropped(self, today, policy, make_event):
        events = [
            make_event("a", (9, 30), (10, 0)),
            make_event("b", (10, 20), (16, 0)),
        ]
        slots = compute_availability(events, today, policy, 30)
        assert spans(slots) == [("09:00", "09:30"), ("16:00", "17:00")]

    def test_overlapping_events_are_merged(self, today, policy, make_event):
        events = [
            make_event("a", (10, 0), (11, 30)),
            make_event("b", (11, 0), (12, 0)),
            make_event("c", (12, 0), (13, 0)),
        ]
        slots = compute_availability(events, today, policy, 30)
        assert spans(slots) == [("09:00", "10:00"), ("13:00", "17:00")]

    def test_events_outside_working_hours_are_ignored(self, today, policy, make_event):
        events = [make_event("early", (7, 0), (8, 0)), make_event("late", (18, 0), (19, 0))]
        assert spans(compute_availability(events, today, policy, 30)) == [("09:00", "17:00")]

    def test_event_straddling_window_edges(self, today, policy, make_event):
        events = [make_event("early", (8, 0), (9, 30)), make_event("late", (16, 30), (18, 0))]
        assert spans(compute_availability(events, today, policy, 30)) == [("09:30", "16:30")]

    def test_all_day_events_are_not_busy(self, today, policy, make_event):
        events = [make_event("holiday", (0, 0), (23, 59), all_day=True)]
        assert spans(compute_availability(events, today, policy, 30)) == [("09:00", "17:00")]

    def test_every_category_blocks_time(self, today, policy, make_event):
        events = [make_event("focus", (9, 0), (12, 0), category=EventCategory.FOCUS)]
        assert spans(compute_availability(events, today, policy, 30)) == [("12:00", "17:00")]

    def test_protected_time_is_busy(self, today, make_event):
        policy = UserPolicy(
            protected_time_blocks=(ProtectedTimeBlock("Lunch", "12:00", "13:00", WEEKDAYS),),
        )
        slots = compute_availability([make_event("a", (10, 0), (11, 0))], today, policy, 30)
        assert spans(slots) == [("09:00", "10:00"), ("11:00", "12:00"), ("13:00", "17:00")]

    def test_protected_time_can_be_ignored(self, today):
        policy = UserPolicy(
            protected_time_blocks=(ProtectedTimeBlock("Lunch", "12:00", "13:00", WEEKDAYS),),
        )
        slots = compute_availability([], today, policy, 30, respect_protected_time=False)
        assert spans(slots) == [("09:00", "17:00")]

    def test_overlapping_protected_blocks(self, today):
        policy = UserPolicy(
            protected_time_blocks=(
                ProtectedTimeBlock("Lunch", "12:00", "13:00", WEEKDAYS),
                ProtectedTimeBlock("Walk", "12:30", "14:00", WEEKDAYS),
            ),
        )
        slots = compute_availability([], today, policy, 30)
        assert spans(slots) == [("09:00", "12:00"), ("14:00", "17:00")]

    def test_protected_block_only_on_its_days(self, today):
        # Sunday only - today is Wednesday
        policy = UserPolicy(protected_time_blocks=(ProtectedTimeBlock("Family", "09:00", "17:00", frozenset({0})),))
        assert spans(compute_availability([], today, policy, 30)) == [("09:00", "17:00")]

    def test_zero_width_working_hours(self, today):
        policy = UserPolicy(working_hours=WorkingHours("09:00", "09:00"))
        assert compute_availability([], today, policy, 30) == []

    def test_inverted_working_hours(self, today):
        policy = UserPolicy(working_hours=WorkingHours("17:00", "09:00"))
        assert compute_availability([], today, policy, 30) == []

    def test_malformed_working_hours(self, today, caplog):
        policy = UserPolicy(working_hours=WorkingHours("nine", "17:00"))
        with caplog.at_level(logging.WARNING):
            assert compute_availability([], today, policy, 30) == []
        assert "Malformed working hours" in caplog.text

    def test_unknown_timezone(self, today, caplog):
        policy = UserPolicy(timezone="America/NewYork")
        with caplog.at_level(logging.WARNING):
            assert compute_availability([], today, policy, 30) == []
        assert "Unknown timezone" in caplog.text

    def test_fully_booked_day(self, today, policy, make_event):
        assert compute_availability([make_event("a", (8, 0), (18, 0))], today, policy, 30) == []

    def test_is_idempotent(self, today, policy, make_event):
        events = [make_event("a", (10, 0), (11, 0)), make_event("b", (14, 0), (15, 0))]
        assert compute_availability(events, today, policy, 30) == compute_availability(events, today, policy, 30)

    def test_slots_never_intersect_busy_time(self, today, make_event):
        policy = UserPolicy(protected_time_blocks=(ProtectedTimeBlock("Lunch", "12:00", "13:00", WEEKDAYS),))
        events = [make_event("a", (9, 15), (10, 0)), make_event("b", (13, 30), (14, 45))]
        busy = [(e.start, e.end) for e in events] + protected_intervals(today, policy)

        for slot in compute_availability(events, today, policy, 15):
            assert slot.duration_minutes() >= 15
            for start, end in busy:
                assert slot.end <= start or slot.start >= end


class TestHelpers:
    def test_working_window(self, today, at):
        assert working_window(today, default_policy()) == (at(9), at(17))

    def test_working_window_uses_policy_timezone(self, today):
        start, _ = working_window(today, default_policy("Europe/London"))
        assert start.utcoffset().total_seconds() == 0

    def test_merge_touching_intervals(self, at):
        merged = merge_intervals([(at(10), at(11)), (at(9), at(10)), (at(13), at(14))])
        assert merged == [(at(9), at(11)), (at(13), at(14))]

    def test_merge_contained_interval(self, at):
        assert merge_intervals([(at(9), at(12)), (at(10), at(11))]) == [(at(9), at(12))]


class TestFindAvailableSlots:
    def test_spans_multiple_days(self, today, policy, at):
        tomorrow = date(2025, 1, 16)
        events = [Event(id="a", title="a", start=at(9, day=tomorrow), end=at(12, day=tomorrow))]

        slots = find_available_slots(events, today, date(2025, 1, 17), policy, 30)

        assert [(s.start.date(), s.start.strftime("%H:%M")) for s in slots] == [
            (today, "09:00"),
            (tomorrow, "12:00"),
        ]

    def test_end_day_is_exclusive(self, today, policy):
        assert find_available_slots([], today, today, policy, 30) == []


class TestNextAvailableSlot:
    def test_first_slot_at_or_after_floor(self, at):
        slots = [TimeSlot(start=at(14), end=at(15)), TimeSlot(start=at(9), end=at(10))]
        assert next_available_slot(slots, at(8)).start == at(9)
        assert next_available_slot(slots, at(9)).start == at(9)
        assert next_available_slot(slots, at(9, 30)).start == at(14)

    def test_none_when_exhausted(self, at):
        assert next_available_slot([TimeSlot(start=at(9), end=at(10))], at(11)) is None
        assert next_available_slot([], at(11)) is None

"""Tests for time-usage analytics and insights."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from timekeeper.core.analytics import (
    MAX_INSIGHTS,
    InsightType,
    TimeAnalytics,
    back_to_back_days,
    compute_analytics,
    longest_focus_block,
)
from timekeeper.core.calendar import Event, EventCategory
from timekeeper.core.policy import UserPolicy, WorkingHours, default_policy
from timekeeper.core.schedule import build_day_schedule

TZ = ZoneInfo("America/New_York")
AGENDA = "Agenda: walk through open incidents, review the on-call rota, agree next steps."


@pytest.fixture
def today():
    return date(2025, 1, 15)


@pytest.fixture
def policy():
    return default_policy()


@pytest.fixture
def make_event(today):
    def _make(
        event_id: str,
        start: tuple[int, int],
        end: tuple[int, int],
        category: EventCategory = EventCategory.MEETING,
        day: date | None = None,
        description: str = AGENDA,
    ) -> Event:
        d = day or today
        return Event(
            id=event_id,
            title=event_id,
            start=datetime.combine(d, time(*start), tzinfo=TZ),
            end=datetime.combine(d, time(*end), tzinfo=TZ),
            category=category,
            description=description,
        )
    return _make


@pytest.fixture
def schedule_for(policy):
    def _schedule(events: list[Event], day: date):
        return build_day_schedule(events, day, policy)
    return _schedule


class TestComputeAnalytics:
    def test_meeting_heavy_day(self, today, policy, make_event, schedule_for):
        schedule = schedule_for([make_event("offsite", (9, 0), (15, 0))], today)

        stats = compute_analytics([schedule], "day", policy)

        assert stats.meeting_percent == 75
        assert stats.focus_percent == 0
        assert stats.available_percent == 25
        assert stats.buffer_percent == 0
        assert stats.total_meeting_hours == 6.0
        assert stats.start_date == today
        assert stats.end_date == today

    def test_residual_time_is_buffer(self, today, policy, make_event, schedule_for):
        # 20-minute gaps are too short to be available at a 30-minute default
        events = [
            make_event("a", (9, 0), (10, 0)),
            make_event("b", (10, 20), (11, 0)),
            make_event("c", (11, 20), (17, 0)),
        ]
        stats = compute_analytics([schedule_for(events, today)], "day", policy)

        assert stats.available_percent == 0
        assert stats.buffer_percent == 8
        assert stats.meeting_percent == 92

    def test_percentages_sum_to_about_100(self, today, policy, make_event, schedule_for):
        events = [
            make_event("a", (9, 0), (9, 50)),
            make_event("b", (10, 10), (11, 25)),
            make_event("deep", (13, 0), (14, 40), EventCategory.FOCUS),
        ]
        stats = compute_analytics([schedule_for(events, today)], "day", policy)

        total = stats.meeting_percent + stats.focus_percent + stats.available_percent + stats.buffer_percent
        assert 98 <= total <= 102

    def test_no_classified_time(self, today):
        policy = UserPolicy(working_hours=WorkingHours("09:00", "09:00"))
        schedule = build_day_schedule([], today, policy)

        stats = compute_analytics([schedule], "day", policy)

        assert (stats.meeting_percent, stats.focus_percent, stats.available_percent, stats.buffer_percent) == (0, 0, 0, 0)
        assert stats.insights == []

    def test_no_schedules(self, policy):
        stats = compute_analytics([], "week", policy)

        assert stats.start_date is None
        assert stats.busiest_day is None
        assert len(stats.insights) == 1
        assert stats.insights[0].message == "No calendar data available for this period."

    def test_busiest_day(self, today, policy, make_event, schedule_for):
        tomorrow = date(2025, 1, 16)
        schedules = [
            schedule_for([make_event("a", (9, 0), (10, 0))], today),
            schedule_for([make_event("b", (9, 0), (12, 0), day=tomorrow)], tomorrow),
        ]
        assert compute_analytics(schedules, "week", policy).busiest_day == tomorrow

    def test_busiest_day_tie_goes_to_earliest(self, today, policy, make_event, schedule_for):
        tomorrow = date(2025, 1, 16)
        schedules = [
            schedule_for([make_event("b", (9, 0), (11, 0), day=tomorrow)], tomorrow),
            schedule_for([make_event("a", (13, 0), (15, 0))], today),
        ]
        assert compute_analytics(schedules, "week", policy).busiest_day == today

    def test_longest_focus_block_counts_focus_events_only(self, today, policy, make_event, schedule_for):
        events = [
            make_event("deep", (9, 0), (10, 30), EventCategory.FOCUS),
            make_event("deeper", (13, 0), (15, 0), EventCategory.FOCUS),
            make_event("workshop", (15, 0), (17, 0)),
        ]
        schedules = [schedule_for(events, today)]
        assert longest_focus_block(schedules) == 120
        assert compute_analytics(schedules, "day", policy).longest_focus_block == 120


class TestInsights:
    def test_heavy_meeting_load(self, today, policy, make_event, schedule_for):
        schedule = schedule_for([make_event("offsite", (9, 0), (15, 0))], today)

        insights = compute_analytics([schedule], "day", policy).insights

        assert insights[0].type == InsightType.WARNING
        assert "75%" in insights[0].message
        assert insights[0].actionable
        assert [i.id for i in insights] == [f"insight-{n}" for n in range(1, len(insights) + 1)]

    def test_light_meeting_load(self, today, policy, make_event, schedule_for):
        schedule = schedule_for([make_event("sync", (9, 0), (10, 0))], today)

        messages = [i.message for i in compute_analytics([schedule], "day", policy).insights]

        assert any(m.startswith("Light meeting load this day") for m in messages)
        assert any("of your time available" in m for m in messages)

    def test_increase_over_previous_period(self, today, policy, make_event, schedule_for):
        schedule = schedule_for([make_event("offsite", (9, 0), (15, 0))], today)
        previous = TimeAnalytics(period="day", start_date=date(2025, 1, 14), end_date=date(2025, 1, 14), meeting_percent=50)

        insights = compute_analytics([schedule], "day", policy, previous).insights

        assert "rose from 50% to 75%" in insights[1].message

    def test_small_increase_is_not_reported(self, today, policy, make_event, schedule_for):
        schedule = schedule_for([make_event("offsite", (9, 0), (15, 0))], today)
        previous = TimeAnalytics(period="day", start_date=None, end_date=None, meeting_percent=70)

        insights = compute_analytics([schedule], "day", policy, previous).insights

        assert not any("rose from" in i.message for i in insights)

    def test_back_to_back_meetings(self, today, make_event, schedule_for):
        events = [
            make_event("a", (9, 0), (10, 0)),
            make_event("b", (10, 0), (11, 0)),
            make_event("c", (11, 3), (12, 0)),
            make_event("d", (12, 0), (13, 0)),
        ]
        assert back_to_back_days([schedule_for(events, today)]) == [today]

    def test_gap_breaks_back_to_back_run(self, today, make_event, schedule_for):
        events = [
            make_event("a", (9, 0), (10, 0)),
            make_event("b", (10, 0), (11, 0)),
            make_event("c", (11, 30), (12, 0)),
            make_event("d", (12, 0), (13, 0)),
        ]
        assert back_to_back_days([schedule_for(events, today)]) == []

    def test_meetings_without_agenda(self, today, policy, make_event, schedule_for):
        events = [
            make_event("a", (9, 0), (10, 0), description=""),
            make_event("b", (11, 0), (12, 0), description="Quick sync"),
        ]
        messages = [i.message for i in compute_analytics([schedule_for(events, today)], "day", policy).insights]
        assert "2 meetings this day have no agenda." in messages

    def test_busiest_day_observation(self, today, policy, make_event, schedule_for):
        schedules = [
            schedule_for([make_event("a", (9, 0), (13, 0))], today),
            schedule_for([], date(2025, 1, 16)),
            schedule_for([], date(2025, 1, 17)),
        ]
        messages = [i.message for i in compute_analytics(schedules, "week", policy).insights]
        assert "Wednesday is your busiest day with 4.0 hours of meetings." in messages

    def test_insights_are_capped(self, today, policy, make_event, schedule_for):
        events = [
            make_event("a", (9, 0), (10, 0), description=""),
            make_event("b", (10, 0), (11, 0)),
            make_event("c", (11, 0), (12, 0)),
            make_event("d", (12, 0), (16, 0)),
        ]
        schedules = [schedule_for(events, today), schedule_for([], date(2025, 1, 16))]
        previous = TimeAnalytics(period="week", start_date=None, end_date=None, meeting_percent=0)

        insights = compute_analytics(schedules, "week", policy, previous).insights

        assert len(insights) == MAX_INSIGHTS

"""Tests for the shared workflow layer."""

from datetime import date, datetime, time
from unittest.mock import MagicMock, call
from zoneinfo import ZoneInfo

import pytest

from timekeeper.core.calendar import Event
from timekeeper.core.policy import UserPolicy, default_policy
from timekeeper.core.recommendations import RecommendationType
from timekeeper.workflows import analyze_period, build_schedules, period_range, previous_period_range

TZ = ZoneInfo("America/New_York")


def midnight(d: date) -> datetime:
    return datetime.combine(d, time(0, 0), tzinfo=TZ)


@pytest.fixture
def today():
    # A Wednesday
    return date(2025, 1, 15)


@pytest.fixture
def offsite(today):
    return Event(
        id="offsite",
        title="Offsite",
        start=datetime.combine(today, time(9, 0), tzinfo=TZ),
        end=datetime.combine(today, time(15, 0), tzinfo=TZ),
    )


@pytest.fixture
def calendar(offsite):
    calendar = MagicMock()
    calendar.fetch_events.side_effect = lambda user_id, start, end: [
        e for e in [offsite] if e.start < end and e.end > start
    ]
    return calendar


class TestPeriodRange:
    def test_day(self, today):
        assert period_range("day", today) == (today, date(2025, 1, 16))

    def test_week_starting_sunday(self, today):
        assert period_range("week", today) == (date(2025, 1, 12), date(2025, 1, 19))

    def test_week_starting_monday(self, today):
        assert period_range("week", today, week_starts_on=1) == (date(2025, 1, 13), date(2025, 1, 20))

    def test_week_on_its_first_day(self):
        assert period_range("week", date(2025, 1, 12)) == (date(2025, 1, 12), date(2025, 1, 19))

    def test_month(self, today):
        assert period_range("month", today) == (date(2025, 1, 1), date(2025, 2, 1))

    def test_month_across_year_end(self):
        assert period_range("month", date(2025, 12, 31)) == (date(2025, 12, 1), date(2026, 1, 1))

    def test_unknown_period(self, today):
        with pytest.raises(ValueError):
            period_range("quarter", today)

    def test_previous_week(self):
        assert previous_period_range("week", date(2025, 1, 12)) == (date(2025, 1, 5), date(2025, 1, 12))

    def test_previous_month(self):
        assert previous_period_range("month", date(2025, 3, 1)) == (date(2025, 2, 1), date(2025, 3, 1))


class TestBuildSchedules:
    def test_fetches_whole_days_in_policy_timezone(self, calendar, today):
        schedules = build_schedules(calendar, "primary", today, date(2025, 1, 17), default_policy())

        calendar.fetch_events.assert_called_once_with("primary", midnight(today), midnight(date(2025, 1, 17)))
        assert [s.date for s in schedules] == [today, date(2025, 1, 16)]
        assert [e.id for e in schedules[0].events] == ["offsite"]


class TestAnalyzePeriod:
    def test_day_report(self, calendar, today):
        now = datetime.combine(today, time(7, 0), tzinfo=TZ)

        report = analyze_period(calendar, "primary", "day", default_policy(), now)

        assert calendar.fetch_events.call_args_list == [
            call("primary", midnight(today), midnight(date(2025, 1, 16))),
            call("primary", midnight(date(2025, 1, 14)), midnight(today)),
        ]
        assert len(report.schedules) == 1
        assert report.analytics.meeting_percent == 75
        assert any("rose from 0% to 75%" in i.message for i in report.analytics.insights)
        assert [r.type for r in report.recommendations] == [RecommendationType.SCHEDULE_FOCUS_TIME]

    def test_week_report_uses_policy_week_start(self, calendar, today):
        policy = UserPolicy(week_starts_on=1)
        now = datetime.combine(today, time(7, 0), tzinfo=TZ)

        report = analyze_period(calendar, "primary", "week", policy, now)

        assert report.analytics.start_date == date(2025, 1, 13)
        assert report.analytics.end_date == date(2025, 1, 19)
        assert report.analytics.busiest_day == today

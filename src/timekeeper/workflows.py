"""Shared workflow layer between the CLI and any other caller.

Fetches events for a period, partitions them into enriched day schedules,
and runs analytics and recommendations over them.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .core.analytics import Period, TimeAnalytics, compute_analytics
from .core.policy import UserPolicy, js_weekday
from .core.recommendations import Recommendation, generate_recommendations
from .core.schedule import DaySchedule, build_day_schedules
from .ports.calendar_repo import CalendarRepository

logger = logging.getLogger(__name__)


@dataclass
class PeriodReport:
    schedules: list[DaySchedule]
    analytics: TimeAnalytics
    recommendations: list[Recommendation]


def period_range(period: Period, today: date, week_starts_on: int = 0) -> tuple[date, date]:
    """The [start, end) dates of the day/week/month containing today."""
    if period == "day":
        return today, today + timedelta(days=1)
    if period == "week":
        start = today - timedelta(days=(js_weekday(today) - week_starts_on) % 7)
        return start, start + timedelta(days=7)
    if period == "month":
        start = today.replace(day=1)
        return start, (start + timedelta(days=32)).replace(day=1)
    raise ValueError(f"Unknown period '{period}'")


def previous_period_range(period: Period, start: date, week_starts_on: int = 0) -> tuple[date, date]:
    """The period immediately before the one starting at start."""
    return period_range(period, start - timedelta(days=1), week_starts_on)


def build_schedules(
    calendar: CalendarRepository,
    user_id: str,
    start_day: date,
    end_day: date,
    policy: UserPolicy,
) -> list[DaySchedule]:
    """Fetch events for [start_day, end_day) and build one schedule per day."""
    floor = datetime.combine(start_day, time(0, 0), tzinfo=policy.tz)
    ceiling = datetime.combine(end_day, time(0, 0), tzinfo=policy.tz)
    events = calendar.fetch_events(user_id, floor, ceiling)
    logger.debug(f"Fetched {len(events)} events for {start_day} - {end_day}")
    return build_day_schedules(events, start_day, end_day, policy)


def analyze_period(
    calendar: CalendarRepository,
    user_id: str,
    period: Period,
    policy: UserPolicy,
    now: datetime | None = None,
) -> PeriodReport:
    """Analytics (compared with the previous period) and recommendations for a period."""
    now = now or datetime.now(policy.tz)
    start, end = period_range(period, policy.local_date(now), policy.week_starts_on)
    prev_start, prev_end = previous_period_range(period, start, policy.week_starts_on)

    schedules = build_schedules(calendar, user_id, start, end, policy)
    previous = compute_analytics(
        build_schedules(calendar, user_id, prev_start, prev_end, policy),
        period,
        policy,
    )

    return PeriodReport(
        schedules=schedules,
        analytics=compute_analytics(schedules, period, policy, previous),
        recommendations=generate_recommendations(schedules, policy, now),
    )

"""Time-usage analytics and insights over a period - no I/O."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal

from .calendar import EventCategory
from .policy import UserPolicy
from .schedule import DaySchedule

Period = Literal["day", "week", "month"]

HEAVY_MEETING_PERCENT = 60
LIGHT_MEETING_PERCENT = 20
MEETING_INCREASE_POINTS = 10
BACK_TO_BACK_GAP_MINUTES = 5
BACK_TO_BACK_RUN = 4
SHORT_FOCUS_MINUTES = 60
FOCUS_PRESSURE_PERCENT = 30
BUSIEST_DAY_FACTOR = 1.5
FLEXIBLE_AVAILABLE_PERCENT = 40
MAX_INSIGHTS = 5


class InsightType(str, Enum):
    OBSERVATION = "observation"
    WARNING = "warning"
    SUGGESTION = "suggestion"


@dataclass
class InsightAction:
    label: str
    prompt: str


@dataclass
class Insight:
    id: str
    type: InsightType
    message: str
    action: InsightAction | None = None

    @property
    def actionable(self) -> bool:
        return self.action is not None


@dataclass
class TimeAnalytics:
    period: Period
    start_date: date | None
    end_date: date | None
    meeting_percent: int = 0
    focus_percent: int = 0
    available_percent: int = 0
    buffer_percent: int = 0
    total_meeting_hours: float = 0.0
    longest_focus_block: int = 0
    busiest_day: date | None = None
    insights: list[Insight] = field(default_factory=list)


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def compute_analytics(
    schedules: list[DaySchedule],
    period: Period,
    policy: UserPolicy,
    previous: TimeAnalytics | None = None,
) -> TimeAnalytics:
    """
    Summarize how time was spent across a period.

    Buffer time is the residual of working time not classified as meeting,
    focus or available. Percentages are shares of the classified total and
    are all zero when there is no classified time.

    Pure function - no I/O.
    """
    if not schedules:
        return TimeAnalytics(
            period=period,
            start_date=None,
            end_date=None,
            insights=[Insight("insight-empty", InsightType.OBSERVATION, "No calendar data available for this period.")],
        )

    ordered = sorted(schedules, key=lambda s: s.date)
    meeting = sum(s.stats.meeting_minutes for s in ordered)
    focus = sum(s.stats.focus_minutes for s in ordered)
    available = sum(s.stats.available_minutes for s in ordered)
    working = sum(policy.working_minutes(s.date) for s in ordered)
    buffer = max(0, working - meeting - focus - available)
    total = meeting + focus + available + buffer

    # max() keeps the first of equal values, so ties go to the earliest date
    busiest = max(ordered, key=lambda s: s.stats.meeting_minutes)

    analytics = TimeAnalytics(
        period=period,
        start_date=ordered[0].date,
        end_date=ordered[-1].date,
        meeting_percent=_percent(meeting, total),
        focus_percent=_percent(focus, total),
        available_percent=_percent(available, total),
        buffer_percent=_percent(buffer, total),
        total_meeting_hours=round(meeting / 60, 1),
        longest_focus_block=longest_focus_block(ordered),
        busiest_day=busiest.date,
    )
    analytics.insights = generate_insights(analytics, ordered, previous)
    return analytics


def longest_focus_block(schedules: list[DaySchedule]) -> int:
    """Longest single focus event in minutes, 0 if there are none."""
    durations = [
        e.duration_minutes()
        for s in schedules
        for e in s.events
        if e.category == EventCategory.FOCUS and not e.all_day
    ]
    return max(durations, default=0)


def back_to_back_days(schedules: list[DaySchedule], run_length: int = BACK_TO_BACK_RUN) -> list[date]:
    """Days with run_length or more meetings separated by gaps under the buffer threshold."""
    days = []
    for schedule in schedules:
        meetings = schedule.meetings()
        run = 1
        for prev, nxt in zip(meetings, meetings[1:]):
            gap = (nxt.start - prev.end).total_seconds() / 60
            run = run + 1 if gap < BACK_TO_BACK_GAP_MINUTES else 1
            if run >= run_length:
                days.append(schedule.date)
                break
    return days


def meetings_without_agenda(schedules: list[DaySchedule]) -> int:
    return sum(1 for s in schedules for e in s.meetings() if not e.has_agenda)


def generate_insights(
    analytics: TimeAnalytics,
    schedules: list[DaySchedule],
    previous: TimeAnalytics | None = None,
) -> list[Insight]:
    """Threshold-rule observations about a period, most pressing first."""
    insights: list[Insight] = []

    def add(kind: InsightType, message: str, action: InsightAction | None = None) -> None:
        insights.append(Insight(f"insight-{len(insights) + 1}", kind, message, action))

    if analytics.meeting_percent > HEAVY_MEETING_PERCENT:
        add(
            InsightType.WARNING,
            f"Meetings are taking up {analytics.meeting_percent}% of your time. "
            "Consider blocking focus time or declining non-essential meetings.",
            InsightAction("Block focus time", "Help me find time to block for focused work this week"),
        )
    elif analytics.meeting_percent < LIGHT_MEETING_PERCENT and analytics.total_meeting_hours > 0:
        add(
            InsightType.OBSERVATION,
            f"Light meeting load this {analytics.period} at {analytics.meeting_percent}%. "
            "Great opportunity for deep work.",
        )

    if previous is not None and analytics.meeting_percent - previous.meeting_percent >= MEETING_INCREASE_POINTS:
        add(
            InsightType.WARNING,
            f"Meeting time rose from {previous.meeting_percent}% to {analytics.meeting_percent}% "
            f"compared with the previous {analytics.period}.",
            InsightAction("Review meetings", "Which of my meetings this week could I drop or shorten?"),
        )

    crowded = back_to_back_days(schedules)
    if crowded:
        names = ", ".join(d.strftime("%a") for d in crowded)
        add(
            InsightType.WARNING,
            f"You have back-to-back meetings on {names}. Consider adding buffer time.",
            InsightAction("Add buffers", "Help me add buffer time between my meetings"),
        )

    if analytics.longest_focus_block < SHORT_FOCUS_MINUTES and analytics.meeting_percent > FOCUS_PRESSURE_PERCENT:
        add(
            InsightType.SUGGESTION,
            f"Your longest focus block is only {analytics.longest_focus_block} minutes. "
            "Try batching meetings to create longer focus periods.",
            InsightAction("Reorganize meetings", "Can you suggest how to batch my meetings for better focus time?"),
        )

    missing = meetings_without_agenda(schedules)
    if missing:
        add(
            InsightType.SUGGESTION,
            f"{missing} meeting{'s' if missing != 1 else ''} this {analytics.period} "
            f"{'have' if missing != 1 else 'has'} no agenda.",
            InsightAction("Request agendas", "Draft a note asking organizers to share agendas for my upcoming meetings"),
        )

    if analytics.busiest_day is not None:
        busiest = next(s for s in schedules if s.date == analytics.busiest_day)
        average = sum(s.stats.meeting_minutes for s in schedules) / len(schedules)
        if busiest.stats.meeting_minutes > average * BUSIEST_DAY_FACTOR:
            add(
                InsightType.OBSERVATION,
                f"{busiest.date.strftime('%A')} is your busiest day with "
                f"{round(busiest.stats.meeting_minutes / 60, 1)} hours of meetings.",
            )

    if analytics.available_percent > FLEXIBLE_AVAILABLE_PERCENT:
        add(
            InsightType.OBSERVATION,
            f"You have {analytics.available_percent}% of your time available. "
            "Good flexibility for new commitments.",
        )

    return insights[:MAX_INSIGHTS]

"""User time-policy: working hours, protected time, defaults."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/New_York"


def parse_hhmm(value: str) -> time:
    """Parse an "HH:mm" string. Raises ValueError when malformed."""
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit():
        raise ValueError(f"Invalid time '{value}', expected HH:mm")
    return time(int(hours), int(minutes))


def js_weekday(d: date) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday."""
    return (d.weekday() + 1) % 7


@dataclass(frozen=True)
class WorkingHours:
    start: str = "09:00"
    end: str = "17:00"


@dataclass(frozen=True)
class ProtectedTimeBlock:
    """Recurring time the user never wants booked."""

    label: str
    start: str
    end: str
    days_of_week: frozenset[int] = frozenset()

    def applies_on(self, d: date) -> bool:
        return js_weekday(d) in self.days_of_week


@dataclass(frozen=True)
class UserPolicy:
    """A user's scheduling policy. Supplied fresh for each computation."""

    working_hours: WorkingHours = field(default_factory=WorkingHours)
    protected_time_blocks: tuple[ProtectedTimeBlock, ...] = ()
    default_meeting_duration_minutes: int = 30
    timezone: str = DEFAULT_TIMEZONE
    week_starts_on: int = 0

    @property
    def tz(self) -> ZoneInfo:
        """The policy timezone. Raises ValueError for unknown zone names."""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown timezone '{self.timezone}'") from e

    def local_datetime(self, d: date, hhmm: str) -> datetime:
        """An "HH:mm" wall-clock time on date d, in the policy timezone."""
        return datetime.combine(d, parse_hhmm(hhmm), tzinfo=self.tz)

    def local_date(self, dt: datetime) -> date:
        """The calendar date of an instant in the policy timezone."""
        return dt.astimezone(self.tz).date()

    def working_minutes(self, d: date) -> int:
        """Length of the working-hours window on date d (0 if malformed)."""
        try:
            start = self.local_datetime(d, self.working_hours.start)
            end = self.local_datetime(d, self.working_hours.end)
        except ValueError:
            return 0
        return max(0, int((end - start).total_seconds() / 60))


def default_policy(timezone: str = DEFAULT_TIMEZONE) -> UserPolicy:
    """A fresh policy with standard defaults (09:00-17:00, 30 min meetings)."""
    return UserPolicy(timezone=timezone)

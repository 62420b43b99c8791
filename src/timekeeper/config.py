"""Configuration management for Timekeeper."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .core.policy import DEFAULT_TIMEZONE, ProtectedTimeBlock, UserPolicy, WorkingHours, parse_hhmm

logger = logging.getLogger(__name__)

TIMEKEEPER_HOME = Path(os.environ.get("TIMEKEEPER_HOME", Path.home() / "timekeeper"))
CONFIG_FILE = TIMEKEEPER_HOME / "config" / "timekeeper.conf"


@dataclass
class ProtectedTime:
    """A protected-time entry as written in the config file."""

    label: str
    start: str
    end: str
    days: list[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])


@dataclass
class Config:
    """Timekeeper configuration."""

    timezone: str = DEFAULT_TIMEZONE
    work_hours: str = "09:00-17:00"
    protected_times: list[ProtectedTime] = field(default_factory=list)
    default_meeting_duration: int = 30
    week_starts_on: int = 0
    google_config_folder: str = str(TIMEKEEPER_HOME / "config" / "google")
    google_client_secret_file: str = ""
    calendar_id: str = "primary"
    request_timeout: float = 30

    def policy(self) -> UserPolicy:
        """Build the scheduling policy. Raises ValueError for malformed times or an unknown timezone."""
        start, sep, end = self.work_hours.partition("-")
        if not sep:
            raise ValueError(f"Invalid work_hours '{self.work_hours}', expected HH:mm-HH:mm")
        for value in (start, end):
            parse_hhmm(value)
        blocks = []
        for pt in self.protected_times:
            parse_hhmm(pt.start)
            parse_hhmm(pt.end)
            blocks.append(ProtectedTimeBlock(pt.label, pt.start, pt.end, frozenset(pt.days)))

        policy = UserPolicy(
            working_hours=WorkingHours(start.strip(), end.strip()),
            protected_time_blocks=tuple(blocks),
            default_meeting_duration_minutes=self.default_meeting_duration,
            timezone=self.timezone,
            week_starts_on=self.week_starts_on,
        )
        policy.tz
        return policy


def _parse_protected_times(value: str) -> list[ProtectedTime]:
    """JSON format: [{"label": "...", "start": "HH:mm", "end": "HH:mm", "days": [1, 2]}]"""
    try:
        data = json.loads(value)
        return [
            ProtectedTime(
                label=item.get("label", "Protected"),
                start=item["start"],
                end=item["end"],
                days=item.get("days", [1, 2, 3, 4, 5]),
            )
            for item in data
        ]
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to parse PROTECTED_TIMES JSON: {e}")
        return []


def load_config(path: Path | None = None) -> Config:
    """Load configuration from timekeeper.conf file."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = value.strip()

        # Handle quoted values with inline comments: "value" # comment
        if value.startswith('"') or value.startswith("'"):
            quote = value[0]
            end_quote = value.find(quote, 1)
            value = value[1:end_quote] if end_quote != -1 else value[1:]
        elif not value.startswith("[") and "#" in value:
            # Unquoted: strip inline comments
            value = value.split("#")[0].strip()

        match key:
            case "timezone":
                config.timezone = value
            case "work_hours":
                config.work_hours = value
            case "protected_times":
                config.protected_times = _parse_protected_times(value)
            case "default_meeting_duration":
                try:
                    config.default_meeting_duration = int(value)
                except ValueError:
                    logger.warning(f"Invalid DEFAULT_MEETING_DURATION: {value}")
            case "week_starts_on":
                try:
                    config.week_starts_on = int(value)
                except ValueError:
                    logger.warning(f"Invalid WEEK_STARTS_ON: {value}")
            case "google_config_folder":
                config.google_config_folder = value
            case "google_client_secret_file":
                config.google_client_secret_file = value
            case "calendar_id":
                config.calendar_id = value
            case "request_timeout":
                try:
                    config.request_timeout = float(value)
                except ValueError:
                    logger.warning(f"Invalid REQUEST_TIMEOUT: {value}")

    return config

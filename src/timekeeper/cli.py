"""Timekeeper CLI - meetings, focus time and protected time."""

import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime, time, timedelta

import click

from .adapters.google_calendar import GoogleCalendarAdapter
from .config import Config, load_config
from .core.availability import compute_availability
from .core.calendar import conflict_message, detect_conflicts
from .core.policy import UserPolicy
from .core.recommendations import PayloadError, Recommendation, parse_payload, payload_to_dict
from .executor import execute_recommendation
from .ports.calendar_repo import CalendarError
from .workflows import analyze_period


def _calendar(config: Config) -> GoogleCalendarAdapter:
    return GoogleCalendarAdapter(
        config_folder=config.google_config_folder,
        client_secret_file=config.google_client_secret_file,
        timezone=config.timezone,
        timeout=config.request_timeout,
    )


def _policy(config: Config) -> UserPolicy:
    try:
        return config.policy()
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def _fail(e: Exception | str) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


def _fetch_day(config: Config, policy: UserPolicy, day: date) -> list:
    floor = datetime.combine(day, time(0, 0), tzinfo=policy.tz)
    return _calendar(config).fetch_events(config.calendar_id, floor, floor + timedelta(days=1))


def _recommendation_json(rec: Recommendation) -> dict:
    return {
        "id": rec.id,
        "type": rec.type.value,
        "priority": rec.priority.value,
        "title": rec.title,
        "description": rec.description,
        "impact": rec.impact,
        "action": {
            "type": rec.action.type.value,
            "payload": payload_to_dict(rec.action.payload),
            "prompt": rec.action.prompt,
        },
    }


@click.group()
@click.version_option()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Timekeeper - coordinate meetings, focus blocks and protected time."""
    if debug:
        logging.basicConfig(
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            level=logging.DEBUG,
        )


@main.command("cal-auth")
def cal_auth():
    """Authenticate with Google Calendar."""
    config = load_config()
    if _calendar(config).authenticate():
        click.echo("Google Calendar authorized.")
    else:
        click.echo("Error: authorization failed - check GOOGLE_CLIENT_SECRET_FILE", err=True)
        sys.exit(1)


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Day to check (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def conflicts(target_date: str | None, as_json: bool):
    """List overlapping events."""
    config = load_config()
    policy = _policy(config)
    day = date.fromisoformat(target_date) if target_date else policy.local_date(datetime.now(policy.tz))

    try:
        events = _fetch_day(config, policy, day)
    except CalendarError as e:
        _fail(e)

    conflict_map = detect_conflicts(events)
    by_id = {e.id: e for e in events}

    if as_json:
        click.echo(
            json.dumps(
                {eid: sorted(c.conflicting_event_ids) for eid, c in conflict_map.items()},
                indent=2,
            )
        )
        return

    if not conflict_map:
        click.echo("No conflicts.")
        return

    for event_id, conflict in conflict_map.items():
        event = by_id[event_id]
        others = [by_id[i] for i in sorted(conflict.conflicting_event_ids)]
        click.echo(f"  {event.format_time():8} {event.title}: {conflict_message(event, others)}")


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Day to check (YYYY-MM-DD), defaults to today")
@click.option("--duration", type=int, default=None, help="Minimum slot length in minutes")
@click.option("--ignore-protected", is_flag=True, help="Treat protected time as available")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def availability(target_date: str | None, duration: int | None, ignore_protected: bool, as_json: bool):
    """Show free slots within working hours."""
    config = load_config()
    policy = _policy(config)
    day = date.fromisoformat(target_date) if target_date else policy.local_date(datetime.now(policy.tz))

    try:
        events = _fetch_day(config, policy, day)
    except CalendarError as e:
        _fail(e)

    slots = compute_availability(
        events,
        day,
        policy,
        duration or policy.default_meeting_duration_minutes,
        respect_protected_time=not ignore_protected,
    )

    if as_json:
        click.echo(
            json.dumps(
                [{"start": s.start.isoformat(), "end": s.end.isoformat(), "timezone": s.timezone} for s in slots],
                indent=2,
            )
        )
        return

    if not slots:
        click.echo("No free slots.")
        return
    for slot in slots:
        click.echo(f"- {slot.format()}")


@main.command()
@click.option("--period", type=click.Choice(["day", "week", "month"]), default="week")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def analytics(period: str, as_json: bool):
    """Summarize how your time is spent."""
    config = load_config()
    policy = _policy(config)
    try:
        report = analyze_period(_calendar(config), config.calendar_id, period, policy)
    except CalendarError as e:
        _fail(e)

    stats = report.analytics
    if as_json:
        click.echo(json.dumps(asdict(stats), indent=2, default=str))
        return

    click.echo(f"### {period.title()} of {stats.start_date}")
    click.echo(f"  Meetings   {stats.meeting_percent:3}%  ({stats.total_meeting_hours}h)")
    click.echo(f"  Focus      {stats.focus_percent:3}%  (longest block {stats.longest_focus_block} min)")
    click.echo(f"  Available  {stats.available_percent:3}%")
    click.echo(f"  Buffer     {stats.buffer_percent:3}%")
    if stats.busiest_day:
        click.echo(f"  Busiest day: {stats.busiest_day.strftime('%A, %b %d')}")
    for insight in stats.insights:
        click.echo(f"- [{insight.type.value}] {insight.message}")


@main.command()
@click.option("--period", type=click.Choice(["day", "week", "month"]), default="week")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def recommend(period: str, as_json: bool):
    """Suggest changes to your calendar."""
    config = load_config()
    policy = _policy(config)
    try:
        report = analyze_period(_calendar(config), config.calendar_id, period, policy)
    except CalendarError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps([_recommendation_json(r) for r in report.recommendations], indent=2))
        return

    if not report.recommendations:
        click.echo("Nothing to recommend.")
        return
    for rec in report.recommendations:
        click.echo(f"[{rec.priority.value:6}] {rec.id} {rec.title}")
        click.echo(f"         {rec.description}")


@main.command()
@click.argument("recommendation_type")
@click.option("--payload", "raw_payload", default="{}", help="Action payload as JSON")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def execute(recommendation_type: str, raw_payload: str, as_json: bool):
    """Act on a recommendation (e.g. from 'recommend --json')."""
    config = load_config()
    policy = _policy(config)

    try:
        data = json.loads(raw_payload)
        if not isinstance(data, dict):
            raise PayloadError("payload", "expected a JSON object")
        payload = parse_payload(recommendation_type, data)
    except json.JSONDecodeError as e:
        _fail(f"payload is not valid JSON: {e}")
    except PayloadError as e:
        _fail(e)

    try:
        result = execute_recommendation(_calendar(config), config.calendar_id, payload, policy)
    except CalendarError as e:
        hint = " (temporary - try again shortly)" if e.kind.is_transient else ""
        _fail(f"{e}{hint}")

    if as_json:
        click.echo(json.dumps(asdict(result), indent=2, default=str))
    else:
        click.echo(result.message)
        for line in result.data.get("suggestions", []) + result.data.get("instructions", []):
            click.echo(f"  - {line}")

    if not result.success:
        sys.exit(2)

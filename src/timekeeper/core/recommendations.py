"""Rule-based, prioritized scheduling recommendations - no I/O."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from .availability import compute_availability, working_window
from .calendar import Event, TimeSlot, conflicts_for, detect_conflicts
from .policy import UserPolicy
from .schedule import DaySchedule

FOCUS_SLOT_THRESHOLD_MINUTES = 120
FOCUS_TARGET_MINUTES = 120
FOCUS_BLOCK_MINUTES = 120
TIGHT_GAP_MINUTES = 10
BUFFER_MINUTES = 15
SHORT_MEETING_MINUTES = 30
MIN_BATCH_SIZE = 3
SCATTER_GAP_MINUTES = 30
OVERLOAD_RATIO = 0.75
IMMINENT_CONFLICT = timedelta(hours=48)
IMMINENT_RESCHEDULE = timedelta(hours=24)


class RecommendationType(str, Enum):
    SCHEDULE_FOCUS_TIME = "schedule_focus_time"
    ADD_BUFFER = "add_buffer"
    BATCH_MEETINGS = "batch_meetings"
    DECLINE_MEETING = "decline_meeting"
    RESCHEDULE = "reschedule"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class PayloadError(ValueError):
    """A recommendation payload is malformed. Names the offending field."""

    def __init__(self, field_name: str, message: str):
        super().__init__(f"{field_name}: {message}")
        self.field = field_name


@dataclass(frozen=True)
class MeetingRef:
    """A lightweight reference to a meeting shown to the user."""

    id: str
    title: str
    start: datetime
    end: datetime
    attendees: tuple[str, ...] = ()

    @classmethod
    def from_event(cls, event: Event) -> "MeetingRef":
        return cls(
            id=event.id,
            title=event.title,
            start=event.start,
            end=event.end,
            attendees=tuple(a.email for a in event.attendees),
        )


@dataclass(frozen=True)
class FocusTimePayload:
    type: ClassVar[RecommendationType] = RecommendationType.SCHEDULE_FOCUS_TIME

    slot: TimeSlot | None = None
    title: str = "Focus Time"
    description: str = "Protected time for deep work and focused tasks."


@dataclass(frozen=True)
class BufferPayload:
    type: ClassVar[RecommendationType] = RecommendationType.ADD_BUFFER

    meeting_id: str | None = None
    slot: TimeSlot | None = None
    buffer_minutes: int = BUFFER_MINUTES


@dataclass(frozen=True)
class BatchMeetingsPayload:
    type: ClassVar[RecommendationType] = RecommendationType.BATCH_MEETINGS

    meetings: tuple[MeetingRef, ...] = ()


@dataclass(frozen=True)
class DeclineMeetingPayload:
    type: ClassVar[RecommendationType] = RecommendationType.DECLINE_MEETING

    event_id: str | None = None
    candidates: tuple[MeetingRef, ...] = ()


@dataclass(frozen=True)
class ReschedulePayload:
    type: ClassVar[RecommendationType] = RecommendationType.RESCHEDULE

    event_id: str | None = None
    meetings: tuple[MeetingRef, ...] = ()


Payload = Union[FocusTimePayload, BufferPayload, BatchMeetingsPayload, DeclineMeetingPayload, ReschedulePayload]


@dataclass
class RecommendationAction:
    type: RecommendationType
    payload: Payload
    prompt: str


@dataclass
class Recommendation:
    id: str
    type: RecommendationType
    priority: Priority
    title: str
    description: str
    impact: str
    action: RecommendationAction = field(repr=False)


# ============== Payload conversion ==============


def _parse_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise PayloadError(field_name, f"invalid datetime '{value}'")


def _parse_slot(data: Mapping[str, Any]) -> TimeSlot | None:
    raw = data.get("slot")
    if raw is None:
        return None
    if not isinstance(raw, Mapping) or "start" not in raw or "end" not in raw:
        raise PayloadError("slot", "expected an object with start and end")
    start = _parse_datetime(raw["start"], "slot.start")
    end = _parse_datetime(raw["end"], "slot.end")
    if start >= end:
        raise PayloadError("slot", "start must be before end")
    return TimeSlot(start=start, end=end, timezone=raw.get("timezone", ""))


def _parse_meetings(data: Mapping[str, Any], key: str) -> tuple[MeetingRef, ...]:
    refs = []
    for i, raw in enumerate(data.get(key) or []):
        try:
            refs.append(
                MeetingRef(
                    id=str(raw["id"]),
                    title=raw.get("title", ""),
                    start=_parse_datetime(raw["start"], f"{key}[{i}].start"),
                    end=_parse_datetime(raw["end"], f"{key}[{i}].end"),
                    attendees=tuple(raw.get("attendees", ())),
                )
            )
        except (AttributeError, KeyError, TypeError):
            raise PayloadError(f"{key}[{i}]", "expected id, start and end")
    return tuple(refs)


def parse_payload(recommendation_type: str, data: Mapping[str, Any]) -> Payload:
    """Build the payload variant for a recommendation type from a JSON-like mapping."""
    try:
        kind = RecommendationType(recommendation_type)
    except ValueError:
        raise PayloadError("type", f"unknown recommendation type '{recommendation_type}'")

    match kind:
        case RecommendationType.SCHEDULE_FOCUS_TIME:
            return FocusTimePayload(
                slot=_parse_slot(data),
                title=data.get("title") or FocusTimePayload.title,
                description=data.get("description") or FocusTimePayload.description,
            )
        case RecommendationType.ADD_BUFFER:
            try:
                minutes = int(data.get("buffer_minutes") or BUFFER_MINUTES)
            except (TypeError, ValueError):
                raise PayloadError("buffer_minutes", "expected an integer")
            return BufferPayload(meeting_id=data.get("meeting_id"), slot=_parse_slot(data), buffer_minutes=minutes)
        case RecommendationType.BATCH_MEETINGS:
            return BatchMeetingsPayload(meetings=_parse_meetings(data, "meetings"))
        case RecommendationType.DECLINE_MEETING:
            return DeclineMeetingPayload(event_id=data.get("event_id"), candidates=_parse_meetings(data, "candidates"))
        case RecommendationType.RESCHEDULE:
            return ReschedulePayload(event_id=data.get("event_id"), meetings=_parse_meetings(data, "meetings"))


def _slot_dict(slot: TimeSlot | None) -> dict | None:
    if slot is None:
        return None
    return {"start": slot.start.isoformat(), "end": slot.end.isoformat(), "timezone": slot.timezone}


def _meeting_dict(ref: MeetingRef) -> dict:
    return {
        "id": ref.id,
        "title": ref.title,
        "start": ref.start.isoformat(),
        "end": ref.end.isoformat(),
        "attendees": list(ref.attendees),
    }


def payload_to_dict(payload: Payload) -> dict:
    """JSON-ready form of a payload, accepted back by parse_payload."""
    match payload:
        case FocusTimePayload():
            return {"slot": _slot_dict(payload.slot), "title": payload.title, "description": payload.description}
        case BufferPayload():
            return {
                "meeting_id": payload.meeting_id,
                "slot": _slot_dict(payload.slot),
                "buffer_minutes": payload.buffer_minutes,
            }
        case BatchMeetingsPayload():
            return {"meetings": [_meeting_dict(m) for m in payload.meetings]}
        case DeclineMeetingPayload():
            return {"event_id": payload.event_id, "candidates": [_meeting_dict(m) for m in payload.candidates]}
        case ReschedulePayload():
            return {"event_id": payload.event_id, "meetings": [_meeting_dict(m) for m in payload.meetings]}
    raise TypeError(f"Unknown payload {payload!r}")


# ============== Heuristics ==============


def _recommend(
    payload: Payload,
    priority: Priority,
    title: str,
    description: str,
    impact: str,
    prompt: str,
) -> Recommendation:
    return Recommendation(
        id="",
        type=payload.type,
        priority=priority,
        title=title,
        description=description,
        impact=impact,
        action=RecommendationAction(type=payload.type, payload=payload, prompt=prompt),
    )


def _day_label(schedule: DaySchedule) -> str:
    return schedule.date.strftime("%A, %b %d")


def focus_time_recommendations(
    schedule: DaySchedule,
    policy: UserPolicy,
    now: datetime | None = None,
) -> list[Recommendation]:
    """Suggest a focus block in a long free slot on days short of focus time."""
    if schedule.stats.focus_minutes >= FOCUS_TARGET_MINUTES:
        return []

    slots = [s for s in schedule.available_slots if now is None or s.start >= now]
    if not slots:
        return []
    slot = max(slots, key=lambda s: s.duration_minutes())
    if slot.duration_minutes() < FOCUS_SLOT_THRESHOLD_MINUTES:
        return []

    block = TimeSlot(
        start=slot.start,
        end=slot.start + timedelta(minutes=FOCUS_BLOCK_MINUTES),
        timezone=slot.timezone,
    )
    heavy = schedule.stats.meeting_minutes * 2 > policy.working_minutes(schedule.date)
    return [
        _recommend(
            FocusTimePayload(slot=block),
            Priority.HIGH if heavy else Priority.MEDIUM,
            title=f"Block focus time on {_day_label(schedule)}",
            description=f"You have a free {slot.duration_minutes()}-minute window at "
            f"{slot.start.strftime('%H:%M')}. Protect {block.format()} for deep work.",
            impact=f"+{FOCUS_BLOCK_MINUTES} minutes of uninterrupted focus",
            prompt=f"Block {block.format()} on {_day_label(schedule)} for focus time",
        )
    ]


def buffer_recommendations(
    schedule: DaySchedule,
    policy: UserPolicy,
    now: datetime | None = None,
) -> list[Recommendation]:
    """Suggest a short buffer after the first tight pair of meetings that has room for one."""
    free = compute_availability(schedule.events, schedule.date, policy, BUFFER_MINUTES)
    meetings = schedule.meetings()

    for prev, nxt in zip(meetings, meetings[1:]):
        gap = (nxt.start - prev.end).total_seconds() / 60
        if not 0 <= gap < TIGHT_GAP_MINUTES:
            continue
        start = nxt.end
        end = start + timedelta(minutes=BUFFER_MINUTES)
        if now is not None and start < now:
            continue
        if not any(slot.covers(start, end) for slot in free):
            continue

        buffer = TimeSlot(start=start, end=end, timezone=policy.timezone)
        return [
            _recommend(
                BufferPayload(meeting_id=nxt.id, slot=buffer),
                Priority.MEDIUM,
                title=f"Add a recovery buffer after \"{nxt.title}\"",
                description=f"\"{prev.title}\" runs into \"{nxt.title}\" with only {int(gap)} minutes between them. "
                f"Reserve {buffer.format()} after \"{nxt.title}\" to recover before your next commitment.",
                impact=f"{BUFFER_MINUTES} minutes of recovery time",
                prompt=f"Add a {BUFFER_MINUTES}-minute buffer after {nxt.title}",
            )
        ]
    return []


def batch_recommendations(schedule: DaySchedule) -> list[Recommendation]:
    """Flag scattered short 1:1 meetings that could be grouped together."""
    one_on_ones = [
        m
        for m in schedule.meetings()
        if m.duration_minutes() < SHORT_MEETING_MINUTES and 1 <= len(m.attendees) <= 2
    ]
    if len(one_on_ones) < MIN_BATCH_SIZE:
        return []

    scattered = any(
        (nxt.start - prev.end).total_seconds() / 60 >= SCATTER_GAP_MINUTES
        for prev, nxt in zip(one_on_ones, one_on_ones[1:])
    )
    if not scattered:
        return []

    return [
        _recommend(
            BatchMeetingsPayload(meetings=tuple(MeetingRef.from_event(m) for m in one_on_ones)),
            Priority.LOW,
            title=f"Batch {len(one_on_ones)} short 1:1s on {_day_label(schedule)}",
            description="Several short one-on-one meetings are spread across the day. "
            "Grouping them back to back frees a longer block.",
            impact="Fewer context switches",
            prompt=f"Help me batch my 1:1 meetings on {_day_label(schedule)}",
        )
    ]


def _is_decline_candidate(event: Event) -> bool:
    me = event.self_attendee()
    if me is not None and (me.optional or me.response_status in ("tentative", "needsAction")):
        return True
    return not event.is_organizer


def decline_recommendations(schedule: DaySchedule, policy: UserPolicy) -> list[Recommendation]:
    """Point at optional meetings on days where meetings swamp working hours."""
    working = policy.working_minutes(schedule.date)
    if not working or schedule.stats.meeting_minutes <= working * OVERLOAD_RATIO:
        return []

    candidates = tuple(MeetingRef.from_event(m) for m in schedule.meetings() if _is_decline_candidate(m))
    share = round(schedule.stats.meeting_minutes / working * 100)
    return [
        _recommend(
            DeclineMeetingPayload(
                event_id=candidates[0].id if len(candidates) == 1 else None,
                candidates=candidates,
            ),
            Priority.HIGH,
            title=f"Lighten {_day_label(schedule)}",
            description=f"Meetings fill {share}% of your working hours. "
            f"{len(candidates)} meeting(s) look optional or low priority.",
            impact="Reclaim time for focused work",
            prompt=f"Which meetings on {_day_label(schedule)} can I decline?",
        )
    ]


def conflict_recommendations(
    schedule: DaySchedule,
    now: datetime | None = None,
) -> list[Recommendation]:
    """Suggest moving the later meeting of each overlapping pair."""
    meetings = schedule.meetings()
    by_id = {m.id: m for m in meetings}
    conflict_map = detect_conflicts(meetings)

    recs = []
    targeted: set[str] = set()
    for first in meetings:
        for other_id in sorted(conflicts_for(first.id, conflict_map)):
            later = by_id[other_id]
            if (later.start, later.id) <= (first.start, first.id) or later.id in targeted:
                continue
            targeted.add(later.id)
            imminent = now is not None and now <= later.start <= now + IMMINENT_CONFLICT
            recs.append(
                _recommend(
                    ReschedulePayload(event_id=later.id, meetings=(MeetingRef.from_event(later),)),
                    Priority.HIGH if imminent else Priority.MEDIUM,
                    title=f"Resolve conflict: \"{later.title}\"",
                    description=f"\"{later.title}\" overlaps \"{first.title}\" at "
                    f"{later.start.strftime('%H:%M')} on {_day_label(schedule)}.",
                    impact="Removes a double booking",
                    prompt=f"Find a new time for {later.title}",
                )
            )
    return recs


def out_of_hours_recommendations(
    schedules: list[DaySchedule],
    policy: UserPolicy,
    now: datetime | None = None,
) -> list[Recommendation]:
    """Collect meetings that fall outside working hours."""
    outside: list[Event] = []
    for schedule in schedules:
        window = working_window(schedule.date, policy)
        if window is None:
            continue
        work_start, work_end = window
        outside.extend(m for m in schedule.meetings() if m.start < work_start or m.end > work_end)

    if not outside:
        return []

    imminent = now is not None and any(now <= m.start <= now + IMMINENT_RESCHEDULE for m in outside)
    refs = tuple(MeetingRef.from_event(m) for m in outside)
    if len(outside) == 1:
        title = f"Move \"{outside[0].title}\" into working hours"
        description = (
            f"\"{outside[0].title}\" at {outside[0].start.strftime('%a %H:%M')} falls outside "
            f"your working hours ({policy.working_hours.start}-{policy.working_hours.end})."
        )
    else:
        title = f"{len(outside)} meetings fall outside working hours"
        description = (
            f"These meetings are scheduled outside {policy.working_hours.start}-"
            f"{policy.working_hours.end}. Pick one to reschedule."
        )

    return [
        _recommend(
            ReschedulePayload(event_id=outside[0].id if len(outside) == 1 else None, meetings=refs),
            Priority.HIGH if imminent else Priority.MEDIUM,
            title=title,
            description=description,
            impact="Protects your time outside working hours",
            prompt="Help me reschedule meetings that fall outside my working hours",
        )
    ]


def generate_recommendations(
    schedules: list[DaySchedule],
    policy: UserPolicy,
    now: datetime | None = None,
) -> list[Recommendation]:
    """
    Run every heuristic over enriched schedules.

    Returns recommendations ordered by priority (high first), keeping
    generation order within a priority. Pure function - no I/O.
    """
    ordered = sorted(schedules, key=lambda s: s.date)
    recs: list[Recommendation] = []
    for schedule in ordered:
        recs.extend(conflict_recommendations(schedule, now))
        recs.extend(decline_recommendations(schedule, policy))
        recs.extend(focus_time_recommendations(schedule, policy, now))
        recs.extend(buffer_recommendations(schedule, policy, now))
        recs.extend(batch_recommendations(schedule))
    recs.extend(out_of_hours_recommendations(ordered, policy, now))

    for i, rec in enumerate(recs, start=1):
        rec.id = f"rec-{i}"

    return sorted(recs, key=lambda r: r.priority.rank)

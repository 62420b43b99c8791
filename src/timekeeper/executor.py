"""Recommendation executor - turns one chosen recommendation into calendar changes.

Every branch returns exactly once and performs at most one calendar mutation.
Business outcomes (no slot, not the organizer, already gone) come back as an
unsuccessful ExecutionResult; only transient or authentication failures from
the calendar backend are raised.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta

from .core.availability import find_available_slots, next_available_slot
from .core.calendar import Event, EventCategory, TimeSlot
from .core.policy import UserPolicy
from .core.recommendations import (
    BatchMeetingsPayload,
    BufferPayload,
    DeclineMeetingPayload,
    FocusTimePayload,
    MeetingRef,
    Payload,
    ReschedulePayload,
)
from .ports.calendar_repo import CalendarError, CalendarErrorKind, CalendarRepository, EventDraft

logger = logging.getLogger(__name__)

RESCHEDULE_SEARCH_DAYS = 14

NO_SLOT_SUGGESTIONS = [
    "Review your protected time settings",
    "Consider extending your working hours temporarily",
    "Contact attendees to negotiate a time manually",
]
CONTACT_ORGANIZER_INSTRUCTIONS = [
    "Reply to the meeting invite",
    "Propose alternative times that work better for you",
    "Ask the organizer to move the meeting",
]
MANUAL_DECLINE_INSTRUCTIONS = [
    "Open the meeting in your calendar",
    'Click "Decline" to indicate your response',
    "Optionally add a message explaining your decline",
]
DECLINE_GUIDANCE = [
    'Look for meetings marked as "optional"',
    "Check for meetings where you're not a required attendee",
    "Consider declining recurring meetings that no longer serve their purpose",
    "Suggest async updates instead of synchronous meetings",
]


@dataclass
class ExecutionResult:
    success: bool
    message: str
    data: dict = field(default_factory=dict)


def _raise_if_fatal(error: CalendarError) -> None:
    """Re-raise infrastructure failures; everything else becomes a result."""
    if error.kind.is_transient or error.kind == CalendarErrorKind.UNAUTHENTICATED:
        raise error


def _invalid(field_name: str, message: str) -> ExecutionResult:
    logger.info(f"Rejected payload: missing {field_name}")
    return ExecutionResult(False, message, {"action": "invalid_payload", "field": field_name})


def _already_handled(event_id: str) -> ExecutionResult:
    return ExecutionResult(
        False,
        "Meeting not found. It may have already been moved, deleted or cancelled.",
        {"action": "already_handled", "event_id": event_id},
    )


def _event_data(event: Event) -> dict:
    return {
        "event_id": event.id,
        "title": event.title,
        "start": event.start.isoformat(),
        "end": event.end.isoformat(),
    }


def _meeting_summary(refs: tuple[MeetingRef, ...], policy: UserPolicy, issue: str) -> list[dict]:
    return [
        {
            "id": m.id,
            "title": m.title,
            "current_time": m.start.astimezone(policy.tz).strftime("%a %b %d %H:%M"),
            "issue": issue,
        }
        for m in refs
    ]


def _create(
    calendar: CalendarRepository,
    user_id: str,
    draft: EventDraft,
    success_message: str,
) -> ExecutionResult:
    try:
        event = calendar.create_event(user_id, draft)
    except CalendarError as e:
        _raise_if_fatal(e)
        logger.warning(f"Could not create '{draft.title}': {e}")
        return ExecutionResult(
            False,
            "Your calendar did not accept the new event. Check that Timekeeper has write access.",
            {"action": "calendar_access", "reason": e.kind.value},
        )
    logger.info(f"Created '{event.title}' ({event.id})")
    return ExecutionResult(True, success_message, _event_data(event))


def schedule_focus_time(
    calendar: CalendarRepository,
    user_id: str,
    payload: FocusTimePayload,
    policy: UserPolicy,
) -> ExecutionResult:
    if payload.slot is None:
        return _invalid("slot", "Missing slot information for scheduling focus time.")

    draft = EventDraft(
        title=payload.title,
        start=payload.slot.start,
        end=payload.slot.end,
        timezone=policy.timezone,
        description=payload.description,
        category=EventCategory.FOCUS,
    )
    return _create(calendar, user_id, draft, "Focus time scheduled successfully.")


def add_buffer(
    calendar: CalendarRepository,
    user_id: str,
    payload: BufferPayload,
    policy: UserPolicy,
) -> ExecutionResult:
    if not payload.meeting_id:
        return _invalid("meeting_id", "Missing meeting information for adding a buffer.")
    if payload.slot is None:
        return _invalid("slot", "Missing slot information for adding a buffer.")

    draft = EventDraft(
        title="Buffer Time",
        start=payload.slot.start,
        end=payload.slot.end,
        timezone=policy.timezone,
        description=f"{payload.buffer_minutes}-minute buffer for preparation and transition.",
        category=EventCategory.PERSONAL,
    )
    return _create(calendar, user_id, draft, f"{payload.buffer_minutes}-minute buffer added successfully.")


def _find_new_slot(
    calendar: CalendarRepository,
    user_id: str,
    event: Event,
    policy: UserPolicy,
    now: datetime,
) -> TimeSlot | None:
    """First working-hours slot from tomorrow that fits the event's duration."""
    first_day = policy.local_date(now) + timedelta(days=1)
    last_day = first_day + timedelta(days=RESCHEDULE_SEARCH_DAYS)
    floor = datetime.combine(first_day, time(0, 0), tzinfo=policy.tz)
    ceiling = datetime.combine(last_day, time(0, 0), tzinfo=policy.tz)

    busy = [e for e in calendar.fetch_events(user_id, floor, ceiling) if e.id != event.id]
    slots = find_available_slots(busy, first_day, last_day, policy, event.duration_minutes(), True)
    return next_available_slot(slots, floor)


def reschedule(
    calendar: CalendarRepository,
    user_id: str,
    payload: ReschedulePayload,
    policy: UserPolicy,
    now: datetime,
) -> ExecutionResult:
    if not payload.event_id:
        if payload.meetings:
            return ExecutionResult(
                True,
                f"Found {len(payload.meetings)} meeting(s) to reschedule. Select one to move it.",
                {"action": "review_meetings", "meetings": _meeting_summary(payload.meetings, policy, "Reschedule candidate")},
            )
        return ExecutionResult(
            True,
            "No specific meeting to reschedule. Review your calendar for meetings outside your working hours.",
            {
                "action": "review_schedule",
                "working_hours": {"start": policy.working_hours.start, "end": policy.working_hours.end},
            },
        )

    try:
        event = calendar.get_event(user_id, payload.event_id)
        if event is None:
            return _already_handled(payload.event_id)
        if event.all_day:
            return ExecutionResult(
                False,
                "All-day events can't be rescheduled automatically.",
                {"action": "manual_reschedule", "event_id": event.id},
            )

        slot = _find_new_slot(calendar, user_id, event, policy, now)
        if slot is None:
            logger.info(f"No slot for {event.id} in the next {RESCHEDULE_SEARCH_DAYS} days")
            return ExecutionResult(
                False,
                "No available slots found within your working hours. "
                "Try adjusting your protected times or working hours.",
                {"action": "no_slots", "suggestions": list(NO_SLOT_SUGGESTIONS)},
            )

        new_start = slot.start
        new_end = new_start + (event.end - event.start)
        updated = calendar.update_event(user_id, event.id, start=new_start, end=new_end, timezone=policy.timezone)
    except CalendarError as e:
        _raise_if_fatal(e)
        if e.kind == CalendarErrorKind.NOT_FOUND:
            return _already_handled(payload.event_id)
        if e.kind in (CalendarErrorKind.NOT_ORGANIZER, CalendarErrorKind.PERMISSION_DENIED):
            logger.warning(f"Cannot move {payload.event_id}: {e}")
            return ExecutionResult(
                False,
                "You can only reschedule meetings you organize. Contact the organizer to request a new time.",
                {"action": "contact_organizer", "instructions": list(CONTACT_ORGANIZER_INSTRUCTIONS)},
            )
        return ExecutionResult(False, f"The calendar rejected the change: {e}", {"action": "rejected"})

    local_start = updated.start.astimezone(policy.tz)
    logger.info(f"Rescheduled {updated.id} to {local_start.isoformat()}")
    return ExecutionResult(
        True,
        f"Meeting rescheduled to {local_start.strftime('%A, %b %d at %H:%M')}. Attendees have been notified.",
        {
            "action": "rescheduled",
            "event_id": updated.id,
            "new_start": updated.start.isoformat(),
            "new_end": updated.end.isoformat(),
        },
    )


def decline_meeting(
    calendar: CalendarRepository,
    user_id: str,
    payload: DeclineMeetingPayload,
    policy: UserPolicy,
) -> ExecutionResult:
    if not payload.event_id:
        data: dict = {"action": "review_meetings", "suggestions": list(DECLINE_GUIDANCE)}
        if payload.candidates:
            data["candidates"] = _meeting_summary(payload.candidates, policy, "Decline candidate")
        return ExecutionResult(
            True,
            "Review your calendar to identify meetings you can decline. "
            "Consider declining optional meetings or those where your attendance isn't critical.",
            data,
        )

    try:
        calendar.decline_event(user_id, payload.event_id)
    except CalendarError as e:
        _raise_if_fatal(e)
        if e.kind == CalendarErrorKind.NOT_FOUND:
            return _already_handled(payload.event_id)
        logger.warning(f"Falling back to manual decline for {payload.event_id}: {e}")
        return ExecutionResult(
            False,
            "This meeting couldn't be declined automatically. You can decline it from your calendar.",
            {"action": "manual_decline", "instructions": list(MANUAL_DECLINE_INSTRUCTIONS)},
        )

    logger.info(f"Declined {payload.event_id}")
    return ExecutionResult(
        True,
        "Meeting declined successfully. The organizer has been notified.",
        {"action": "declined", "event_id": payload.event_id},
    )


def batch_meetings(payload: BatchMeetingsPayload, policy: UserPolicy) -> ExecutionResult:
    return ExecutionResult(
        True,
        f"{len(payload.meetings)} short meeting(s) could be batched. Select meetings to move them individually.",
        {"action": "review_meetings", "meetings": _meeting_summary(payload.meetings, policy, "Batch candidate")},
    )


def execute_recommendation(
    calendar: CalendarRepository,
    user_id: str,
    payload: Payload,
    policy: UserPolicy,
    now: datetime | None = None,
) -> ExecutionResult:
    """
    Execute a recommendation's action.

    Raises CalendarError only for transient or authentication failures.
    """
    now = now or datetime.now(policy.tz)
    logger.info(f"Executing {payload.type.value} for {user_id}")

    match payload:
        case FocusTimePayload():
            return schedule_focus_time(calendar, user_id, payload, policy)
        case BufferPayload():
            return add_buffer(calendar, user_id, payload, policy)
        case ReschedulePayload():
            return reschedule(calendar, user_id, payload, policy, now)
        case DeclineMeetingPayload():
            return decline_meeting(calendar, user_id, payload, policy)
        case BatchMeetingsPayload():
            return batch_meetings(payload, policy)
    raise TypeError(f"Unknown payload {payload!r}")

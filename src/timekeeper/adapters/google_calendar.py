"""Google Calendar API adapter."""

import json
import logging
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from timekeeper.core.calendar import Attendee, Event, EventCategory
from timekeeper.ports.calendar_repo import CalendarError, CalendarErrorKind, EventDraft

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.events"]

FOCUS_KEYWORDS = ("focus", "heads down", "deep work", "no meetings", "do not disturb")
PERSONAL_KEYWORDS = ("personal", "lunch", "break", "buffer", "vacation", "pto", "holiday")
CATEGORY_PROPERTY = "timekeeperCategory"
RATE_LIMIT_REASONS = ("rateLimitExceeded", "quotaExceeded", "userRateLimitExceeded")
NOT_ORGANIZER_REASONS = ("forbiddenForNonOrganizer",)


def _organized_by_self(item: dict) -> bool:
    # Google only sends organizer.self when it is true
    organizer = item.get("organizer")
    return organizer is None or organizer.get("self", False)


def classify_event(item: dict) -> EventCategory:
    """Category stored on the event by create_event, else a guess from title and organizer."""
    stored = item.get("extendedProperties", {}).get("private", {}).get(CATEGORY_PROPERTY)
    if stored in {c.value for c in EventCategory}:
        return EventCategory(stored)

    title = (item.get("summary") or "").lower()
    if any(k in title for k in FOCUS_KEYWORDS):
        return EventCategory.FOCUS
    if any(k in title for k in PERSONAL_KEYWORDS):
        return EventCategory.PERSONAL
    if not _organized_by_self(item):
        return EventCategory.EXTERNAL
    return EventCategory.MEETING


def translate_http_error(error) -> CalendarError:
    """Map a googleapiclient HttpError onto a CalendarErrorKind."""
    status = error.resp.status
    reason = "unknown"
    message = str(error)
    try:
        info = json.loads(error.content.decode("utf-8")).get("error", {})
        reason = info.get("errors", [{}])[0].get("reason", reason)
        message = info.get("message", message)
    except (json.JSONDecodeError, AttributeError, IndexError):
        pass

    if status in (404, 410):
        kind = CalendarErrorKind.NOT_FOUND
    elif status == 401:
        kind = CalendarErrorKind.UNAUTHENTICATED
    elif status == 429 or (status == 403 and reason in RATE_LIMIT_REASONS):
        kind = CalendarErrorKind.RATE_LIMITED
    elif status == 403 and reason in NOT_ORGANIZER_REASONS:
        kind = CalendarErrorKind.NOT_ORGANIZER
    elif status == 403:
        kind = CalendarErrorKind.PERMISSION_DENIED
    elif status == 400:
        kind = CalendarErrorKind.INVALID_REQUEST
    else:
        kind = CalendarErrorKind.UNAVAILABLE
    return CalendarError(kind, f"HTTP {status} ({reason}): {message}")


class GoogleCalendarAdapter:
    """
    Reads and writes events through the Google Calendar API.

    Implements CalendarRepository. The user id is used as the calendar id
    ("primary" for the authenticated account).
    """

    def __init__(
        self,
        config_folder: str,
        label: str | None = None,
        client_secret_file: str = "",
        timezone: str = "America/New_York",
        timeout: float = 30,
    ):
        self.config_folder = config_folder
        self.label = label or Path(config_folder).name
        self.client_secret_file = client_secret_file
        self.timezone = timezone
        self.timeout = timeout
        self._token_path = Path(config_folder).expanduser() / "token.json"
        self._service = None

    def _get_credentials(self):
        """Load credentials from token.json, refreshing if needed."""
        from google.auth.exceptions import RefreshError
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        if not self._token_path.exists():
            raise CalendarError(
                CalendarErrorKind.UNAUTHENTICATED,
                f"No token.json for {self.label} - run 'timekeeper cal-auth'",
            )

        creds = Credentials.from_authorized_user_file(str(self._token_path), SCOPES)

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as e:
                logger.warning(f"Failed to refresh token for {self.label}: {e}")
                raise CalendarError(CalendarErrorKind.UNAUTHENTICATED, str(e)) from e
            self._token_path.write_text(creds.to_json())
            self._token_path.chmod(0o600)

        return creds

    def _build_service(self):
        """Build a Google Calendar API service bounded by the request timeout."""
        if self._service is None:
            import google_auth_httplib2
            import httplib2
            from googleapiclient.discovery import build

            http = google_auth_httplib2.AuthorizedHttp(
                self._get_credentials(),
                http=httplib2.Http(timeout=self.timeout),
            )
            self._service = build("calendar", "v3", http=http, cache_discovery=False)
        return self._service

    def _execute(self, request) -> dict:
        """Run an API request, translating failures into CalendarError."""
        import httplib2
        from google.auth.exceptions import RefreshError
        from googleapiclient.errors import HttpError

        try:
            return request.execute()
        except HttpError as e:
            raise translate_http_error(e) from e
        except RefreshError as e:
            raise CalendarError(CalendarErrorKind.UNAUTHENTICATED, f"Credentials for {self.label} expired: {e}") from e
        except TimeoutError as e:
            raise CalendarError(CalendarErrorKind.TIMEOUT, f"Google Calendar timed out after {self.timeout}s") from e
        except (OSError, httplib2.HttpLib2Error) as e:
            raise CalendarError(CalendarErrorKind.UNAVAILABLE, f"Google Calendar unreachable: {e}") from e

    def authenticate(self) -> bool:
        """Run OAuth flow for this account. Returns True on success."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        if not self.client_secret_file:
            logger.error("No client secret file configured")
            return False

        secret_path = Path(self.client_secret_file).expanduser()
        if not secret_path.exists():
            logger.error(f"Client secret file not found: {secret_path}")
            return False

        flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
        creds = flow.run_local_server(port=0)

        token_dir = self._token_path.parent
        token_dir.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(creds.to_json())
        self._token_path.chmod(0o600)
        return True

    def _parse_time(self, raw: dict) -> tuple[datetime, bool]:
        if "dateTime" in raw:
            return datetime.fromisoformat(raw["dateTime"]), False
        # All-day event - attach timezone so sorting with timed events works
        return datetime.fromisoformat(raw["date"]).replace(tzinfo=ZoneInfo(self.timezone)), True

    def _to_event(self, item: dict) -> Event:
        start, all_day = self._parse_time(item["start"])
        end, _ = self._parse_time(item.get("end") or item["start"])
        attendees = [
            Attendee(
                email=a["email"],
                name=a.get("displayName", ""),
                response_status=a.get("responseStatus", "needsAction"),
                optional=a.get("optional", False),
                is_self=a.get("self", False),
            )
            for a in item.get("attendees", [])
            if "@" in a.get("email", "")
        ]
        return Event(
            id=item["id"],
            title=item.get("summary", "Untitled"),
            start=start,
            end=end,
            category=classify_event(item),
            all_day=all_day,
            attendees=attendees,
            location=item.get("location", ""),
            description=item.get("description", ""),
            calendar=self.label,
            source="google_calendar",
            is_organizer=_organized_by_self(item),
        )

    @staticmethod
    def _declined_by_self(item: dict) -> bool:
        return any(a.get("self") and a.get("responseStatus") == "declined" for a in item.get("attendees", []))

    def fetch_events(self, user_id: str, start: datetime, end: datetime) -> list[Event]:
        """Fetch non-cancelled events intersecting [start, end)."""
        service = self._build_service()
        events = []
        params = {
            "calendarId": user_id,
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "singleEvents": True,
            "orderBy": "startTime",
            "timeZone": self.timezone,
        }
        while True:
            result = self._execute(service.events().list(**params))
            for item in result.get("items", []):
                if item.get("status") == "cancelled" or self._declined_by_self(item):
                    continue
                try:
                    events.append(self._to_event(item))
                except (KeyError, ValueError) as e:
                    logger.warning(f"Skipping unreadable event {item.get('id')} for {self.label}: {e}")
            if not result.get("nextPageToken"):
                return events
            params["pageToken"] = result["nextPageToken"]

    def _get_raw(self, user_id: str, event_id: str) -> dict:
        item = self._execute(self._build_service().events().get(calendarId=user_id, eventId=event_id))
        if item.get("status") == "cancelled":
            raise CalendarError(CalendarErrorKind.NOT_FOUND, f"Event {event_id} was cancelled")
        return item

    def get_event(self, user_id: str, event_id: str) -> Event | None:
        try:
            return self._to_event(self._get_raw(user_id, event_id))
        except CalendarError as e:
            if e.kind == CalendarErrorKind.NOT_FOUND:
                return None
            raise

    def create_event(self, user_id: str, draft: EventDraft) -> Event:
        body = {
            "summary": draft.title,
            "description": draft.description,
            "start": {"dateTime": draft.start.isoformat(), "timeZone": draft.timezone},
            "end": {"dateTime": draft.end.isoformat(), "timeZone": draft.timezone},
            "extendedProperties": {"private": {CATEGORY_PROPERTY: draft.category.value}},
        }
        if draft.location:
            body["location"] = draft.location
        if draft.attendees:
            body["attendees"] = [{"email": email} for email in draft.attendees]

        item = self._execute(self._build_service().events().insert(calendarId=user_id, body=body))
        return self._to_event(item)

    def update_event(
        self,
        user_id: str,
        event_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        timezone: str | None = None,
    ) -> Event:
        current = self._get_raw(user_id, event_id)
        if not _organized_by_self(current):
            raise CalendarError(CalendarErrorKind.NOT_ORGANIZER, f"Not the organizer of {event_id}")

        tz = timezone or self.timezone
        body = {}
        if start is not None:
            body["start"] = {"dateTime": start.isoformat(), "timeZone": tz}
        if end is not None:
            body["end"] = {"dateTime": end.isoformat(), "timeZone": tz}

        item = self._execute(
            self._build_service().events().patch(calendarId=user_id, eventId=event_id, body=body, sendUpdates="all")
        )
        return self._to_event(item)

    def decline_event(self, user_id: str, event_id: str) -> None:
        current = self._get_raw(user_id, event_id)
        attendees = current.get("attendees", [])
        me = next((a for a in attendees if a.get("self")), None)
        if me is None or me.get("organizer"):
            raise CalendarError(CalendarErrorKind.PERMISSION_DENIED, f"Cannot decline {event_id}: not an invitee")

        me["responseStatus"] = "declined"
        self._execute(
            self._build_service().events().patch(
                calendarId=user_id,
                eventId=event_id,
                body={"attendees": attendees},
                sendUpdates="all",
            )
        )

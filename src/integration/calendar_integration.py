import logging
from datetime import date, datetime
from typing import List, Optional

from googleapiclient.discovery import build

from day_planner.models import BusyInterval
from integration.base import CalendarEventRequest, CalendarStore, TrackedTaskRequest
from integration.google_errors import store_call

logger = logging.getLogger(__name__)

TASK_ID_PROPERTY = "planner_task_id"
DAY_PROPERTY = "planner_date"


def _marker(task_id: str, day: date) -> str:
    return f"[planner:{task_id}:{day.isoformat()}]"


def _parse_google_time(value: dict) -> Optional[datetime]:
    raw = value.get("dateTime")
    if not raw:
        # all-day entries carry only "date"; they are not treated as busy time
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


class CalendarIntegration(CalendarStore):
    """Google Calendar + Google Tasks backed event/task store."""

    def __init__(self, credentials=None, calendar_id: str = "primary", tasklist_id: str = "@default"):
        self.credentials = credentials
        self.calendar_id = calendar_id
        self.tasklist_id = tasklist_id
        self._calendar = None
        self._tasks = None

    @property
    def calendar(self):
        if self._calendar is None:
            self._calendar = build("calendar", "v3", credentials=self.credentials, cache_discovery=False)
        return self._calendar

    @property
    def tasks(self):
        if self._tasks is None:
            self._tasks = build("tasks", "v1", credentials=self.credentials, cache_discovery=False)
        return self._tasks

    # --- events ---

    def _find_event_id(self, task_id: str, day: date) -> Optional[str]:
        resp = self.calendar.events().list(
            calendarId=self.calendar_id,
            privateExtendedProperty=[
                f"{TASK_ID_PROPERTY}={task_id}",
                f"{DAY_PROPERTY}={day.isoformat()}",
            ],
            maxResults=1,
        ).execute()
        items = resp.get("items", [])
        return items[0]["id"] if items else None

    @store_call("create calendar event")
    def create_event(self, event: CalendarEventRequest) -> Optional[str]:
        body = {
            "summary": event.summary,
            "description": event.description,
            "start": {"dateTime": event.start.isoformat(), "timeZone": event.timezone},
            "end": {"dateTime": event.end.isoformat(), "timeZone": event.timezone},
            "extendedProperties": {
                "private": {
                    TASK_ID_PROPERTY: event.task_id,
                    DAY_PROPERTY: event.day.isoformat(),
                }
            },
        }
        existing = self._find_event_id(event.task_id, event.day)
        if existing:
            result = self.calendar.events().update(
                calendarId=self.calendar_id, eventId=existing, body=body
            ).execute()
        else:
            result = self.calendar.events().insert(calendarId=self.calendar_id, body=body).execute()
        return result.get("id")

    @store_call("list calendar events")
    def list_events(self, start: datetime, end: datetime) -> List[BusyInterval]:
        out: List[BusyInterval] = []
        page_token = None
        while True:
            resp = self.calendar.events().list(
                calendarId=self.calendar_id,
                timeMin=start.isoformat(),
                timeMax=end.isoformat(),
                singleEvents=True,
                orderBy="startTime",
                pageToken=page_token,
            ).execute()
            for e in resp.get("items", []):
                if e.get("status") == "cancelled":
                    continue
                s = _parse_google_time(e.get("start", {}))
                f = _parse_google_time(e.get("end", {}))
                if s is None or f is None or f <= s:
                    continue
                private = e.get("extendedProperties", {}).get("private", {})
                out.append(
                    BusyInterval(
                        start=s,
                        end=f,
                        label=e.get("summary", "(No Title)"),
                        event_id=e.get("id"),
                        task_id=private.get(TASK_ID_PROPERTY),
                    )
                )
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        return out

    # --- tracked tasks ---

    def _find_tracked_task(self, task_id: str, day: date) -> Optional[dict]:
        marker = _marker(task_id, day)
        resp = self.tasks.tasks().list(
            tasklist=self.tasklist_id, showCompleted=True, showHidden=True, maxResults=100
        ).execute()
        for item in resp.get("items", []):
            if marker in (item.get("notes") or ""):
                return item
        return None

    @store_call("create tracked task")
    def create_tracked_task(self, task: TrackedTaskRequest) -> Optional[str]:
        body = {
            "title": task.title,
            "notes": f"{task.notes}\n{_marker(task.task_id, task.day)}".strip(),
            "due": task.due.isoformat(),
            "status": "needsAction",
        }
        existing = self._find_tracked_task(task.task_id, task.day)
        if existing:
            result = self.tasks.tasks().patch(
                tasklist=self.tasklist_id, task=existing["id"], body=body
            ).execute()
        else:
            result = self.tasks.tasks().insert(tasklist=self.tasklist_id, body=body).execute()
        return result.get("id")

    @store_call("complete tracked task")
    def complete_tracked_task(self, task_id: str, day: date) -> bool:
        existing = self._find_tracked_task(task_id, day)
        if existing is None:
            logger.info(f"No tracked task for {task_id} on {day.isoformat()}")
            return False
        self.tasks.tasks().patch(
            tasklist=self.tasklist_id, task=existing["id"], body={"status": "completed"}
        ).execute()
        return True

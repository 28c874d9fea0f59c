from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from day_planner.models import BusyInterval
from integration.base import CalendarEventRequest, CalendarStore, TabularDataSource, TrackedTaskRequest

logger = logging.getLogger(__name__)


class InMemoryDataSource(TabularDataSource):
    """Row store kept in a dict; used when no spreadsheet is configured."""

    def __init__(self, sheets: Optional[Dict[str, List[List[str]]]] = None):
        self.sheets: Dict[str, List[List[str]]] = {k: list(v) for k, v in (sheets or {}).items()}

    def read_rows(self, sheet: str) -> List[List[str]]:
        return [list(r) for r in self.sheets.get(sheet, [])]

    def append_row(self, sheet: str, row: List[str]) -> None:
        self.sheets.setdefault(sheet, []).append(list(row))

    def update_row(self, sheet: str, row_index: int, row: List[str]) -> None:
        rows = self.sheets.get(sheet, [])
        if not 0 <= row_index < len(rows):
            raise IndexError(f"{sheet} has no row {row_index}")
        rows[row_index] = list(row)


class InMemoryCalendarStore(CalendarStore):
    def __init__(self, external_events: Optional[List[BusyInterval]] = None):
        self.external_events: List[BusyInterval] = list(external_events or [])
        self.events: Dict[Tuple[str, date], CalendarEventRequest] = {}
        self.tracked: Dict[Tuple[str, date], TrackedTaskRequest] = {}
        self.completed: set[Tuple[str, date]] = set()

    def create_event(self, event: CalendarEventRequest) -> Optional[str]:
        key = (event.task_id, event.day)
        self.events[key] = event
        return f"event_{event.task_id}_{event.day.isoformat()}"

    def create_tracked_task(self, task: TrackedTaskRequest) -> Optional[str]:
        key = (task.task_id, task.day)
        self.tracked[key] = task
        self.completed.discard(key)
        return f"task_{task.task_id}_{task.day.isoformat()}"

    def list_events(self, start: datetime, end: datetime) -> List[BusyInterval]:
        own = [
            BusyInterval(
                start=e.start, end=e.end, label=e.summary,
                event_id=f"event_{e.task_id}_{e.day.isoformat()}", task_id=e.task_id,
            )
            for e in self.events.values()
        ]
        return [b for b in self.external_events + own if b.start < end and b.end > start]

    def complete_tracked_task(self, task_id: str, day: date) -> bool:
        key = (task_id, day)
        if key not in self.tracked:
            return False
        self.completed.add(key)
        return True
